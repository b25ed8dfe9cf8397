"""Tests for PermissionStore."""

import datetime as _datetime
import json as _json
import pathlib as _pathlib

import pytest as _pytest

import ronin.permissions as permissions

_T0 = _datetime.datetime(2025, 3, 1, 12, 0, tzinfo=_datetime.UTC)
_TTL = _datetime.timedelta(hours=24)


class _FakeClock:
    def __init__(self, now: _datetime.datetime = _T0) -> None:
        self.now = now

    def __call__(self) -> _datetime.datetime:
        return self.now

    def advance(self, delta: _datetime.timedelta) -> None:
        self.now += delta


@_pytest.fixture
def clock() -> _FakeClock:
    return _FakeClock()


@_pytest.fixture
def store_path(tmp_path: _pathlib.Path) -> _pathlib.Path:
    return tmp_path / "perm" / "permissions.json"


def _store(path: _pathlib.Path, clock: _FakeClock) -> permissions.PermissionStore:
    return permissions.PermissionStore(path, ttl=_TTL, clock=clock)


class TestGenerateKey:
    def test_file_write_keyed_by_path(self) -> None:
        key = permissions.PermissionStore.generate_key(
            "file_write", {"path": "/tmp/out.txt", "content": "anything"}
        )
        assert key == "file_write:/tmp/out.txt"

    def test_shell_keyed_by_command_only(self) -> None:
        a = permissions.PermissionStore.generate_key(
            "shell_execute", {"command": "ls -la", "timeout": 10}
        )
        b = permissions.PermissionStore.generate_key(
            "shell_execute", {"command": "ls -la", "timeout": 99}
        )
        assert a == b
        assert a.startswith("shell_execute:cmd:")
        assert len(a.rsplit(":", 1)[1]) == 16

    def test_other_tools_use_canonical_input(self) -> None:
        a = permissions.PermissionStore.generate_key("web_request", {"url": "u", "method": "GET"})
        b = permissions.PermissionStore.generate_key("web_request", {"method": "GET", "url": "u"})
        c = permissions.PermissionStore.generate_key("web_request", {"url": "v", "method": "GET"})
        assert a == b
        assert a != c

    def test_canonical_json_is_compact_and_sorted(self) -> None:
        assert permissions.canonical_json({"b": 1, "a": [1, 2]}) == '{"a":[1,2],"b":1}'


class TestApprovals:
    def test_unremembered_approval_is_not_stored(self, store_path, clock) -> None:
        store = _store(store_path, clock)
        assert store.approve("file_write", {"path": "x"}) is None
        assert not store.is_approved("file_write", {"path": "x"})
        assert not store_path.exists()

    def test_remembered_approval_persists(self, store_path, clock) -> None:
        store = _store(store_path, clock)
        record = store.approve("shell_execute", {"command": "make test"}, remember=True)

        assert record is not None
        assert record.summary == "make..."
        reopened = _store(store_path, clock)
        assert reopened.is_approved("shell_execute", {"command": "make test"})
        assert not reopened.is_approved("shell_execute", {"command": "make clean"})

    def test_ttl_boundary(self, store_path, clock) -> None:
        store = _store(store_path, clock)
        store.approve("file_write", {"path": "a.txt"}, remember=True)

        clock.advance(_TTL - _datetime.timedelta(milliseconds=1))
        assert store.is_approved("file_write", {"path": "a.txt"})

        clock.advance(_datetime.timedelta(milliseconds=2))
        assert not store.is_approved("file_write", {"path": "a.txt"})

        document = _json.loads(store_path.read_text())
        assert document["approvedTools"] == {}

    def test_always_ask_overrides_without_deleting(self, store_path, clock) -> None:
        store = _store(store_path, clock)
        store.approve("file_write", {"path": "a.txt"}, remember=True)

        store.set_always_ask(True)
        assert not store.is_approved("file_write", {"path": "a.txt"})
        assert store.stats().total_approvals == 1

        reopened = _store(store_path, clock)
        assert reopened.always_ask
        reopened.set_always_ask(False)
        assert reopened.is_approved("file_write", {"path": "a.txt"})

    def test_clear_keeps_always_ask(self, store_path, clock) -> None:
        store = _store(store_path, clock)
        store.approve("file_write", {"path": "a.txt"}, remember=True)
        store.set_always_ask(True)

        store.clear()

        assert store.records() == []
        assert store.always_ask

    def test_records_and_stats(self, store_path, clock) -> None:
        store = _store(store_path, clock)
        store.approve("file_write", {"path": "a.txt"}, remember=True)
        store.approve("web_request", {"url": "https://x"}, remember=True)

        records = {r.tool_name: r for r in store.records()}
        assert records["file_write"].summary == "a.txt"
        assert records["web_request"].summary == "generic tool call"
        assert records["file_write"].created_at == _T0

        stats = store.stats().to_dict()
        assert stats["total_approvals"] == 2
        assert stats["always_ask"] is False
        assert stats["session_start"] == _T0.isoformat()


class TestPersistence:
    def test_file_layout(self, store_path, clock) -> None:
        store = _store(store_path, clock)
        store.approve("file_write", {"path": "a.txt"}, remember=True)

        document = _json.loads(store_path.read_text())
        assert document["approvedTools"]["file_write:a.txt"] == {
            "toolName": "file_write",
            "timestamp": _T0.isoformat(),
            "summary": "a.txt",
        }
        assert document["session"] == {"alwaysAsk": False, "startTime": _T0.isoformat()}

    def test_no_temporary_files_left_behind(self, store_path, clock) -> None:
        store = _store(store_path, clock)
        for i in range(3):
            store.approve("file_write", {"path": f"{i}.txt"}, remember=True)
        assert [p.name for p in store_path.parent.iterdir()] == ["permissions.json"]

    @_pytest.mark.parametrize("content", ["{not json", "[1, 2, 3]", ""])
    def test_corrupt_file_starts_empty(self, store_path, clock, content: str) -> None:
        store_path.parent.mkdir(parents=True)
        store_path.write_text(content)

        store = _store(store_path, clock)

        assert store.records() == []
        assert not store.always_ask
        store.approve("file_write", {"path": "a.txt"}, remember=True)
        assert _json.loads(store_path.read_text())["approvedTools"]

    def test_bad_timestamp_is_discarded(self, store_path, clock) -> None:
        store_path.parent.mkdir(parents=True)
        store_path.write_text(_json.dumps({
            "approvedTools": {
                "file_write:a.txt": {"toolName": "file_write", "timestamp": "yesterday"},
            },
        }))

        store = _store(store_path, clock)

        assert not store.is_approved("file_write", {"path": "a.txt"})
        assert _json.loads(store_path.read_text())["approvedTools"] == {}

    def test_naive_timestamps_are_treated_as_utc(self, store_path, clock) -> None:
        store_path.parent.mkdir(parents=True)
        store_path.write_text(_json.dumps({
            "approvedTools": {
                "file_write:a.txt": {
                    "toolName": "file_write",
                    "timestamp": "2025-03-01T11:00:00",
                    "summary": "a.txt",
                },
            },
        }))

        assert _store(store_path, clock).is_approved("file_write", {"path": "a.txt"})
