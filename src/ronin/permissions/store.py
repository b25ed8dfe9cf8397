"""
Persistent store of remembered tool approvals.

When the user approves a tool call and asks for the choice to be
remembered, the approval is keyed by tool name plus a digest of the
relevant input and written to a JSON file. Later calls with the same key
skip the prompt until the approval expires.

File format::

    {
      "approvedTools": {
        "<key>": {"toolName": "...", "timestamp": "<iso>", "summary": "..."}
      },
      "session": {"alwaysAsk": false, "startTime": "<iso>"}
    }

The whole document is loaded at construction and rewritten on every
change through a temporary file and an atomic rename, so a concurrent
reader never sees a half-written file.
"""

from __future__ import annotations

import dataclasses as _dataclasses
import datetime as _datetime
import hashlib as _hashlib
import json as _json
import logging as _logging
import os as _os
import pathlib as _pathlib
import tempfile as _tempfile
import typing as _typing

import ronin.constants as _constants

_logger = _logging.getLogger(__name__)

Clock = _typing.Callable[[], _datetime.datetime]
"""Returns the current time as an aware datetime."""


def _utc_now() -> _datetime.datetime:
    return _datetime.datetime.now(_datetime.UTC)


@_dataclasses.dataclass
class PermissionRecord:
    """One remembered approval."""

    key: str
    tool_name: str
    created_at: _datetime.datetime
    summary: str

    def to_dict(self) -> dict[str, _typing.Any]:
        return {
            "toolName": self.tool_name,
            "timestamp": self.created_at.isoformat(),
            "summary": self.summary,
        }

    @classmethod
    def from_dict(cls, key: str, data: dict[str, _typing.Any]) -> PermissionRecord:
        """
        Raises:
            ValueError: If the timestamp is missing or unparseable
        """
        created_at = _datetime.datetime.fromisoformat(str(data.get("timestamp", "")))
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=_datetime.UTC)
        return cls(
            key=key,
            tool_name=str(data.get("toolName", key.split(":", 1)[0])),
            created_at=created_at,
            summary=str(data.get("summary", "")),
        )


@_dataclasses.dataclass
class PermissionStats:
    """Summary of the store's state."""

    total_approvals: int
    always_ask: bool
    session_start: str | None

    def to_dict(self) -> dict[str, _typing.Any]:
        return _dataclasses.asdict(self)


def _digest(text: str) -> str:
    return _hashlib.sha256(text.encode("utf-8")).hexdigest()[
        : _constants.PERMISSION_KEY_HASH_LENGTH
    ]


def canonical_json(value: _typing.Any) -> str:
    """Key-sorted, compact JSON used for input digests."""
    return _json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def create_summary(tool_name: str, input: dict[str, _typing.Any]) -> str:
    """Short, non-sensitive description of an approved call."""
    if tool_name == "shell_execute":
        parts = str(input.get("command") or "").split(" ")
        return parts[0] + ("..." if len(parts) > 1 else "")
    if tool_name == "file_write":
        return str(input.get("path") or "unknown file")
    return "generic tool call"


class PermissionStore:
    """
    Remembered approvals with lazy expiry.

    Args:
        path: Location of the permission file
        ttl: How long an approval stays valid
        clock: Time source (injected by tests)
    """

    def __init__(
        self,
        path: _pathlib.Path | str,
        *,
        ttl: _datetime.timedelta = _datetime.timedelta(
            hours=_constants.DEFAULT_PERMISSION_TTL_HOURS
        ),
        clock: Clock | None = None,
    ) -> None:
        self._path = _pathlib.Path(path)
        self._ttl = ttl
        self._clock = clock or _utc_now
        self._records: dict[str, dict[str, _typing.Any]] = {}
        self._always_ask = False
        self._start_time = self._clock().isoformat()
        self._load()

    @property
    def path(self) -> _pathlib.Path:
        return self._path

    @property
    def ttl(self) -> _datetime.timedelta:
        return self._ttl

    @property
    def always_ask(self) -> bool:
        return self._always_ask

    # === Keys ===

    @staticmethod
    def generate_key(tool_name: str, input: dict[str, _typing.Any]) -> str:
        """
        Derive the approval key for a call.

        file_write is keyed by path and shell_execute by a digest of the
        command alone; any other tool is keyed by a digest of its whole
        input in canonical form.
        """
        if tool_name == "file_write" and input.get("path"):
            return f"{tool_name}:{input['path']}"
        if tool_name == "shell_execute" and input.get("command"):
            return f"{tool_name}:cmd:{_digest(str(input['command']))}"
        return f"{tool_name}:{_digest(canonical_json(input))}"

    # === Queries ===

    def is_approved(self, tool_name: str, input: dict[str, _typing.Any]) -> bool:
        """
        Whether a remembered, unexpired approval covers this call.

        Always False in always-ask mode. An expired record is deleted (and
        the file rewritten) as a side effect.
        """
        if self._always_ask:
            return False

        key = self.generate_key(tool_name, input)
        raw = self._records.get(key)
        if raw is None:
            return False

        try:
            record = PermissionRecord.from_dict(key, raw)
        except ValueError:
            _logger.warning("Discarding permission record with bad timestamp: %s", key)
            del self._records[key]
            self._save()
            return False

        age = self._clock() - record.created_at
        if age > self._ttl:
            _logger.debug("Permission %s expired (age %s)", key, age)
            del self._records[key]
            self._save()
            return False

        return True

    def records(self) -> list[PermissionRecord]:
        """All stored records, including ones that have expired but not yet been purged."""
        result: list[PermissionRecord] = []
        for key, raw in self._records.items():
            try:
                result.append(PermissionRecord.from_dict(key, raw))
            except ValueError:
                continue
        return result

    def stats(self) -> PermissionStats:
        return PermissionStats(
            total_approvals=len(self._records),
            always_ask=self._always_ask,
            session_start=self._start_time,
        )

    # === Mutations ===

    def approve(
        self,
        tool_name: str,
        input: dict[str, _typing.Any],
        remember: bool = False,
    ) -> PermissionRecord | None:
        """
        Record an approval. Nothing is stored unless ``remember`` is True.

        Returns:
            The stored record, or None when not remembered
        """
        if not remember:
            return None

        record = PermissionRecord(
            key=self.generate_key(tool_name, input),
            tool_name=tool_name,
            created_at=self._clock(),
            summary=create_summary(tool_name, input),
        )
        self._records[record.key] = record.to_dict()
        self._save()
        _logger.debug("Remembered approval %s (%s)", record.key, record.summary)
        return record

    def clear(self) -> None:
        """Forget every approval. The always-ask flag is kept."""
        self._records.clear()
        self._save()

    def set_always_ask(self, enabled: bool) -> None:
        """Force prompting for every call without deleting stored approvals."""
        self._always_ask = enabled
        self._save()

    # === Persistence ===

    def _load(self) -> None:
        if not self._path.exists():
            return

        try:
            document = _json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            _logger.warning("Could not read permission file %s: %s", self._path, e)
            return

        if not isinstance(document, dict):
            _logger.warning("Ignoring malformed permission file %s", self._path)
            return

        approved = document.get("approvedTools")
        if isinstance(approved, dict):
            self._records = {
                str(k): v for k, v in approved.items() if isinstance(v, dict)
            }

        session = document.get("session")
        if isinstance(session, dict):
            self._always_ask = bool(session.get("alwaysAsk", False))
            self._start_time = str(session.get("startTime") or self._start_time)

    def _document(self) -> dict[str, _typing.Any]:
        return {
            "approvedTools": self._records,
            "session": {
                "alwaysAsk": self._always_ask,
                "startTime": self._start_time,
            },
        }

    def _save(self) -> None:
        """Rewrite the whole file atomically. Failures are logged, not raised."""
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = _tempfile.mkstemp(
                dir=self._path.parent,
                prefix=".permissions-",
                suffix=".tmp",
            )
        except OSError as e:
            _logger.error("Could not save permission file %s: %s", self._path, e)
            return

        try:
            with _os.fdopen(fd, "w", encoding="utf-8") as f:
                _json.dump(self._document(), f, indent=2)
            _os.replace(tmp_path, self._path)
        except OSError as e:
            _logger.error("Could not save permission file %s: %s", self._path, e)
            try:
                _os.unlink(tmp_path)
            except OSError:
                pass
