"""
Approval collaborator: decides whether a tool call may run.

The orchestrator consults the permission store first and only asks the
collaborator about calls that have no remembered approval.
"""

from __future__ import annotations

import abc as _abc
import dataclasses as _dataclasses
import typing as _typing


@_dataclasses.dataclass(frozen=True)
class ApprovalRequest:
    """A tool call awaiting approval."""

    call_id: str
    tool_name: str
    tool_input: dict[str, _typing.Any]
    host_id: str | None = None
    """Host that would run the call, if known."""

    permission_key: str | None = None


@_dataclasses.dataclass(frozen=True)
class ApprovalDecision:
    approved: bool
    remember: bool = False
    """Persist the approval so matching calls skip the prompt."""

    @classmethod
    def deny(cls) -> ApprovalDecision:
        return cls(approved=False)

    @classmethod
    def allow(cls, *, remember: bool = False) -> ApprovalDecision:
        return cls(approved=True, remember=remember)


class ApprovalCollaborator(_abc.ABC):
    """Asks someone (a person, a policy) whether a call may run."""

    @_abc.abstractmethod
    async def ask_approval(self, request: ApprovalRequest) -> ApprovalDecision:
        ...


class AutoDenyApprover(ApprovalCollaborator):
    """Declines every call. Used when nobody can be asked."""

    async def ask_approval(self, request: ApprovalRequest) -> ApprovalDecision:
        return ApprovalDecision.deny()


class AutoApproveApprover(ApprovalCollaborator):
    """Approves every call without remembering it."""

    async def ask_approval(self, request: ApprovalRequest) -> ApprovalDecision:
        return ApprovalDecision.allow()
