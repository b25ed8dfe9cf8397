"""Conversation loop: orchestration, approval, and conversation state."""

from ronin.core.approval import (
    ApprovalCollaborator,
    ApprovalDecision,
    ApprovalRequest,
    AutoApproveApprover,
    AutoDenyApprover,
)
from ronin.core.conversation import Conversation, ConversationInvariantError, validate_turns
from ronin.core.formatting import summarize_result
from ronin.core.orchestrator import PendingToolCall, ToolCallOrchestrator, TurnOutput

__all__ = [
    "ApprovalCollaborator",
    "ApprovalDecision",
    "ApprovalRequest",
    "AutoApproveApprover",
    "AutoDenyApprover",
    "Conversation",
    "ConversationInvariantError",
    "PendingToolCall",
    "ToolCallOrchestrator",
    "TurnOutput",
    "summarize_result",
    "validate_turns",
]
