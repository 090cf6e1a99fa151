"""Assistant panel suggestion rules."""

from .suggestions import (
    AgentAction,
    AgentCapability,
    AgentCategory,
    AgentContext,
    AgentResponse,
    ClaimContext,
    ResponsePriority,
    applicable_capabilities,
    execute_action,
    get_suggestions,
)

__all__ = [
    "AgentAction",
    "AgentCapability",
    "AgentCategory",
    "AgentContext",
    "AgentResponse",
    "ClaimContext",
    "ResponsePriority",
    "applicable_capabilities",
    "execute_action",
    "get_suggestions",
]
