"""Per-session conversation state and derived context."""

from pocket.session.context import AddressRule, ContextStore, DetectionRule
from pocket.session.manager import Exchange, SessionManager, SessionState

__all__ = [
    "AddressRule",
    "ContextStore",
    "DetectionRule",
    "Exchange",
    "SessionManager",
    "SessionState",
]
