"""Domain errors and their HTTP rendering.

Errors raised before the event stream starts are rendered as JSON bodies of the
form ``{"error": "...", **extra}``. Gateway errors never reach this layer: the
orchestrator turns them into in-stream error events.
"""

from typing import Any, Dict


class LunaError(Exception):
    """Base error carrying an HTTP status and extra machine-readable fields."""

    status_code: int = 500

    def __init__(self, message: str, status_code: int = None, **extra: Any):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.extra: Dict[str, Any] = extra

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.message, **self.extra}


class QuestionRejected(LunaError):
    """Invalid question content (blank or too long)."""
    status_code = 400


class IdentityNotFound(LunaError):
    status_code = 404

    def __init__(self, message: str = "User not found"):
        super().__init__(message)


class PartnerNotFound(LunaError):
    status_code = 404

    def __init__(self, message: str = "Partner not found"):
        super().__init__(message)


class QuotaExceeded(LunaError):
    """Daily question ceiling reached for a conversation scope."""
    status_code = 429

    def __init__(self, limit: int, count: int, message: str = "Daily question limit reached"):
        super().__init__(message, limit=limit, count=count)
        self.limit = limit
        self.count = count


class StoreUnavailable(LunaError):
    status_code = 500

    def __init__(self, message: str = "Storage unavailable"):
        super().__init__(message)


class GatewayError(Exception):
    """Upstream language-model failure."""


class GatewayTimeout(GatewayError):
    """Upstream did not produce a fragment or finish within its time budget."""
