"""
Structured Logging - Per-subsystem structured logging with JSON output.

Provides contextual logging with subsystem tags and request correlation IDs.
Modules keep using ``logging.getLogger(__name__)``; this module only adds the
JSON formatter and the request context.
"""

import json
import logging
import sys
import uuid
from contextvars import ContextVar
from enum import Enum
from typing import Any, Dict

# Context variables for request correlation
request_id_var: ContextVar[str] = ContextVar("request_id", default="")
identity_id_var: ContextVar[str] = ContextVar("identity_id", default="")


class Subsystem(str, Enum):
    API = "api"
    QUOTA = "quota"
    STORE = "store"
    GATEWAY = "gateway"
    ORCHESTRATOR = "orchestrator"
    DB = "db"
    AUTH = "auth"


class StructuredFormatter(logging.Formatter):
    """JSON structured log formatter."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "subsystem": getattr(record, "subsystem", _subsystem_from_name(record.name)),
            "message": record.getMessage(),
            "logger": record.name,
        }

        req_id = request_id_var.get("")
        if req_id:
            log_entry["request_id"] = req_id
        ident = identity_id_var.get("")
        if ident:
            log_entry["identity_id"] = ident

        extra = getattr(record, "extra_data", None)
        if extra:
            log_entry["data"] = extra

        if record.exc_info and record.exc_info[0]:
            log_entry["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
            }

        return json.dumps(log_entry, default=str)


_MODULE_SUBSYSTEMS: Dict[str, Subsystem] = {
    "luna.api": Subsystem.API,
    "luna.services.quota_ledger": Subsystem.QUOTA,
    "luna.services.conversation_store": Subsystem.STORE,
    "luna.services.llm_service": Subsystem.GATEWAY,
    "luna.services.orchestrator": Subsystem.ORCHESTRATOR,
    "luna.services.auth_service": Subsystem.AUTH,
    "luna.db": Subsystem.DB,
}


def _subsystem_from_name(name: str) -> str:
    for prefix, subsystem in _MODULE_SUBSYSTEMS.items():
        if name.startswith(prefix):
            return subsystem.value
    return "general"


_configured = False


def configure_logging(level: str = "INFO", json_output: bool = False) -> None:
    """Install a single stdout handler on the ``luna`` logger."""
    global _configured
    if _configured:
        return

    handler = logging.StreamHandler(sys.stdout)
    if json_output:
        handler.setFormatter(StructuredFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s %(levelname)s [%(name)s] %(message)s"
        ))

    root = logging.getLogger("luna")
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    _configured = True


def set_request_context(request_id: str = "", identity_id: str = "") -> None:
    """Set context variables for the current request."""
    if request_id:
        request_id_var.set(request_id)
    if identity_id:
        identity_id_var.set(identity_id)


def generate_request_id() -> str:
    """Generate a unique request ID."""
    return str(uuid.uuid4())[:12]


def log_with_data(logger: logging.Logger, level: int, msg: str, data: Any = None) -> None:
    """Log ``msg`` with a structured ``data`` payload (rendered by the JSON formatter)."""
    logger.log(level, msg, extra={"extra_data": data} if data else None)
