import json
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from core import ErrorKind

_STATUS_BY_KIND = {
    ErrorKind.NOT_FOUND: "NOT_FOUND",
    ErrorKind.VALIDATION: "INVALID",
    ErrorKind.CONFLICT: "CONFLICT",
    ErrorKind.COLLISION: "COLLISION",
    ErrorKind.IO: "ERROR",
}


def iso_timestamp() -> str:
    """UTC timestamp for structured CLI output."""
    return datetime.now(timezone.utc).isoformat()


def structured_response(
    command: str,
    *,
    status: str = "OK",
    message: str = "",
    payload: Optional[Dict] = None,
    exit_code: int = 0,
) -> int:
    """Print the ``{command, status, message, timestamp, payload}`` envelope."""
    body: Dict[str, object] = {
        "command": command,
        "status": status,
        "message": message,
        "timestamp": iso_timestamp(),
        "payload": payload or {},
    }
    print(json.dumps(body, ensure_ascii=False, indent=2, default=str))
    return exit_code


def structured_error(
    command: str,
    message: str,
    *,
    payload: Optional[Dict] = None,
    kind: Optional[ErrorKind] = None,
) -> int:
    status = _STATUS_BY_KIND.get(kind, "ERROR") if kind is not None else "ERROR"
    return structured_response(command, status=status, message=message, payload=payload, exit_code=1)


def outcome_response(command: str, ok: bool, message: str, kind: Optional[ErrorKind], payload: Dict[str, Any]) -> int:
    """Envelope for a result object: OK, or a status named after its error kind."""
    if ok:
        return structured_response(command, message=message, payload=payload)
    return structured_error(command, message, payload=payload, kind=kind)


__all__ = ["iso_timestamp", "structured_response", "structured_error", "outcome_response"]
