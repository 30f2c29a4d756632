"""
POS Integration — Collaborator Reply Handling
===============================================
Shared infrastructure for talking to the catalog, sale ledger and
print services.

Collaborators answer with plain dicts shaped like
{success, id?, error?, warnings?}. Nothing in the register reads
those dicts directly: every reply goes through coerce_service_result
so a malformed answer fails loudly instead of looking like success.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple


# ══════════════════════════════════════════════════════════════
# ERROR HIERARCHY
# ══════════════════════════════════════════════════════════════

class IntegrationError(Exception):
    """Base error for all collaborator failures."""

    def __init__(self, message: str, system_id: str = "", retryable: bool = False):
        super().__init__(message)
        self.system_id = system_id
        self.retryable = retryable


class MalformedResponseError(IntegrationError):
    """Collaborator reply is not a mapping or lacks 'success'."""

    def __init__(self, message: str, system_id: str = ""):
        super().__init__(message, system_id=system_id, retryable=False)


class ServiceUnavailableError(IntegrationError):
    """Collaborator could not be reached — a manual retry may succeed."""

    def __init__(self, message: str, system_id: str = ""):
        super().__init__(message, system_id=system_id, retryable=True)


# ══════════════════════════════════════════════════════════════
# SERVICE RESULT
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class ServiceResult:
    """Normalized collaborator reply."""

    success: bool
    id: Optional[Any] = None
    error: Optional[str] = None
    warnings: Tuple[str, ...] = ()
    data: Dict[str, Any] = field(default_factory=dict)

    @property
    def first_warning(self) -> Optional[str]:
        return self.warnings[0] if self.warnings else None


_KNOWN_KEYS = frozenset({"success", "id", "error", "warnings"})


def _coerce_warnings(raw: Any) -> Tuple[str, ...]:
    if raw is None:
        return ()
    if isinstance(raw, str):
        raw = [raw]
    if not isinstance(raw, (list, tuple)):
        return ()
    return tuple(str(w) for w in raw if str(w).strip())


def coerce_service_result(raw: Any, system_id: str = "") -> ServiceResult:
    """
    Normalize a collaborator reply.

    Raises:
        MalformedResponseError: reply is not a mapping or has no
            boolean-like 'success' key.
    """
    if raw is None:
        raise MalformedResponseError(
            "No response received from service.", system_id=system_id,
        )
    if not isinstance(raw, Mapping):
        raise MalformedResponseError(
            f"Unexpected response type {type(raw).__name__}.",
            system_id=system_id,
        )
    if "success" not in raw:
        raise MalformedResponseError(
            "Response is missing the 'success' flag.", system_id=system_id,
        )

    error = raw.get("error")
    return ServiceResult(
        success=bool(raw["success"]),
        id=raw.get("id"),
        error=str(error) if error else None,
        warnings=_coerce_warnings(raw.get("warnings")),
        data={k: v for k, v in raw.items() if k not in _KNOWN_KEYS},
    )
