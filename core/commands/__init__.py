"""
POS Command Layer — Public API
=================================
Register actions refused before they reach a collaborator
carry a RejectionReason.
"""

from core.commands.rejection import (
    ReasonCode,
    RejectionReason,
)

__all__ = [
    "RejectionReason",
    "ReasonCode",
]
