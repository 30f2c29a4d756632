"""
POS Django HTTP adapter.
Thin framework glue over the register session.
"""

from adapters.django_api.wiring import (
    build_register_session,
    reset_register_session,
)

__all__ = [
    "build_register_session",
    "reset_register_session",
]
