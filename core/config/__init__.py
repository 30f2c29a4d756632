"""
POS Core Config — Public API
===============================
"""

from core.config.register import RegisterSettings, load_register_settings

__all__ = [
    "RegisterSettings",
    "load_register_settings",
]
