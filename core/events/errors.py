"""
POS Sync Bus — Errors
=======================
Error types for the cross-view sync layer.
"""


class SyncBusError(Exception):
    """Base error for Sync Bus operations."""
    pass


class InvalidChannelFormat(SyncBusError):
    """Subscription key is not 'channel', 'channel:action' or '*'."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(
            f"Subscription key '{key}' must be 'channel', "
            f"'channel:action' or '*'."
        )


class DuplicateSubscriberError(SyncBusError):
    """Same handler already registered under this key."""

    def __init__(self, key: str, handler_name: str):
        self.key = key
        self.handler_name = handler_name
        super().__init__(
            f"Handler '{handler_name}' already registered "
            f"for '{key}'."
        )
