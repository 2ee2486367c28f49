"""
Domain exceptions shared by services and API handlers
"""


class ExpiryPanelError(Exception):
    """Base class for panel errors"""


class ValidationRejected(ExpiryPanelError):
    """Input rejected with a human-readable reason"""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class RecordNotFound(ExpiryPanelError):
    """Requested server or category does not exist"""

    def __init__(self, kind: str, record_id: str):
        super().__init__(f"{kind} not found: {record_id}")
        self.kind = kind
        self.record_id = record_id


class StorageUnavailableError(ExpiryPanelError):
    """The key-value store is missing or unreachable"""


class NotificationError(ExpiryPanelError):
    """Outbound Telegram call failed"""

    def __init__(self, description: str):
        super().__init__(description)
        self.description = description


class CollectionUnreadable(ExpiryPanelError):
    """Stored collection has entries that could not be loaded; writing would lose them"""

    def __init__(self, key: str, skipped: int):
        super().__init__(
            f"'{key}' has {skipped} unreadable entr{'y' if skipped == 1 else 'ies'}; "
            "refusing to overwrite it (re-import the data to repair)"
        )
        self.key = key
        self.skipped = skipped
