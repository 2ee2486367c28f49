"""VPS Expiry Panel - server expiry tracking with Telegram reminders"""

__version__ = "1.0.0"
