"""Exception hierarchy for the roomcal scheduling core."""

from typing import Optional


class RoomCalError(Exception):
    """Base exception for roomcal errors."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.field = field


class RecurrenceRuleError(RoomCalError):
    """Exception raised when a recurrence rule cannot be expanded."""


class SeriesEditError(RoomCalError):
    """Exception raised when a series edit request is invalid."""


class ConfigError(RoomCalError):
    """Exception raised when a configuration file cannot be loaded."""
