"""Exception classes for TabRail."""


class TabRailError(Exception):
    """Base exception for TabRail errors."""
    pass


class InvalidInput(TabRailError):
    """Raised when a tab URL cannot be parsed into host and path."""
    pass
