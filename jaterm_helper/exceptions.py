"""Exceptions raised inside the helper bootstrap."""


class HelperError(Exception):
    """Base error for helper bootstrap failures."""


class TransportError(HelperError):
    """Remote command or file channel failed."""


class ConfigError(HelperError):
    """Configuration file is unreadable or invalid."""


class HelperInstallError(HelperError):
    """A fatal install step failed."""

    def __init__(self, step: str, message: str) -> None:
        """Initialize with the failed step name and a readable reason."""
        super().__init__(message)
        self.step = step
