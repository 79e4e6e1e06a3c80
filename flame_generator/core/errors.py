"""
Exception types raised by the flame renderer.

Lookup failures and malformed configuration are fatal to a render and are
raised before any pixel is written. Numerical problems inside variations are
never raised; they are recovered where they happen.
"""

from typing import Iterable


class FlameError(Exception):
    """Base class for all flame generator errors."""


class _UnknownNameError(FlameError, ValueError):
    """Lookup failure for a name missing from a registry."""

    kind = "name"

    def __init__(self, name: str, available: Iterable[str] = ()):
        self.name = name
        self.available = sorted(available)
        message = f"Unknown {self.kind} '{name}'"
        if self.available:
            message += f". Available: {', '.join(self.available)}"
        super().__init__(message)


class UnknownVariationError(_UnknownNameError):
    """Raised when a flame function references an unregistered variation."""

    kind = "variation"


class UnknownPaletteError(_UnknownNameError):
    """Raised when a palette name is not registered."""

    kind = "palette"


class UnknownStrategyError(_UnknownNameError):
    """Raised when a coloring strategy name is not registered."""

    kind = "coloring strategy"


class InvalidHexColorError(FlameError, ValueError):
    """Raised for a palette stop that is not '#rgb' or '#rrggbb'."""

    def __init__(self, value: str):
        self.value = value
        super().__init__(f'Invalid hex color: "{value}"')


class ConfigurationError(FlameError, ValueError):
    """Raised for inconsistent presets (no functions, zero probability, bad fields)."""
