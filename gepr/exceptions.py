"""
Exception hierarchy for gepr.

    GeprError
    ├── ValidationError     bad arguments or input tables, raised before any work
    ├── FormatError         corrupt or incompatible model artifact
    └── ConfigurationError  resources unavailable (only raised by strict helpers)

Numeric problems inside expressions (division by ~0, sqrt/log of
out-of-domain values) are not errors at all; see `gepr.core.symbols`.
"""

from typing import Any, Dict, Optional


class GeprError(Exception):
    """
    Base class for all gepr errors.

    Attributes:
        message: Primary error message
        context: Optional extra details (parameter name, offending value, path)
    """

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        if not self.context:
            return self.message
        details = ', '.join(f'{k}={v!r}' for k, v in self.context.items())
        return f"{self.message} ({details})"


class ValidationError(GeprError, ValueError):
    """An argument or input table failed validation."""


class FormatError(GeprError, ValueError):
    """A persisted model is truncated, corrupt or from an incompatible version."""


class ConfigurationError(GeprError):
    """A requested resource (e.g. worker processes) is not available."""
