"""Core definitions shared across procvitals."""

from procvitals.core.errors import (
    ConfigurationError,
    ExitCode,
    ProcVitalsError,
    format_error_message,
    main_with_error_handling,
)

__all__ = [
    "ExitCode",
    "ProcVitalsError",
    "ConfigurationError",
    "main_with_error_handling",
    "format_error_message",
]
