"""Exit-code contract and exception types for the GrooveForge CLI."""
from __future__ import annotations

import enum


class ExitCode(enum.IntEnum):
    """Standardised CLI exit codes.

    0 - success
    1 - user error (bad arguments, unreadable input)
    3 - internal error
    """

    SUCCESS = 0
    USER_ERROR = 1
    INTERNAL_ERROR = 3


class GrooveForgeCLIError(Exception):
    """Base exception for GrooveForge CLI errors."""

    def __init__(self, message: str, exit_code: ExitCode = ExitCode.INTERNAL_ERROR) -> None:
        super().__init__(message)
        self.exit_code = exit_code


class InputFileError(GrooveForgeCLIError):
    """Raised when an input file is missing or is not valid JSON."""

    def __init__(self, message: str) -> None:
        super().__init__(message, exit_code=ExitCode.USER_ERROR)
