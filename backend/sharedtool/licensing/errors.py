"""
Licensing-specific errors.

Parse problems in the license file are never errors (bad lines are skipped).
Only failures to read or rewrite the file itself surface here.
"""

from pathlib import Path
from typing import Union


class LicensingError(Exception):
    """Base exception for license file operations."""

    pass


class LicenseLoadError(LicensingError):
    """The license file exists but could not be read."""

    pass


class LicenseSaveError(LicensingError):
    """
    Raised when the license file could not be rewritten.

    Only raised after every retry attempt failed, so it indicates sustained
    contention (or a permission problem), not a single locked write.
    """

    def __init__(self, path: Union[str, Path], attempts: int):
        self.path = Path(path)
        self.attempts = attempts
        super().__init__(
            f"Failed to save license file after {attempts} attempts: {self.path}"
        )
