"""Standardized exception hierarchy for Stagecraft.

Every Stagecraft operation raises one of the exceptions below. Each one
carries a human-readable message, an optional ``details`` dictionary and
the original exception (if any) chained as ``cause``.

Exception Hierarchy:
    StagecraftError (base)
    +-- ConfigurationError
    +-- ProjectConfigError
    +-- DuplicateNameError
    +-- NotFoundError
    +-- StorageError
        +-- CloudStoreError
        +-- LocalCacheError
        +-- ArchiveError
"""

from typing import Any, Dict, Optional


class StagecraftError(Exception):
    """Base exception for all Stagecraft errors.

    Attributes:
        message: Human-readable error description
        details: Optional dictionary with additional context
        cause: Original exception that caused this error (if any)
    """

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ) -> None:
        """Initialize StagecraftError.

        Args:
            message: Human-readable error description
            details: Optional dictionary with additional context
            cause: Original exception that caused this error
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.cause = cause

        # Chain the cause exception for proper traceback
        if cause is not None:
            self.__cause__ = cause

    def __str__(self) -> str:
        """Return string representation with details if available."""
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} [{detail_str}]"
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for JSON serialization.

        Returns:
            Dictionary with error type, message, and details
        """
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
            "cause": str(self.cause) if self.cause else None,
        }


class ConfigurationError(StagecraftError):
    """Invalid package settings.

    Raised when a settings file or environment variable holds a value
    of the wrong type or outside its allowed range.
    """

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        config_value: Optional[Any] = None,
        cause: Optional[Exception] = None,
    ) -> None:
        details = {}
        if config_key:
            details["config_key"] = config_key
        if config_value is not None:
            details["config_value"] = config_value
        super().__init__(message, details=details, cause=cause)


class ProjectConfigError(StagecraftError):
    """Malformed project config document.

    Raised when a config file inside a bundle cannot be decoded, or
    decodes to something other than the expected structure.

    Examples:
        - ``assets/index.json`` is not valid JSON
        - ``zorder`` is not a list of sprite names
    """

    def __init__(
        self,
        message: str,
        path: Optional[str] = None,
        cause: Optional[Exception] = None,
    ) -> None:
        details = {}
        if path:
            details["path"] = path
        super().__init__(message, details=details, cause=cause)


class DuplicateNameError(StagecraftError):
    """An asset was renamed to a name already used by a sibling."""

    def __init__(self, message: str, name: Optional[str] = None) -> None:
        details = {}
        if name:
            details["name"] = name
        super().__init__(message, details=details)


class NotFoundError(StagecraftError):
    """A named item does not exist.

    Examples:
        - Sprite name missing from zorder
        - No project cached under the given key
        - Removing a sprite or sound that is not in the project
    """

    def __init__(
        self,
        message: str,
        kind: Optional[str] = None,
        name: Optional[str] = None,
    ) -> None:
        details = {}
        if kind:
            details["kind"] = kind
        if name:
            details["name"] = name
        super().__init__(message, details=details)


class StorageError(StagecraftError):
    """I/O failure in a persistence adapter.

    Adapters wrap the transport-level exception and chain it as the
    cause, so callers only need to handle ``StorageError``.
    """

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        target: Optional[str] = None,
        cause: Optional[Exception] = None,
    ) -> None:
        details = {}
        if operation:
            details["operation"] = operation
        if target:
            details["target"] = target
        super().__init__(message, details=details, cause=cause)


class CloudStoreError(StorageError):
    """Request to the project service failed."""


class LocalCacheError(StorageError):
    """Reading or writing the local project cache failed."""


class ArchiveError(StorageError):
    """Encoding or decoding a project archive failed."""


__all__ = [
    "StagecraftError",
    "ConfigurationError",
    "ProjectConfigError",
    "DuplicateNameError",
    "NotFoundError",
    "StorageError",
    "CloudStoreError",
    "LocalCacheError",
    "ArchiveError",
]
