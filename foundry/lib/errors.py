"""Structured exception hierarchy for the module registry.

Every error carries enough context (module identity, computed key) to
diagnose a failed publish run from its log output alone.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

__all__ = [
    "RegistryError",
    "ConfigurationError",
    "ConstraintParseError",
    "SpecParseError",
    "ValidationError",
    "NotFoundError",
    "AlreadyExistsError",
    "UploadFailedError",
    "KeyDecodeError",
    "IntegrityError",
    "SourceNotFoundError",
    "ArchiveError",
    "ArchiveSourceNotFound",
    "PublishCancelled",
]


class RegistryError(Exception):
    """Base exception for all registry errors.

    Provides structured error information for debugging.
    """

    def __init__(
        self,
        message: str,
        *,
        module: Optional[str] = None,
        key: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        suggestion: Optional[str] = None,
    ) -> None:
        self.message = message
        self.module = module
        self.key = key
        self.details = details or {}
        self.suggestion = suggestion

        lines = [f"[{module}] {message}" if module else message]

        if key:
            lines.append(f"  key: {key}")

        if self.details:
            lines.append("Details:")
            lines.extend(f"  {k}: {v}" for k, v in self.details.items())

        if suggestion:
            lines.append(f"Suggestion: {suggestion}")

        super().__init__("\n".join(lines))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for structured logging."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "module": self.module,
            "key": self.key,
            "details": self.details,
            "suggestion": self.suggestion,
        }


class ConfigurationError(RegistryError):
    """Invalid or incomplete registry configuration."""

    def __init__(
        self,
        message: str,
        *,
        field: Optional[str] = None,
        issues: Optional[List[str]] = None,
        **kwargs: Any,
    ) -> None:
        self.field = field
        self.issues = issues or []

        details = dict(kwargs.pop("details", None) or {})
        if field:
            details["field"] = field

        if self.issues:
            issue_lines = "\n".join(f"  - {issue}" for issue in self.issues)
            message = f"{message}\n\nIssues found:\n{issue_lines}"

        super().__init__(message, details=details, **kwargs)


class ConstraintParseError(RegistryError):
    """A version constraint, or a version checked against one, did not parse.

    Raised at startup for malformed operator input, and during a run when a
    module's version is not a valid semantic version while semver filtering
    is configured.
    """

    def __init__(
        self,
        message: str,
        *,
        constraint: Optional[str] = None,
        version: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        self.constraint = constraint
        self.version = version

        details = dict(kwargs.pop("details", None) or {})
        if constraint is not None:
            details["constraint"] = constraint
        if version is not None:
            details["version"] = version

        super().__init__(message, details=details, **kwargs)


class SpecParseError(RegistryError):
    """A module descriptor file could not be read or parsed."""

    def __init__(
        self,
        message: str,
        *,
        path: Optional[str] = None,
        cause: Optional[BaseException] = None,
        **kwargs: Any,
    ) -> None:
        self.path = path
        self.cause = cause

        details = dict(kwargs.pop("details", None) or {})
        if path:
            details["path"] = path
        if cause is not None:
            details["cause"] = str(cause)
            details["cause_type"] = type(cause).__name__

        super().__init__(message, details=details, **kwargs)


class ValidationError(RegistryError):
    """A required module identity field is missing or empty."""

    def __init__(
        self,
        message: str,
        *,
        field: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        self.field = field

        details = dict(kwargs.pop("details", None) or {})
        if field:
            details["field"] = field

        super().__init__(message, details=details, **kwargs)


class NotFoundError(RegistryError):
    """No archive is stored for the requested module identity."""


class AlreadyExistsError(RegistryError):
    """An archive is already stored for this module identity.

    Archives are immutable; there is no overwrite path.
    """

    def __init__(self, message: str, **kwargs: Any) -> None:
        suggestion = kwargs.pop("suggestion", None)
        if not suggestion:
            suggestion = (
                "Bump the module version, or enable ignore_existing to skip "
                "modules that are already published."
            )
        super().__init__(message, suggestion=suggestion, **kwargs)


class UploadFailedError(RegistryError):
    """The backend rejected or failed to complete an archive write."""

    def __init__(
        self,
        message: str,
        *,
        cause: Optional[BaseException] = None,
        **kwargs: Any,
    ) -> None:
        self.cause = cause

        details = dict(kwargs.pop("details", None) or {})
        if cause is not None:
            details["cause"] = str(cause)
            details["cause_type"] = type(cause).__name__

        super().__init__(message, details=details, **kwargs)


class KeyDecodeError(RegistryError):
    """A stored object key does not follow the registry key layout."""


class IntegrityError(RegistryError):
    """The version decoded from a stored key disagrees with the requested one."""

    def __init__(
        self,
        message: str,
        *,
        expected: Optional[str] = None,
        actual: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        self.expected = expected
        self.actual = actual

        details = dict(kwargs.pop("details", None) or {})
        if expected is not None:
            details["expected_version"] = expected
        if actual is not None:
            details["actual_version"] = actual

        super().__init__(message, details=details, **kwargs)


class SourceNotFoundError(RegistryError):
    """The directory to publish from does not exist."""

    def __init__(
        self,
        message: str,
        *,
        path: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        self.path = path

        details = dict(kwargs.pop("details", None) or {})
        if path:
            details["path"] = path

        super().__init__(message, details=details, **kwargs)


class ArchiveError(RegistryError):
    """Archiving a module directory failed; the partial archive is invalid."""

    def __init__(
        self,
        message: str,
        *,
        path: Optional[str] = None,
        cause: Optional[BaseException] = None,
        **kwargs: Any,
    ) -> None:
        self.path = path
        self.cause = cause

        details = dict(kwargs.pop("details", None) or {})
        if path:
            details["path"] = path
        if cause is not None:
            details["cause"] = str(cause)
            details["cause_type"] = type(cause).__name__

        super().__init__(message, details=details, **kwargs)


class ArchiveSourceNotFound(ArchiveError):
    """The module root to archive does not exist."""


class PublishCancelled(RegistryError):
    """The caller cancelled the publish run."""
