"""
Exception hierarchy for frida-mgr.

Every error raised on purpose derives from :class:`FridaMgrError` and keeps
its diagnostic context in ``details``, which ``str()`` appends as
``message (key=value, ...)``. Context values that are ``None`` are left out.

Per-record problems (one bad feed entry, one unparsable version key) are
logged and skipped by the parsers; the exceptions below are for failures a
caller has to act on.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

_MAX_CONTEXT_TEXT = 200


def _clip(text: Optional[str]) -> Optional[str]:
    """Shorten raw payloads kept for diagnostics."""
    if text is None or len(text) <= _MAX_CONTEXT_TEXT:
        return text
    return text[:_MAX_CONTEXT_TEXT] + "..."


class FridaMgrError(Exception):
    """Base class of all frida-mgr errors.

    Args:
        message: Human-readable description.
        details: Structured context; ``None`` values are dropped.
    """

    __slots__ = ("message", "details")

    def __init__(self, message: str, details: Optional[Mapping[str, Any]] = None) -> None:
        self.message = message
        self.details: Dict[str, Any] = {
            key: value for key, value in (details or {}).items() if value is not None
        }
        super().__init__(message)

    def __str__(self) -> str:
        if not self.details:
            return self.message
        context = ", ".join(f"{key}={value}" for key, value in self.details.items())
        return f"{self.message} ({context})"

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r}, details={self.details!r})"


class ParseError(FridaMgrError):
    """A whole document (feed, listing page, persisted file) could not be understood.

    Args:
        message: Error description.
        source: URL or file label of the document.
        record: Offending raw content, clipped in ``details``.
    """

    __slots__ = ("source", "record")

    def __init__(
        self,
        message: str,
        *,
        source: Optional[str] = None,
        record: Optional[str] = None,
    ) -> None:
        super().__init__(message, {"source": source, "record": _clip(record)})
        self.source = source
        self.record = record


class NetworkError(FridaMgrError):
    """An HTTP request failed for good (after retries, or with a final status).

    Args:
        message: Error description.
        url: Requested URL.
        status_code: HTTP status, when a response was received.
        response_body: Raw body, clipped in ``details``.
    """

    __slots__ = ("url", "status_code", "response_body")

    def __init__(
        self,
        message: str,
        *,
        url: Optional[str] = None,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
    ) -> None:
        super().__init__(
            message,
            {"url": url, "status_code": status_code, "response": _clip(response_body)},
        )
        self.url = url
        self.status_code = status_code
        self.response_body = response_body

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404


class RegistryError(NetworkError):
    """PyPI answered, but not with something usable for ``package_name``."""

    __slots__ = ("package_name",)

    def __init__(self, message: str, *, package_name: Optional[str] = None, **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.package_name = package_name
        if package_name is not None:
            self.details["package"] = package_name


class EmptyResultError(FridaMgrError):
    """A refresh produced no mappings; the persisted map must be kept.

    Args:
        message: Error description.
        anchor_releases: How many frida releases were considered.
    """

    __slots__ = ("anchor_releases",)

    def __init__(self, message: str, *, anchor_releases: Optional[int] = None) -> None:
        super().__init__(message, {"anchor_releases": anchor_releases})
        self.anchor_releases = anchor_releases


class VersionFormatError(FridaMgrError, ValueError):
    """A string that has to be a semantic version is not one."""

    __slots__ = ("value",)

    def __init__(self, message: str, *, value: Optional[str] = None) -> None:
        super().__init__(message, {"value": value})
        self.value = value


class ConfigError(FridaMgrError):
    """The configuration file is unreadable or holds an invalid option."""

    __slots__ = ("config_path", "option")

    def __init__(
        self,
        message: str,
        *,
        config_path: Optional[str] = None,
        option: Optional[str] = None,
    ) -> None:
        super().__init__(message, {"path": config_path, "option": option})
        self.config_path = config_path
        self.option = option


class FileOperationError(FridaMgrError):
    """Reading, writing or backing up a state file failed.

    Args:
        message: Error description.
        file_path: File involved.
        operation: ``read``, ``write``, ``backup`` or ``delete``.
        original_error: The underlying ``OSError``, if any.
    """

    __slots__ = ("file_path", "operation", "original_error")

    def __init__(
        self,
        message: str,
        *,
        file_path: Optional[str] = None,
        operation: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ) -> None:
        super().__init__(
            message,
            {
                "path": file_path,
                "operation": operation,
                "original_error": str(original_error) if original_error else None,
            },
        )
        self.file_path = file_path
        self.operation = operation
        self.original_error = original_error
