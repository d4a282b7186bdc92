"""
Error taxonomy for DRS path resolution.

Every failure on the read path is a distinct exception type carrying an
ErrorKind, so callers can branch on the kind without string matching:

    try:
        channel = await drs_path.open_read()
    except DrsError as e:
        info = e.to_error_info()
        if info.kind == ErrorKind.URL_NOT_FOUND:
            ...

Nothing in this package retries or swallows these errors; they propagate
through the deferred computation to whoever forces it.
"""

from enum import Enum
from typing import Any, Optional
from pydantic import BaseModel, Field


class ErrorKind(str, Enum):
    """Standardized error categories."""

    # Resolution pipeline errors
    AUTH_CONFIG = "auth_config"                         # Unknown or invalid auth scheme
    MISSING_OPTION = "missing_option"                   # Workflow option required by the auth mode is absent
    URL_NOT_FOUND = "url_not_found"                     # No candidate URL for the desired scheme
    SERVICE_ACCOUNT_MISSING = "service_account_missing" # Resolver returned no credential payload
    UNSUPPORTED_SCHEME = "unsupported_scheme"           # No read backend registered for the scheme
    MALFORMED_URL = "malformed_url"                     # URL does not parse into bucket/object
    INVALID_PATH = "invalid_path"                       # String is not a DRS path

    # Network/connectivity errors
    CONNECTION = "connection"       # Connection refused, DNS failure
    TIMEOUT = "timeout"             # Request/response timeout

    # HTTP-specific errors
    RATE_LIMIT = "rate_limit"       # 429 Too Many Requests
    AUTH = "auth"                   # 401/403 Authentication/Authorization
    NOT_FOUND = "not_found"         # 404 Not Found
    CLIENT_ERROR = "client_error"   # 4xx (other than above)
    SERVER_ERROR = "server_error"   # 5xx Server Error
    PARSE = "parse"                 # Response body could not be parsed

    # Storage errors
    STORAGE_ACCESS = "storage_access"  # Permission denied

    UNKNOWN = "unknown"


class ErrorInfo(BaseModel):
    """Standardized, serializable description of a failure."""

    kind: ErrorKind = Field(
        default=ErrorKind.UNKNOWN,
        description="Error category"
    )
    retryable: bool = Field(
        default=False,
        description="Whether a caller-side retry could succeed"
    )
    code: str = Field(
        default="UNKNOWN",
        description="Source-specific error code (HTTP_429, DRS_URL_NOT_FOUND, etc.)"
    )
    message: str = Field(
        default="Unknown error",
        description="Human-readable error message"
    )
    source: str = Field(
        default="unknown",
        description="Component that produced this error"
    )
    http_status: Optional[int] = Field(
        None, description="HTTP status code (for resolver errors)"
    )
    retry_after: Optional[int] = Field(
        None, description="Retry-After header value in seconds"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Extra context (path, scheme, url)"
    )

    def to_dict(self) -> dict[str, Any]:
        d = {
            "kind": self.kind.value,
            "retryable": self.retryable,
            "code": self.code,
            "message": self.message,
            "source": self.source,
        }
        if self.http_status is not None:
            d["http_status"] = self.http_status
        if self.retry_after is not None:
            d["retry_after"] = self.retry_after
        if self.details:
            d["details"] = self.details
        return d


class DrsError(Exception):
    """Base class for every failure raised by drsfs."""

    kind: ErrorKind = ErrorKind.UNKNOWN
    source: str = "drs"
    retryable: bool = False

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_error_info(self) -> ErrorInfo:
        return ErrorInfo(
            kind=self.kind,
            retryable=self.retryable,
            code=f"DRS_{self.kind.name}",
            message=self.message,
            source=self.source,
            details={k: v for k, v in self.details.items() if v is not None},
        )


class AuthConfigurationError(DrsError):
    kind = ErrorKind.AUTH_CONFIG
    source = "auth"

    def __init__(self, message: str, scheme: Optional[str] = None):
        super().__init__(
            f"Error while instantiating DRS path builder factory. Errors: {message}",
            scheme=scheme,
        )
        self.scheme = scheme


class WorkflowOptionMissingError(DrsError):
    kind = ErrorKind.MISSING_OPTION
    source = "auth"

    def __init__(self, key: str):
        super().__init__(f"Workflow option '{key}' is required by the configured auth mode", key=key)
        self.key = key


class UrlNotFoundError(DrsError):
    kind = ErrorKind.URL_NOT_FOUND

    def __init__(self, drs_path: str, scheme: str):
        super().__init__(
            f"DRS was not able to find a {scheme} url associated with {drs_path}.",
            drs_path=drs_path,
            scheme=scheme,
        )
        self.drs_path = drs_path
        self.scheme = scheme


class ServiceAccountMissingError(DrsError):
    kind = ErrorKind.SERVICE_ACCOUNT_MISSING

    def __init__(self, drs_path: str):
        super().__init__(
            f"Error finding Google Service Account associated with DRS path {drs_path} through Martha.",
            drs_path=drs_path,
        )
        self.drs_path = drs_path


class UnsupportedSchemeError(DrsError):
    kind = ErrorKind.UNSUPPORTED_SCHEME

    def __init__(self, scheme: str):
        super().__init__(f"DRS currently doesn't support reading files for {scheme}.", scheme=scheme)
        self.scheme = scheme


class MalformedUrlError(DrsError):
    kind = ErrorKind.MALFORMED_URL

    def __init__(self, url: str, reason: str = "expected <scheme>://<bucket>/<object>"):
        super().__init__(f"Malformed storage url '{url}': {reason}", url=url)
        self.url = url


class InvalidDrsPathError(DrsError, ValueError):
    kind = ErrorKind.INVALID_PATH

    def __init__(self, path: str):
        super().__init__(f"{path} is not a valid DRS path", path=path)
        self.path = path


class DrsResolutionError(DrsError):
    """Failure talking to the resolution service; carries the classified ErrorInfo."""

    source = "martha"

    def __init__(self, drs_path: str, info: ErrorInfo):
        super().__init__(f"Failed to resolve {drs_path}: {info.message}", drs_path=drs_path)
        self.drs_path = drs_path
        self.info = info
        self.kind = info.kind
        self.retryable = info.retryable

    def to_error_info(self) -> ErrorInfo:
        return self.info.model_copy(update={"details": {**self.info.details, "drs_path": self.drs_path}})


class StorageReadError(DrsError):
    """Failure opening a resolved storage object; carries the classified ErrorInfo."""

    source = "gcs"

    def __init__(self, url: str, info: ErrorInfo):
        super().__init__(f"Failed to open {url}: {info.message}", url=url)
        self.url = url
        self.info = info
        self.kind = info.kind
        self.retryable = info.retryable

    def to_error_info(self) -> ErrorInfo:
        return self.info.model_copy(update={"details": {**self.info.details, "url": self.url}})


def classify_http_error(
    status_code: int,
    message: str = "",
    headers: Optional[dict] = None,
    source: str = "martha",
) -> ErrorInfo:
    """Classify HTTP errors into standardized ErrorInfo."""
    headers = headers or {}

    retry_after = None
    ra = headers.get("retry-after") or headers.get("Retry-After")
    if ra:
        try:
            retry_after = int(ra)
        except ValueError:
            pass

    if status_code == 429:
        kind, retryable, default = ErrorKind.RATE_LIMIT, True, "Too Many Requests"
    elif status_code == 401:
        kind, retryable, default = ErrorKind.AUTH, False, "Unauthorized"
    elif status_code == 403:
        kind, retryable, default = ErrorKind.AUTH, False, "Forbidden"
    elif status_code == 404:
        kind, retryable, default = ErrorKind.NOT_FOUND, False, "Not Found"
    elif 400 <= status_code < 500:
        kind, retryable, default = ErrorKind.CLIENT_ERROR, False, f"Client Error {status_code}"
    elif status_code >= 500:
        kind, retryable, default = ErrorKind.SERVER_ERROR, True, f"Server Error {status_code}"
    else:
        kind, retryable, default = ErrorKind.UNKNOWN, False, f"HTTP Error {status_code}"

    return ErrorInfo(
        kind=kind,
        retryable=retryable,
        code=f"HTTP_{status_code}",
        message=message or default,
        source=source,
        http_status=status_code,
        retry_after=retry_after if retryable else None,
    )


def classify_connection_error(
    error: Exception,
    source: str = "martha",
) -> ErrorInfo:
    """Classify connection/network errors."""
    error_str = str(error).lower()

    if "timeout" in error_str or "timed out" in error_str or type(error).__name__.endswith("Timeout"):
        return ErrorInfo(
            kind=ErrorKind.TIMEOUT,
            retryable=True,
            code="CONN_TIMEOUT",
            message=str(error) or type(error).__name__,
            source=source,
        )
    elif "connection refused" in error_str:
        return ErrorInfo(
            kind=ErrorKind.CONNECTION,
            retryable=True,
            code="CONN_REFUSED",
            message=str(error),
            source=source,
        )
    elif "dns" in error_str or "resolve" in error_str:
        return ErrorInfo(
            kind=ErrorKind.CONNECTION,
            retryable=True,
            code="DNS_ERROR",
            message=str(error),
            source=source,
        )
    return ErrorInfo(
        kind=ErrorKind.CONNECTION,
        retryable=True,
        code="CONN_ERROR",
        message=str(error) or type(error).__name__,
        source=source,
    )


def classify_storage_error(
    error: Exception,
    source: str = "gcs",
) -> ErrorInfo:
    """Classify storage (GCS) errors raised while opening a channel."""
    error_str = str(error).lower()

    if isinstance(error, FileNotFoundError):
        return ErrorInfo(
            kind=ErrorKind.NOT_FOUND,
            retryable=False,
            code="STORAGE_NOT_FOUND",
            message=str(error),
            source=source,
        )

    if "permission" in error_str or "access" in error_str or "forbidden" in error_str:
        return ErrorInfo(
            kind=ErrorKind.STORAGE_ACCESS,
            retryable=False,
            code="STORAGE_ACCESS",
            message=str(error),
            source=source,
        )

    if "timeout" in error_str:
        return ErrorInfo(
            kind=ErrorKind.TIMEOUT,
            retryable=True,
            code="STORAGE_TIMEOUT",
            message=str(error),
            source=source,
        )

    return ErrorInfo(
        kind=ErrorKind.UNKNOWN,
        retryable=True,
        code="STORAGE_ERROR",
        message=str(error),
        source=source,
    )


__all__ = [
    "ErrorKind",
    "ErrorInfo",
    "DrsError",
    "AuthConfigurationError",
    "WorkflowOptionMissingError",
    "UrlNotFoundError",
    "ServiceAccountMissingError",
    "UnsupportedSchemeError",
    "MalformedUrlError",
    "InvalidDrsPathError",
    "DrsResolutionError",
    "StorageReadError",
    "classify_http_error",
    "classify_connection_error",
    "classify_storage_error",
]
