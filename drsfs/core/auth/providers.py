"""
Auth mode abstraction for Google credentials.

An auth mode turns one configured `google.auths` entry into credentials for
the resolution service. Modes are looked up by their configured scheme through
a registry, so adding a scheme means registering a class.
"""

import asyncio
import threading
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Mapping, Optional, Sequence, Tuple, Type

import google.auth.transport.requests

from drsfs.core.config import GoogleAuthConfig
from drsfs.core.errors import AuthConfigurationError, WorkflowOptionMissingError
from drsfs.core.logger import setup_logger

logger = setup_logger(__name__, include_location=True)


class ResolvedCredentials:
    """
    Credentials plus the scopes they were requested for.

    Shared read-only by every path builder a factory produces; only the
    underlying token is refreshed, under a lock, when it expires.
    """

    def __init__(self, credentials, scopes: Sequence[str], auth_name: str):
        self.credentials = credentials
        self.scopes: Tuple[str, ...] = tuple(scopes)
        self.auth_name = auth_name
        self._refresh_lock = threading.Lock()

    def _refresh_if_needed(self) -> str:
        with self._refresh_lock:
            if not self.credentials.valid:
                logger.debug(f"[AUTH] Refreshing access token for auth '{self.auth_name}'")
                self.credentials.refresh(google.auth.transport.requests.Request())
            token = self.credentials.token
        if not token:
            raise RuntimeError(f"Failed to obtain access token from auth '{self.auth_name}'")
        return token

    async def access_token(self) -> str:
        """Bearer token for the resolution service; refresh blocks, so it runs in the executor."""
        return await asyncio.to_thread(self._refresh_if_needed)

    def __repr__(self) -> str:
        return f"ResolvedCredentials(auth={self.auth_name!r}, scopes={list(self.scopes)!r})"


class GoogleAuthMode(ABC):
    """
    Base class for auth modes.

    Subclasses that do not depend on workflow options build their credentials
    once per mode instance; those that read workflow options build them per
    call.
    """

    scheme: str = ""
    requires_workflow_options: bool = False

    def __init__(self, auth_config: GoogleAuthConfig, application_name: str = "drsfs"):
        self.auth_config = auth_config
        self.name = auth_config.name
        self.application_name = application_name
        self._lock = threading.Lock()
        self._cache: Dict[Tuple[str, ...], ResolvedCredentials] = {}

    @abstractmethod
    def build_credentials(self, options: Mapping[str, Any], scopes: Sequence[str]):
        """Return a google.auth credentials object for the given scopes."""

    def credentials(self, options: Mapping[str, Any], scopes: Sequence[str]) -> ResolvedCredentials:
        if self.requires_workflow_options:
            return ResolvedCredentials(self.build_credentials(options, scopes), scopes, self.name)

        key = tuple(scopes)
        resolved = self._cache.get(key)
        if resolved is not None:
            return resolved
        with self._lock:
            resolved = self._cache.get(key)
            if resolved is None:
                logger.info(f"[AUTH] Building credentials for auth '{self.name}' ({self.scheme})")
                resolved = ResolvedCredentials(self.build_credentials(options, scopes), scopes, self.name)
                self._cache[key] = resolved
        return resolved

    @staticmethod
    def option(options: Mapping[str, Any], key: str) -> Any:
        value = options.get(key) if options is not None else None
        if value is None or (isinstance(value, str) and not value.strip()):
            raise WorkflowOptionMissingError(key)
        return value

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"


_AUTH_MODES: Dict[str, Type[GoogleAuthMode]] = {}


def register_auth_mode(scheme: str) -> Callable[[Type[GoogleAuthMode]], Type[GoogleAuthMode]]:
    def _register(cls: Type[GoogleAuthMode]) -> Type[GoogleAuthMode]:
        cls.scheme = scheme
        _AUTH_MODES[scheme] = cls
        return cls
    return _register


def get_auth_mode(auth_config: GoogleAuthConfig, application_name: str = "drsfs") -> GoogleAuthMode:
    """
    Create the auth mode for a configured auth entry.

    Raises:
        AuthConfigurationError: If the entry's scheme has no registered mode
    """
    # Registers the built-in modes
    from drsfs.core.auth import google_provider  # noqa: F401

    mode_class: Optional[Type[GoogleAuthMode]] = _AUTH_MODES.get(auth_config.scheme)
    if not mode_class:
        raise AuthConfigurationError(
            f"Unsupported auth scheme: {auth_config.scheme}. "
            f"Supported schemes: {sorted(_AUTH_MODES)}",
            scheme=auth_config.scheme,
        )

    logger.debug(f"[AUTH] Creating auth mode '{auth_config.name}' for scheme: {auth_config.scheme}")
    return mode_class(auth_config, application_name=application_name)
