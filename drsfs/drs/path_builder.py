"""
DRS path builders for the workflow engine.

The engine creates one DrsPathBuilderFactory per filesystem configuration and
calls `with_options` once per workflow run. The factory validates the auth
name at construction, sets up the shared HTTP client and the Martha scopes
once, and hands out path builders whose paths open through
DrsFileSystemProvider.

    factory = DrsPathBuilderFactory(global_config, {"auth": "application-default"}, fs_config)
    builder = await factory.with_options(workflow_options)
    channel = await builder.build("drs://example.org/object-id").open_read()
"""

import asyncio
import threading
from typing import Any, Callable, Mapping, Optional, Tuple, Union

import httpx

from drsfs.core.config import DrsFileSystemConfig, DrsInstanceConfig, GoogleConfiguration
from drsfs.core.deferred import Deferred
from drsfs.core.errors import InvalidDrsPathError
from drsfs.core.logger import setup_logger
from drsfs.drs.channels import ReadableChannel, ReadChannelFactory
from drsfs.drs.provider import DrsFileSystemProvider

logger = setup_logger(__name__, include_location=True)

DRS_SCHEMES = ("drs://", "dos://")

# Profile and email scopes are required to call Martha
MARTHA_SCOPES: Tuple[str, ...] = (
    "https://www.googleapis.com/auth/userinfo.email",
    "https://www.googleapis.com/auth/userinfo.profile",
)


class DrsPath:
    """A DRS identifier bound to the provider that can read it."""

    def __init__(self, path_string: str, provider: DrsFileSystemProvider):
        self.path_string = path_string
        self.provider = provider

    @property
    def name(self) -> str:
        return self.path_string.rstrip("/").rsplit("/", 1)[-1]

    @property
    def scheme(self) -> str:
        return self.path_string.split("://", 1)[0]

    def open_read(self) -> Deferred[ReadableChannel]:
        return self.provider.read(self.path_string)

    def __str__(self) -> str:
        return self.path_string

    def __repr__(self) -> str:
        return f"DrsPath({self.path_string!r})"

    def __eq__(self, other) -> bool:
        return isinstance(other, DrsPath) and other.path_string == self.path_string

    def __hash__(self) -> int:
        return hash(self.path_string)


class DrsPathBuilder:

    name = "DRS"

    def __init__(self, provider: DrsFileSystemProvider):
        self.provider = provider

    @staticmethod
    def accepts(path_string: str) -> bool:
        return isinstance(path_string, str) and any(
            path_string.startswith(prefix) and len(path_string) > len(prefix) for prefix in DRS_SCHEMES
        )

    def build(self, path_string: str) -> DrsPath:
        if not self.accepts(path_string):
            raise InvalidDrsPathError(path_string)
        return DrsPath(path_string, self.provider)


class _FactoryState:
    """Shared setup created once per factory."""

    def __init__(self, http_client: httpx.AsyncClient, scopes: Tuple[str, ...]):
        self.http_client = http_client
        self.scopes = scopes


class DrsPathBuilderFactory:

    def __init__(
        self,
        global_config: Union[Mapping[str, Any], GoogleConfiguration],
        instance_config: Union[Mapping[str, Any], DrsInstanceConfig],
        singleton_config: DrsFileSystemConfig,
        read_channel_factory: Optional[ReadChannelFactory] = None,
        http_client_factory: Optional[Callable[[DrsFileSystemConfig], httpx.AsyncClient]] = None,
    ):
        if isinstance(global_config, GoogleConfiguration):
            self.google_configuration = global_config
        else:
            self.google_configuration = GoogleConfiguration.from_config(global_config)
        if isinstance(instance_config, DrsInstanceConfig):
            self.instance_config = instance_config
        else:
            self.instance_config = DrsInstanceConfig.from_config(instance_config)
        self.singleton_config = singleton_config

        # Fails fast with AuthConfigurationError on an unknown auth name
        self.auth_mode = self.google_configuration.auth(self.instance_config.auth)

        self.read_channel_factory = read_channel_factory or ReadChannelFactory()
        self._http_client_factory = http_client_factory or _default_http_client
        self._state: Optional[_FactoryState] = None
        self._state_lock = threading.Lock()
        logger.info(f"[DRS] Path builder factory created with auth '{self.auth_mode.name}'")

    @property
    def initialized(self) -> bool:
        return self._state is not None

    def initialize(self) -> _FactoryState:
        """Create the shared HTTP client and scope list; later calls return the same state."""
        state = self._state
        if state is not None:
            return state
        with self._state_lock:
            if self._state is None:
                logger.debug("[DRS] Initializing HTTP client and Martha scopes")
                self._state = _FactoryState(
                    http_client=self._http_client_factory(self.singleton_config),
                    scopes=MARTHA_SCOPES,
                )
            return self._state

    async def with_options(self, options: Optional[Mapping[str, Any]] = None) -> DrsPathBuilder:
        state = self.initialize()
        # Building credentials can block on file reads or the metadata server
        credentials = await asyncio.to_thread(self.auth_mode.credentials, options or {}, state.scopes)
        provider = DrsFileSystemProvider(
            self.singleton_config,
            credentials,
            state.http_client,
            self.read_channel_factory,
        )
        return DrsPathBuilder(provider)

    async def aclose(self) -> None:
        with self._state_lock:
            state, self._state = self._state, None
        if state is not None:
            await state.http_client.aclose()


def _default_http_client(config: DrsFileSystemConfig) -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=config.timeout)


__all__ = [
    "DRS_SCHEMES",
    "MARTHA_SCOPES",
    "DrsPath",
    "DrsPathBuilder",
    "DrsPathBuilderFactory",
]
