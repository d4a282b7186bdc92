from typing import Awaitable, Callable, Optional

import httpx

from drsfs.core.auth import ResolvedCredentials
from drsfs.core.config import DrsFileSystemConfig
from drsfs.core.deferred import Deferred
from drsfs.core.logger import setup_logger
from drsfs.core.logging_context import LoggingContext
from drsfs.drs.channels import ReadableChannel
from drsfs.drs.models import DrsResolutionResult
from drsfs.drs.resolver import MarthaResolver

logger = setup_logger(__name__, include_location=True)

ReadInterpreter = Callable[[str, DrsResolutionResult], Awaitable[ReadableChannel]]


class DrsFileSystemProvider:
    """
    Read side of the DRS filesystem: resolve a path through Martha, then
    hand the result to the read interpreter.

    Holds only immutable collaborators; every read gets its own deferred.
    """

    def __init__(
        self,
        config: DrsFileSystemConfig,
        credentials: ResolvedCredentials,
        http_client: httpx.AsyncClient,
        read_interpreter: ReadInterpreter,
        resolver: Optional[MarthaResolver] = None,
    ):
        self.config = config
        self.credentials = credentials
        self.http_client = http_client
        self.read_interpreter = read_interpreter
        self.resolver = resolver or MarthaResolver(http_client, config)

    def read(self, drs_path: str) -> Deferred[ReadableChannel]:
        async def _read() -> ReadableChannel:
            with LoggingContext(logger, drs_path=drs_path):
                resolution = await self.resolver.resolve(drs_path, self.credentials)
                channel = await self.read_interpreter(drs_path, resolution)
                logger.success(f"[DRS] Channel opened for {drs_path}")
                return channel

        return Deferred(_read, name=f"read:{drs_path}")
