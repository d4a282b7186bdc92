from drsfs.core.deferred import Deferred
from drsfs.core.errors import (
    DrsError,
    AuthConfigurationError,
    UrlNotFoundError,
    ServiceAccountMissingError,
    UnsupportedSchemeError,
    MalformedUrlError,
    DrsResolutionError,
    StorageReadError,
)
from drsfs.drs.path_builder import DrsPath, DrsPathBuilder, DrsPathBuilderFactory

__version__ = "0.1.0"

__all__ = [
    "Deferred",
    "DrsError",
    "AuthConfigurationError",
    "UrlNotFoundError",
    "ServiceAccountMissingError",
    "UnsupportedSchemeError",
    "MalformedUrlError",
    "DrsResolutionError",
    "StorageReadError",
    "DrsPath",
    "DrsPathBuilder",
    "DrsPathBuilderFactory",
]
