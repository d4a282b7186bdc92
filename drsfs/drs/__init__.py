"""
DRS filesystem: resolve DRS identifiers through Martha and open the winning
storage url for reading.

Key Components:
- select_url: first candidate url with the desired scheme prefix
- ReadChannelFactory: credential check, url selection, scheme-dispatched read backends
- MarthaResolver: resolution service adapter
- DrsFileSystemProvider: resolver + read interpreter as one deferred read
- DrsPathBuilderFactory: per-run entry point for the workflow engine
"""

from drsfs.drs.models import CandidateUrl, DrsResolutionResult, StorageObjectRef, MarthaResponse
from drsfs.drs.selector import select_url
from drsfs.drs.channels import (
    GCS_SCHEME,
    ReadBackend,
    GcsReadBackend,
    ReadChannelFactory,
    parse_gcs_url,
    load_credentials,
)
from drsfs.drs.resolver import MarthaResolver
from drsfs.drs.provider import DrsFileSystemProvider
from drsfs.drs.path_builder import DrsPath, DrsPathBuilder, DrsPathBuilderFactory, MARTHA_SCOPES

__all__ = [
    'CandidateUrl',
    'DrsResolutionResult',
    'StorageObjectRef',
    'MarthaResponse',
    'select_url',
    'GCS_SCHEME',
    'ReadBackend',
    'GcsReadBackend',
    'ReadChannelFactory',
    'parse_gcs_url',
    'load_credentials',
    'MarthaResolver',
    'DrsFileSystemProvider',
    'DrsPath',
    'DrsPathBuilder',
    'DrsPathBuilderFactory',
    'MARTHA_SCOPES',
]
