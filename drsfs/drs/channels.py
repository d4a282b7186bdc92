"""
Read channels for resolved DRS objects.

ReadChannelFactory turns a resolution result into a readable byte stream:
1. the resolver must have returned a credential payload
2. the first url matching the desired scheme is selected
3. the url is handed to the read backend registered for that scheme

Backends:
- gs: Google Cloud Storage (blob reader at offset 0)

Adding a backend means registering it, e.g.
    factory.register("s3", MyS3ReadBackend())
"""

import asyncio
import json
from abc import ABC, abstractmethod
from typing import BinaryIO, Callable, Dict, Optional, Tuple

from google.api_core.exceptions import GoogleAPIError
from google.auth.exceptions import GoogleAuthError
from google.cloud import storage
from google.oauth2 import service_account
from google.oauth2 import credentials as oauth2_credentials

from drsfs.core.deferred import Deferred
from drsfs.core.errors import (
    MalformedUrlError,
    ServiceAccountMissingError,
    StorageReadError,
    UnsupportedSchemeError,
    classify_storage_error,
)
from drsfs.core.logger import setup_logger
from drsfs.drs.models import DrsResolutionResult, StorageObjectRef
from drsfs.drs.selector import select_url

logger = setup_logger(__name__, include_location=True)

GCS_SCHEME = "gs"
GOOGLE_TOKEN_URI = "https://oauth2.googleapis.com/token"

# Readable byte stream handed to the caller; the caller closes it.
ReadableChannel = BinaryIO


class ReadBackend(ABC):
    """Opens a readable channel for a url of one storage scheme."""

    scheme: str = ""

    @abstractmethod
    async def open_channel(self, url: str, credential_payload: bytes) -> ReadableChannel:
        pass


def parse_gcs_url(url: str) -> StorageObjectRef:
    """
    Split `gs://bucket/path/to/object` into bucket and object path.

    Raises:
        MalformedUrlError: If the url lacks the gs:// prefix, has no `/` after
            the bucket, or either part is empty
    """
    prefix = f"{GCS_SCHEME}://"
    if not url.startswith(prefix):
        raise MalformedUrlError(url, f"expected a {prefix} url")
    remainder = url[len(prefix):]
    parts = remainder.split("/", 1)
    if len(parts) != 2:
        raise MalformedUrlError(url, "no object path after the bucket name")
    bucket, object_path = parts
    if not bucket or not object_path:
        raise MalformedUrlError(url, "bucket and object path must both be non-empty")
    return StorageObjectRef(bucket=bucket, object_path=object_path, scheme=GCS_SCHEME)


def load_credentials(credential_payload: bytes) -> Tuple[object, Optional[str]]:
    """
    Build Google credentials from raw credential JSON.

    Returns (credentials, project_id). Built fresh on every call; nothing is
    cached across reads.
    """
    info = json.loads(credential_payload.decode("utf-8"))
    if not isinstance(info, dict):
        raise ValueError("Credential payload must be a JSON object")
    if info.get('type') == 'authorized_user':
        credentials = oauth2_credentials.Credentials(
            token=None,  # Will be refreshed
            refresh_token=info.get('refresh_token'),
            token_uri=GOOGLE_TOKEN_URI,
            client_id=info.get('client_id'),
            client_secret=info.get('client_secret'),
        )
        return credentials, info.get('quota_project_id')
    credentials = service_account.Credentials.from_service_account_info(info)
    return credentials, info.get('project_id')


class GcsReadBackend(ReadBackend):
    """Google Cloud Storage reads with per-call service account credentials."""

    scheme = GCS_SCHEME

    def __init__(
        self,
        client_factory: Callable[..., storage.Client] = storage.Client,
        credentials_loader: Callable[[bytes], Tuple[object, Optional[str]]] = load_credentials,
    ):
        self._client_factory = client_factory
        self._credentials_loader = credentials_loader

    def _open(self, ref: StorageObjectRef, credential_payload: bytes) -> ReadableChannel:
        credentials, project = self._credentials_loader(credential_payload)
        # Anonymous project parameter avoids an ADC project lookup
        client = self._client_factory(credentials=credentials, project=project or '_')
        blob = client.bucket(ref.bucket).get_blob(ref.object_path)
        if blob is None:
            raise FileNotFoundError(f"GCS object not found: {ref.uri}")
        logger.info(f"[GCS] Opening reader for {ref.uri}")
        return blob.open("rb")

    async def open_channel(self, url: str, credential_payload: bytes) -> ReadableChannel:
        ref = parse_gcs_url(url)
        try:
            # Storage client calls are sync; to_thread keeps the logging context
            return await asyncio.to_thread(self._open, ref, credential_payload)
        except (FileNotFoundError, GoogleAPIError, GoogleAuthError) as e:
            info = classify_storage_error(e)
            logger.error(f"[GCS] Failed to open {url}: {info.code} {info.message}")
            raise StorageReadError(url, info) from e


def default_backends() -> Dict[str, ReadBackend]:
    return {GCS_SCHEME: GcsReadBackend()}


class ReadChannelFactory:
    """Scheme-dispatching channel opener used as the DRS read interpreter."""

    def __init__(self, backends: Optional[Dict[str, ReadBackend]] = None, scheme: str = GCS_SCHEME):
        self._backends: Dict[str, ReadBackend] = dict(default_backends() if backends is None else backends)
        self.scheme = scheme

    def register(self, scheme: str, backend: ReadBackend) -> None:
        self._backends[scheme] = backend
        logger.debug(f"[DRS] Registered read backend for scheme: {scheme}")

    @property
    def schemes(self):
        return sorted(self._backends)

    def open(
        self,
        drs_path: str,
        resolution: DrsResolutionResult,
        scheme: Optional[str] = None,
    ) -> Deferred[ReadableChannel]:
        desired = scheme or self.scheme

        async def _open_channel() -> ReadableChannel:
            credential_payload = resolution.service_account_key
            if not credential_payload:
                raise ServiceAccountMissingError(drs_path)

            url = select_url(drs_path, resolution.candidate_urls, desired)

            backend = self._backends.get(desired)
            if backend is None:
                raise UnsupportedSchemeError(desired)

            logger.debug(f"[DRS] {drs_path} -> {url}")
            return await backend.open_channel(url, credential_payload)

        return Deferred(_open_channel, name=f"open:{drs_path}")

    async def __call__(self, drs_path: str, resolution: DrsResolutionResult) -> ReadableChannel:
        return await self.open(drs_path, resolution)
