import io
import json
from unittest.mock import patch

import pytest
from google.api_core.exceptions import Forbidden

from drsfs.core.errors import (
    ErrorKind,
    MalformedUrlError,
    ServiceAccountMissingError,
    StorageReadError,
    UnsupportedSchemeError,
    UrlNotFoundError,
)
from drsfs.core.logger import setup_logger
from drsfs.core.logging_context import LoggingContext, log_context
from drsfs.drs.channels import (
    GcsReadBackend,
    ReadBackend,
    ReadChannelFactory,
    load_credentials,
    parse_gcs_url,
)
from drsfs.drs.models import CandidateUrl, DrsResolutionResult

DRS_PATH = "drs://drs.example.org/object-123"
SERVICE_ACCOUNT = {
    "type": "service_account",
    "project_id": "test-project",
    "client_email": "reader@test-project.iam.gserviceaccount.com",
}
SA_BYTES = json.dumps(SERVICE_ACCOUNT).encode("utf-8")


def _result(*urls, key=SA_BYTES):
    return DrsResolutionResult(
        candidate_urls=tuple(CandidateUrl.from_url(u) for u in urls),
        service_account_key=key,
    )


class _FakeBlob:
    def __init__(self, data: bytes):
        self._data = data

    def open(self, mode="rb"):
        assert mode == "rb"
        return io.BytesIO(self._data)


class _FakeBucket:
    def __init__(self, objects, error=None):
        self._objects = objects
        self._error = error

    def get_blob(self, path):
        if self._error is not None:
            raise self._error
        data = self._objects.get(path)
        return _FakeBlob(data) if data is not None else None


class _FakeStorage:
    """Records every client built so tests can check credentials per call."""

    def __init__(self, buckets):
        self.buckets = buckets
        self.clients = []
        self.contexts = []
        self.error = None

    def __call__(self, credentials=None, project=None):
        self.clients.append((credentials, project))
        self.contexts.append(log_context.get())
        return self

    def bucket(self, name):
        return _FakeBucket(self.buckets.get(name, {}), self.error)


class _RecordingBackend(ReadBackend):
    scheme = "s3"

    def __init__(self):
        self.calls = []

    async def open_channel(self, url, credential_payload):
        self.calls.append((url, credential_payload))
        return io.BytesIO(b"s3-data")


def _fake_loader(calls):
    def _load(payload):
        calls.append(payload)
        return object(), json.loads(payload)["project_id"]
    return _load


class TestParseGcsUrl:

    def test_splits_bucket_and_object(self):
        ref = parse_gcs_url("gs://my-bucket/dir/file.txt")

        assert ref.bucket == "my-bucket"
        assert ref.object_path == "dir/file.txt"
        assert ref.uri == "gs://my-bucket/dir/file.txt"

    def test_bucket_only_is_malformed(self):
        with pytest.raises(MalformedUrlError) as exc_info:
            parse_gcs_url("gs://onlybucket")

        assert exc_info.value.url == "gs://onlybucket"

    def test_empty_object_is_malformed(self):
        with pytest.raises(MalformedUrlError):
            parse_gcs_url("gs://bucket/")

    def test_other_scheme_is_malformed(self):
        with pytest.raises(MalformedUrlError) as exc_info:
            parse_gcs_url("gsx://bucket/object")

        assert exc_info.value.url == "gsx://bucket/object"


class TestLoadCredentials:

    def test_service_account_payload(self):
        with patch(
            "google.oauth2.service_account.Credentials.from_service_account_info"
        ) as mock_from_info:
            credentials, project = load_credentials(SA_BYTES)

        mock_from_info.assert_called_once_with(SERVICE_ACCOUNT)
        assert credentials is mock_from_info.return_value
        assert project == "test-project"

    def test_authorized_user_payload(self):
        payload = json.dumps({
            "type": "authorized_user",
            "client_id": "cid",
            "client_secret": "secret",
            "refresh_token": "1//rt",
        }).encode("utf-8")

        credentials, project = load_credentials(payload)

        assert credentials.refresh_token == "1//rt"
        assert project is None

    def test_non_object_payload_rejected(self):
        with pytest.raises(ValueError):
            load_credentials(b"[1, 2]")


class TestReadChannelFactory:

    def _factory(self, storage, loader_calls):
        backend = GcsReadBackend(client_factory=storage, credentials_loader=_fake_loader(loader_calls))
        return ReadChannelFactory({"gs": backend})

    @pytest.mark.asyncio
    async def test_opens_first_gs_url(self):
        storage = _FakeStorage({"bucket-b": {"dir/file.txt": b"hello"}})
        loader_calls = []
        factory = self._factory(storage, loader_calls)

        channel = await factory.open(DRS_PATH, _result("s3://a/x", "gs://bucket-b/dir/file.txt", "gs://c/y"))

        assert channel.read() == b"hello"
        assert loader_calls == [SA_BYTES]
        assert storage.clients[0][1] == "test-project"

    @pytest.mark.asyncio
    async def test_nothing_happens_until_forced(self):
        storage = _FakeStorage({"bucket": {"file": b"data"}})
        loader_calls = []
        factory = self._factory(storage, loader_calls)

        deferred = factory.open(DRS_PATH, _result("gs://bucket/file"))

        assert loader_calls == []
        assert storage.clients == []
        assert (await deferred).read() == b"data"

    @pytest.mark.asyncio
    async def test_credentials_built_fresh_per_open(self):
        storage = _FakeStorage({"bucket": {"file": b"data"}})
        loader_calls = []
        factory = self._factory(storage, loader_calls)

        await factory.open(DRS_PATH, _result("gs://bucket/file"))
        await factory.open(DRS_PATH, _result("gs://bucket/file"))

        assert len(loader_calls) == 2
        assert storage.clients[0][0] is not storage.clients[1][0]

    @pytest.mark.asyncio
    async def test_missing_service_account_wins_over_urls(self):
        storage = _FakeStorage({})
        factory = self._factory(storage, [])

        for urls in [(), ("gs://bucket/file",), ("s3://bucket/file",)]:
            with pytest.raises(ServiceAccountMissingError) as exc_info:
                await factory.open(DRS_PATH, _result(*urls, key=None))
            assert exc_info.value.drs_path == DRS_PATH

        assert storage.clients == []

    @pytest.mark.asyncio
    async def test_no_matching_url(self):
        factory = self._factory(_FakeStorage({}), [])

        with pytest.raises(UrlNotFoundError):
            await factory.open(DRS_PATH, _result("s3://bucket/file"))

    @pytest.mark.asyncio
    async def test_unsupported_scheme_even_with_matching_url(self):
        factory = self._factory(_FakeStorage({}), [])

        with pytest.raises(UnsupportedSchemeError) as exc_info:
            await factory.open(DRS_PATH, _result("s3://bucket/file"), scheme="s3")

        assert exc_info.value.scheme == "s3"

    @pytest.mark.asyncio
    async def test_registered_backend_is_used(self):
        factory = self._factory(_FakeStorage({}), [])
        s3 = _RecordingBackend()
        factory.register("s3", s3)

        channel = await factory.open(DRS_PATH, _result("gs://b/o", "s3://bucket/file"), scheme="s3")

        assert channel.read() == b"s3-data"
        assert s3.calls == [("s3://bucket/file", SA_BYTES)]
        assert factory.schemes == ["gs", "s3"]

    @pytest.mark.asyncio
    async def test_malformed_gs_url(self):
        factory = self._factory(_FakeStorage({}), [])

        with pytest.raises(MalformedUrlError):
            await factory.open(DRS_PATH, _result("gs://onlybucket"))

    @pytest.mark.asyncio
    async def test_missing_object_is_classified_not_found(self):
        factory = self._factory(_FakeStorage({"bucket": {}}), [])

        with pytest.raises(StorageReadError) as exc_info:
            await factory.open(DRS_PATH, _result("gs://bucket/missing.txt"))

        assert exc_info.value.kind == ErrorKind.NOT_FOUND
        assert exc_info.value.retryable is False
        assert isinstance(exc_info.value.__cause__, FileNotFoundError)
        assert exc_info.value.to_error_info().details["url"] == "gs://bucket/missing.txt"

    @pytest.mark.asyncio
    async def test_storage_permission_failure_is_classified(self):
        storage = _FakeStorage({"bucket": {}})
        storage.error = Forbidden("reader does not have storage.objects.get access to the object")
        factory = self._factory(storage, [])

        with pytest.raises(StorageReadError) as exc_info:
            await factory.open(DRS_PATH, _result("gs://bucket/file"))

        assert exc_info.value.kind == ErrorKind.STORAGE_ACCESS
        assert exc_info.value.info.code == "STORAGE_ACCESS"
        assert exc_info.value.__cause__ is storage.error

    @pytest.mark.asyncio
    async def test_selected_url_with_longer_scheme_is_malformed(self):
        storage = _FakeStorage({"bucket": {"file": b"data"}})
        factory = self._factory(storage, [])

        with pytest.raises(MalformedUrlError):
            await factory.open(DRS_PATH, _result("gsx://bucket/file", "gs://bucket/file"))

        assert storage.clients == []

    @pytest.mark.asyncio
    async def test_storage_calls_keep_logging_context(self):
        storage = _FakeStorage({"bucket": {"file": b"data"}})
        factory = self._factory(storage, [])

        with LoggingContext(setup_logger("drsfs.tests.channels"), drs_path=DRS_PATH):
            await factory.open(DRS_PATH, _result("gs://bucket/file"))

        assert storage.contexts == [{"drs_path": DRS_PATH}]

    @pytest.mark.asyncio
    async def test_callable_as_read_interpreter(self):
        factory = self._factory(_FakeStorage({"bucket": {"file": b"data"}}), [])

        channel = await factory(DRS_PATH, _result("gs://bucket/file"))

        assert channel.read() == b"data"
