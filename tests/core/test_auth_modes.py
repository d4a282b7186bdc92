"""
Unit tests for the Google auth modes selected by configured auth name.
"""

import asyncio
import json
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import MagicMock, patch

import pytest

from drsfs.core.auth import (
    ApplicationDefaultMode,
    RefreshTokenMode,
    ResolvedCredentials,
    ServiceAccountMode,
    UserServiceAccountMode,
    get_auth_mode,
)
from drsfs.core.config import GoogleAuthConfig
from drsfs.core.errors import AuthConfigurationError, WorkflowOptionMissingError

SCOPES = ("https://www.googleapis.com/auth/userinfo.email",)


class TestAuthModeRegistry:

    def test_builtin_schemes_resolve(self):
        cases = {
            "application_default": ApplicationDefaultMode,
            "user_service_account": UserServiceAccountMode,
        }
        for scheme, expected in cases.items():
            mode = get_auth_mode(GoogleAuthConfig(name=f"auth-{scheme}", scheme=scheme))
            assert isinstance(mode, expected)
            assert mode.name == f"auth-{scheme}"

    def test_unregistered_scheme_fails(self):
        config = GoogleAuthConfig(name="x", scheme="kerberos")

        with pytest.raises(AuthConfigurationError):
            get_auth_mode(config)


class TestApplicationDefaultMode:

    def test_credentials_built_once(self):
        mode = get_auth_mode(GoogleAuthConfig(name="adc", scheme="application_default"))
        google_credentials = MagicMock()

        with patch("google.auth.default", return_value=(google_credentials, "proj")) as mock_default:
            first = mode.credentials({}, SCOPES)
            second = mode.credentials({"unrelated": "option"}, SCOPES)

        assert first is second
        assert first.credentials is google_credentials
        assert first.scopes == SCOPES
        mock_default.assert_called_once_with(scopes=list(SCOPES))

    def test_concurrent_first_use_builds_once(self):
        mode = get_auth_mode(GoogleAuthConfig(name="adc", scheme="application_default"))
        barrier = threading.Barrier(4)
        calls = []

        def slow_default(scopes=None):
            calls.append(scopes)
            time.sleep(0.05)
            return MagicMock(), "proj"

        def race():
            barrier.wait()
            return mode.credentials({}, SCOPES)

        with patch("google.auth.default", side_effect=slow_default):
            with ThreadPoolExecutor(max_workers=4) as pool:
                results = list(pool.map(lambda _: race(), range(4)))

        assert len(calls) == 1
        assert all(r is results[0] for r in results)


class TestServiceAccountMode:

    def test_loads_configured_key_file(self):
        mode = get_auth_mode(GoogleAuthConfig(name="sa", scheme="service_account", json_file="/keys/sa.json"))

        with patch(
            "google.oauth2.service_account.Credentials.from_service_account_file"
        ) as mock_from_file:
            resolved = mode.credentials({}, SCOPES)

        assert isinstance(mode, ServiceAccountMode)
        mock_from_file.assert_called_once_with("/keys/sa.json", scopes=list(SCOPES))
        assert resolved.credentials is mock_from_file.return_value


class TestUserServiceAccountMode:

    def test_reads_json_from_workflow_options(self):
        mode = get_auth_mode(GoogleAuthConfig(name="usa", scheme="user_service_account"))
        key = {"type": "service_account", "client_email": "sa@example.iam.gserviceaccount.com"}

        with patch(
            "google.oauth2.service_account.Credentials.from_service_account_info"
        ) as mock_from_info:
            first = mode.credentials({"user_service_account_json": json.dumps(key)}, SCOPES)
            second = mode.credentials({"user_service_account_json": json.dumps(key)}, SCOPES)

        assert first is not second
        assert mock_from_info.call_count == 2
        mock_from_info.assert_called_with(key, scopes=list(SCOPES))

    def test_missing_option_fails(self):
        mode = get_auth_mode(GoogleAuthConfig(name="usa", scheme="user_service_account"))

        with pytest.raises(WorkflowOptionMissingError) as exc_info:
            mode.credentials({}, SCOPES)

        assert exc_info.value.key == "user_service_account_json"


class TestRefreshTokenMode:

    def test_builds_oauth_credentials(self):
        mode = get_auth_mode(GoogleAuthConfig(
            name="rt", scheme="refresh_token", client_id="cid", client_secret="secret",
        ))

        resolved = mode.credentials({"refresh_token": "1//refresh"}, SCOPES)

        assert isinstance(mode, RefreshTokenMode)
        assert resolved.credentials.refresh_token == "1//refresh"
        assert resolved.credentials.client_id == "cid"

    def test_blank_refresh_token_fails(self):
        mode = get_auth_mode(GoogleAuthConfig(
            name="rt", scheme="refresh_token", client_id="cid", client_secret="secret",
        ))

        with pytest.raises(WorkflowOptionMissingError):
            mode.credentials({"refresh_token": "  "}, SCOPES)


class TestResolvedCredentials:

    @pytest.mark.asyncio
    async def test_refreshes_invalid_credentials(self):
        google_credentials = MagicMock()
        google_credentials.valid = False
        google_credentials.token = "access-token"
        resolved = ResolvedCredentials(google_credentials, SCOPES, "adc")

        token = await resolved.access_token()

        assert token == "access-token"
        google_credentials.refresh.assert_called_once()

    @pytest.mark.asyncio
    async def test_valid_credentials_are_not_refreshed(self):
        google_credentials = MagicMock()
        google_credentials.valid = True
        google_credentials.token = "cached-token"
        resolved = ResolvedCredentials(google_credentials, SCOPES, "adc")

        tokens = await asyncio.gather(resolved.access_token(), resolved.access_token())

        assert tokens == ["cached-token", "cached-token"]
        google_credentials.refresh.assert_not_called()
