"""
Google auth modes.

Supports:
- Application default credentials
- Service account key file from configuration
- User service account JSON passed as a workflow option
- OAuth refresh token passed as a workflow option
"""

import json
from typing import Any, Mapping, Sequence

import google.auth
from google.oauth2 import service_account
from google.oauth2 import credentials as oauth2_credentials

from drsfs.core.logger import setup_logger
from .providers import GoogleAuthMode, register_auth_mode

logger = setup_logger(__name__, include_location=True)

GOOGLE_TOKEN_URI = "https://oauth2.googleapis.com/token"

# Workflow option keys read by the option-dependent modes
USER_SERVICE_ACCOUNT_JSON = "user_service_account_json"
REFRESH_TOKEN = "refresh_token"


@register_auth_mode("application_default")
class ApplicationDefaultMode(GoogleAuthMode):

    def build_credentials(self, options: Mapping[str, Any], scopes: Sequence[str]):
        credentials, project = google.auth.default(scopes=list(scopes))
        logger.info(f"[AUTH] Google default credentials initialized for project: {project}")
        return credentials


@register_auth_mode("service_account")
class ServiceAccountMode(GoogleAuthMode):

    def build_credentials(self, options: Mapping[str, Any], scopes: Sequence[str]):
        json_file = self.auth_config.json_file
        logger.debug(f"[AUTH] Loading service account key file for auth '{self.name}'")
        credentials = service_account.Credentials.from_service_account_file(json_file, scopes=list(scopes))
        logger.info(f"[AUTH] Google service account credentials initialized for auth '{self.name}'")
        return credentials


@register_auth_mode("user_service_account")
class UserServiceAccountMode(GoogleAuthMode):
    """Service account JSON supplied per workflow under `user_service_account_json`."""

    requires_workflow_options = True

    def build_credentials(self, options: Mapping[str, Any], scopes: Sequence[str]):
        raw = self.option(options, USER_SERVICE_ACCOUNT_JSON)
        info = raw if isinstance(raw, dict) else json.loads(raw)
        return service_account.Credentials.from_service_account_info(info, scopes=list(scopes))


@register_auth_mode("refresh_token")
class RefreshTokenMode(GoogleAuthMode):
    """User OAuth credentials; the refresh token comes from the workflow options."""

    requires_workflow_options = True

    def build_credentials(self, options: Mapping[str, Any], scopes: Sequence[str]):
        return oauth2_credentials.Credentials(
            token=None,  # Will be refreshed
            refresh_token=self.option(options, REFRESH_TOKEN),
            token_uri=GOOGLE_TOKEN_URI,
            client_id=self.auth_config.client_id,
            client_secret=self.auth_config.client_secret,
            scopes=list(scopes),
        )
