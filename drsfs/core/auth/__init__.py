"""
drsfs authentication - Google auth modes selected by configured name.

- Auth mode abstraction and scheme registry
- Application default, service account, user service account and
  refresh token modes
- Shared, lazily refreshed credentials for the resolution service
"""

from .providers import GoogleAuthMode, ResolvedCredentials, get_auth_mode, register_auth_mode
from .google_provider import (
    ApplicationDefaultMode,
    ServiceAccountMode,
    UserServiceAccountMode,
    RefreshTokenMode,
    USER_SERVICE_ACCOUNT_JSON,
    REFRESH_TOKEN,
)

__all__ = [
    'GoogleAuthMode',
    'ResolvedCredentials',
    'get_auth_mode',
    'register_auth_mode',
    'ApplicationDefaultMode',
    'ServiceAccountMode',
    'UserServiceAccountMode',
    'RefreshTokenMode',
    'USER_SERVICE_ACCOUNT_JSON',
    'REFRESH_TOKEN',
]
