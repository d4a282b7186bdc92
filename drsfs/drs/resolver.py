"""
Resolution service adapter.

Posts a DRS path to Martha with the caller's bearer token and turns the
response into a DrsResolutionResult. Failures are classified and raised as
DrsResolutionError; nothing is retried here.
"""

from typing import Optional

import httpx
from pydantic import ValidationError

from drsfs.core.auth import ResolvedCredentials
from drsfs.core.config import DrsFileSystemConfig
from drsfs.core.errors import (
    DrsResolutionError,
    ErrorInfo,
    ErrorKind,
    classify_connection_error,
    classify_http_error,
)
from drsfs.core.logger import setup_logger
from drsfs.drs.models import DrsResolutionResult, MarthaResponse

logger = setup_logger(__name__, include_location=True)


class MarthaResolver:

    def __init__(self, http_client: httpx.AsyncClient, config: DrsFileSystemConfig):
        self._http_client = http_client
        self._config = config

    async def resolve(self, drs_path: str, credentials: ResolvedCredentials) -> DrsResolutionResult:
        token = await credentials.access_token()
        headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        }

        logger.debug(f"[MARTHA] Resolving {drs_path}")
        try:
            response = await self._http_client.post(
                self._config.resolver_url,
                json={"url": drs_path},
                headers=headers,
                timeout=self._config.timeout,
            )
        except httpx.HTTPError as e:
            logger.error(f"[MARTHA] Request for {drs_path} failed: {e}")
            raise DrsResolutionError(drs_path, classify_connection_error(e)) from e

        if response.status_code < 200 or response.status_code >= 300:
            message = _error_message(response)
            logger.error(f"[MARTHA] HTTP {response.status_code} resolving {drs_path}: {message}")
            raise DrsResolutionError(
                drs_path,
                classify_http_error(response.status_code, message, headers=dict(response.headers)),
            )

        try:
            body = MarthaResponse.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise DrsResolutionError(
                drs_path,
                ErrorInfo(
                    kind=ErrorKind.PARSE,
                    retryable=False,
                    code="MARTHA_BAD_RESPONSE",
                    message=f"Unexpected resolver response: {e}",
                    source="martha",
                    http_status=response.status_code,
                ),
            ) from e

        result = body.to_resolution_result()
        logger.info(
            f"[MARTHA] Resolved {drs_path}: {len(result.candidate_urls)} candidate url(s), "
            f"service account {'present' if result.service_account_key else 'absent'}"
        )
        return result


def _error_message(response) -> Optional[str]:
    try:
        body = response.json()
    except ValueError:
        return (response.text or "")[:500]
    if isinstance(body, dict):
        return body.get("message") or body.get("detail") or str(body)[:500]
    return str(body)[:500]
