"""
DRS resolution models.

Two layers:
- The resolution service (Martha) response as it arrives on the wire
- The immutable DrsResolutionResult the read pipeline consumes
"""

import json
from typing import Any, Dict, List, Optional, Tuple
from pydantic import BaseModel, ConfigDict, Field


class CandidateUrl(BaseModel):
    """One (scheme, url) candidate returned by the resolver, in resolver order."""
    model_config = ConfigDict(frozen=True)

    scheme: str
    url: str

    @classmethod
    def from_url(cls, url: str) -> "CandidateUrl":
        scheme = url.split("://", 1)[0] if "://" in url else ""
        return cls(scheme=scheme, url=url)


class DrsResolutionResult(BaseModel):
    """
    Outcome of one resolution call. The candidate list may be empty and the
    service account key may be absent; the read pipeline checks both.
    """
    model_config = ConfigDict(frozen=True)

    candidate_urls: Tuple[CandidateUrl, ...] = Field(default_factory=tuple)
    service_account_key: Optional[bytes] = Field(
        default=None,
        description="Raw credential payload (service account JSON bytes)"
    )

    @property
    def urls(self) -> List[str]:
        return [c.url for c in self.candidate_urls]


class StorageObjectRef(BaseModel):
    """Bucket and object path parsed from a storage url."""
    model_config = ConfigDict(frozen=True)

    bucket: str
    object_path: str
    scheme: str = "gs"

    @property
    def uri(self) -> str:
        return f"{self.scheme}://{self.bucket}/{self.object_path}"


class MarthaUrl(BaseModel):
    url: str


class MarthaDataObject(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    urls: List[MarthaUrl] = Field(default_factory=list)
    size: Optional[int] = None
    checksums: Optional[List[Dict[str, Any]]] = None


class MarthaDosObject(BaseModel):
    data_object: MarthaDataObject


class MarthaServiceAccount(BaseModel):
    data: Any


class MarthaResponse(BaseModel):
    """Martha v2 response body."""
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    dos: MarthaDosObject
    google_service_account: Optional[MarthaServiceAccount] = Field(
        default=None, alias="googleServiceAccount"
    )

    def to_resolution_result(self) -> DrsResolutionResult:
        key = None
        if self.google_service_account is not None and self.google_service_account.data is not None:
            data = self.google_service_account.data
            if isinstance(data, (bytes, bytearray)):
                key = bytes(data)
            elif isinstance(data, str):
                key = data.encode("utf-8")
            else:
                key = json.dumps(data).encode("utf-8")
        return DrsResolutionResult(
            candidate_urls=tuple(CandidateUrl.from_url(u.url) for u in self.dos.data_object.urls),
            service_account_key=key,
        )


__all__ = [
    "CandidateUrl",
    "DrsResolutionResult",
    "StorageObjectRef",
    "MarthaUrl",
    "MarthaDataObject",
    "MarthaDosObject",
    "MarthaServiceAccount",
    "MarthaResponse",
]
