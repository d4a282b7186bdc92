from typing import Iterable, Union

from drsfs.core.errors import UrlNotFoundError
from drsfs.drs.models import CandidateUrl


def select_url(drs_path: str, candidates: Iterable[Union[CandidateUrl, str]], scheme: str) -> str:
    """
    Return the first candidate url that starts with `scheme`.

    The test is a literal string prefix on the url, not a parsed scheme, and
    candidates are taken in resolver order.

    Raises:
        UrlNotFoundError: If no candidate url starts with `scheme`
    """
    for candidate in candidates:
        url = candidate.url if isinstance(candidate, CandidateUrl) else candidate
        if url.startswith(scheme):
            return url
    raise UrlNotFoundError(drs_path, scheme)
