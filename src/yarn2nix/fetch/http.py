"""Streaming HTTP fetch that computes the SHA-1 of an archive."""

from __future__ import annotations

import hashlib
from collections.abc import Callable
from typing import Any
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from yarn2nix.errors import FetchError
from yarn2nix.policy import Policy, ensure_network_allowed

CHUNK_SIZE = 64 * 1024
DEFAULT_TIMEOUT = 60.0
USER_AGENT = "yarn2nix"

Opener = Callable[..., Any]


def fetch_sha1(
    url: str,
    *,
    timeout: float | None = DEFAULT_TIMEOUT,
    policy: Policy | None = None,
    opener: Opener = urlopen,
) -> str:
    """Download *url* and return the hex SHA-1 of its body."""
    if policy is not None:
        ensure_network_allowed(policy=policy, operation="fetch")
    request = Request(url, headers={"User-Agent": USER_AGENT})
    digest = hashlib.sha1()
    try:
        with opener(request, timeout=timeout) as response:
            status = getattr(response, "status", None) or 200
            if not 200 <= status < 300:
                _drain(response)
                raise _status_error(url, status)
            for chunk in iter(lambda: response.read(CHUNK_SIZE), b""):
                digest.update(chunk)
    except HTTPError as exc:
        with exc:
            _drain(exc)
        raise _status_error(url, exc.code) from exc
    except (URLError, OSError) as exc:
        raise FetchError(
            "Request failed.",
            hint="Check network connectivity or raise --timeout.",
            context={"operation": "fetch", "url": url, "reason": str(getattr(exc, "reason", exc))},
        ) from exc
    return digest.hexdigest()


def _drain(response: Any) -> None:
    # discard the body so the connection is released
    while response.read(CHUNK_SIZE):
        pass


def _status_error(url: str, status: int) -> FetchError:
    return FetchError(
        "Request failed.",
        status=status,
        hint="Ensure the resolved location is still published.",
        context={"operation": "fetch", "url": url, "status": str(status)},
    )
