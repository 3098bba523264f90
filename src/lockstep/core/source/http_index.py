"""HTTP registry index backed by ``httpx``.

Speaks the pub-style package listing API::

    GET {url}/api/packages/{name}
    Accept: application/vnd.pub.v2+json

    {"name": "http",
     "versions": [{"version": "1.2.0",
                   "pubspec": {...manifest...},
                   "archive_sha256": "<hex>"}]}

Transient failures (timeouts, connection errors, 429 and 5xx responses)
are retried here a bounded number of times. Whatever is still failing after
that surfaces as ``SourceQueryError``; the solver never retries on its own.
"""

from __future__ import annotations

import json
import logging
import time
from typing import Any, Sequence

import httpx

from lockstep.core.manifest import Manifest
from lockstep.core.source.base import sha256_fingerprint
from lockstep.core.source.hosted import HostedIndex, IndexEntry
from lockstep.core.version import Version
from lockstep.exceptions import ParseError, SourceQueryError

logger = logging.getLogger(__name__)

# Timeout for all registry HTTP requests (seconds).
DEFAULT_TIMEOUT: float = 30.0

# User-Agent sent with every request.
USER_AGENT: str = "lockstep/0.1"

ACCEPT: str = "application/vnd.pub.v2+json"

DEFAULT_RETRIES: int = 2

_RETRYABLE_STATUS = frozenset({429, 500, 502, 503, 504})


class HttpIndex(HostedIndex):
    """Registry index fetched over HTTP.

    Listings are fetched once per package name and kept for the lifetime of
    the index, so every query during one resolution sees the same snapshot.

    Args:
        url: Registry base URL.
        client: Optional preconfigured ``httpx.Client`` (tests pass one with
            a ``MockTransport``).
        retries: Extra attempts for retryable failures.
        backoff: Seconds to sleep before the first retry; doubles each time.
    """

    def __init__(
        self,
        url: str,
        *,
        client: httpx.Client | None = None,
        retries: int = DEFAULT_RETRIES,
        backoff: float = 0.5,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self.url = url.rstrip("/")
        self._client = client or httpx.Client(
            timeout=timeout,
            headers={"User-Agent": USER_AGENT, "Accept": ACCEPT},
            follow_redirects=True,
        )
        self._retries = retries
        self._backoff = backoff
        self._listings: dict[str, list[IndexEntry]] = {}

    def close(self) -> None:
        self._client.close()

    def entries(self, name: str) -> Sequence[IndexEntry]:
        listing = self._listings.get(name)
        if listing is None:
            listing = self._parse_listing(name, self._get_json(f"/api/packages/{name}"))
            self._listings[name] = listing
        return list(listing)

    def _get_json(self, path: str) -> Any:
        url = f"{self.url}{path}"
        delay = self._backoff
        for attempt in range(self._retries + 1):
            last_attempt = attempt == self._retries
            try:
                resp = self._client.get(url)
            except (httpx.TimeoutException, httpx.TransportError) as exc:
                logger.warning("Request error for %s: %s", url, exc)
                if last_attempt:
                    raise SourceQueryError(f"Could not reach {url}: {exc}", retryable=True) from exc
            else:
                if resp.status_code == 404:
                    raise SourceQueryError(f"Package not found at {url}")
                if resp.status_code in _RETRYABLE_STATUS:
                    logger.warning("HTTP %d from %s", resp.status_code, url)
                    if last_attempt:
                        raise SourceQueryError(
                            f"HTTP {resp.status_code} from {url}", retryable=True
                        )
                else:
                    try:
                        resp.raise_for_status()
                        return resp.json()
                    except httpx.HTTPStatusError as exc:
                        raise SourceQueryError(f"HTTP {resp.status_code} from {url}") from exc
                    except ValueError as exc:
                        raise SourceQueryError(f"Invalid JSON from {url}") from exc
            if delay > 0:
                time.sleep(delay)
            delay *= 2
        raise SourceQueryError(f"Could not fetch {url}", retryable=True)

    def _parse_listing(self, name: str, data: Any) -> list[IndexEntry]:
        if not isinstance(data, dict) or not isinstance(data.get("versions"), list):
            raise SourceQueryError(f"Malformed listing for {name!r} from {self.url}")
        entries: list[IndexEntry] = []
        for item in data["versions"]:
            try:
                version = Version.parse(str(item["version"]))
                pubspec = dict(item.get("pubspec") or {})
                pubspec.setdefault("name", name)
                pubspec.setdefault("version", str(version))
                manifest = Manifest.from_dict(pubspec, default_hosted_url=self.url)
            except (AttributeError, KeyError, TypeError, ParseError) as exc:
                # One bad version does not hide the rest of the listing.
                logger.warning("Skipping malformed version of %s: %s", name, exc)
                continue
            checksum = item.get("archive_sha256")
            fingerprint = (
                f"sha256:{checksum}"
                if checksum
                else sha256_fingerprint(json.dumps(pubspec, sort_keys=True, default=str))
            )
            entries.append(IndexEntry(version, manifest, fingerprint))
        return entries
