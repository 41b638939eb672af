from __future__ import annotations

import logging
from typing import Any, Iterator, List, Optional, Protocol, Tuple

import requests
from requests.auth import HTTPBasicAuth

from ghbackup.masking import SecretMasker

DEFAULT_ACCEPT_HEADER = "application/vnd.github+json"
USER_AGENT = "ghbackup"
REQUEST_TIMEOUT = 30


class ListError(Exception):
    """Raised when repositories cannot be listed; fatal for the run."""


class Transport(Protocol):
    """Issues one HTTP request. ``requests.Session`` satisfies this."""

    def request(self, method: str, url: str, **kwargs: Any) -> requests.Response:
        ...


def default_transport() -> requests.Session:
    session = requests.Session()
    session.headers.update(
        {
            "Accept": DEFAULT_ACCEPT_HEADER,
            "User-Agent": USER_AGENT,
        }
    )
    return session


class GitHubAPI:
    def __init__(
        self,
        base_url: str,
        transport: Optional[Transport] = None,
        account: Optional[str] = None,
        secret: Optional[str] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._transport = transport or default_transport()
        self._auth = HTTPBasicAuth(account or "", secret) if secret else None
        self._masker = SecretMasker([secret] if secret else [])
        self._log = logging.getLogger(self.__class__.__name__)

    @property
    def base_url(self) -> str:
        return self._base_url

    def url(self, path: str) -> str:
        return f"{self._base_url}/{path.lstrip('/')}"

    def get(self, url: str) -> Tuple[Any, requests.Response]:
        try:
            response = self._transport.request(
                "GET",
                url,
                auth=self._auth,
                timeout=REQUEST_TIMEOUT,
            )
        except requests.RequestException as exc:
            raise ListError(self._masker.mask(f"Request to {url} failed: {exc}")) from exc

        if response.status_code >= 300:
            self._log.error("GitHub API request failed: %s %s", response.status_code, url)
            raise ListError(f"Bad response from {url}: {response.status_code} {response.reason}")

        try:
            payload = response.json()
        except ValueError as exc:
            raise ListError(f"Cannot decode JSON response from {url}: {exc}") from exc
        return payload, response

    def iterate_pages(self, url: str) -> Iterator[List[Any]]:
        next_url: Optional[str] = url
        while next_url:
            payload, response = self.get(next_url)
            if not isinstance(payload, list):
                raise ListError(f"Expected a JSON array from {next_url}")
            yield payload
            next_url = next_link(response.headers.get("Link"))


def next_link(link_header: Optional[str]) -> Optional[str]:
    """Return the URL of the first ``Link`` entry if it is ``rel="next"``."""
    if not link_header:
        return None
    first = link_header.split(",")[0]
    if 'rel="next"' not in first:
        return None
    target = first.split(";")[0].strip()
    if len(target) < 3 or not (target.startswith("<") and target.endswith(">")):
        return None
    return target[1:-1]
