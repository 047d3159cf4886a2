from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from urllib.parse import urlparse

SUPPORTED_SCHEMES = frozenset({"http", "https", "file"})
DEFAULT_NATIVE_BYPASS_HOSTS = ("x.com", "twitter.com")


class UnsupportedPageError(ValueError):
    """Raised for browser-internal pages where no engine can run."""


@dataclass(frozen=True)
class PageContext:
    host: str
    path: str

    @property
    def page_key(self) -> str:
        return f"{self.host}{self.path}"

    @classmethod
    def from_url(cls, url: str) -> PageContext:
        raw = str(url or "").strip()
        parsed = urlparse(raw)
        scheme = parsed.scheme.lower()
        if scheme not in SUPPORTED_SCHEMES:
            msg = f"Cannot run on system pages: {raw or '<empty>'}"
            raise UnsupportedPageError(msg)
        host = (parsed.hostname or "").lower()
        if scheme != "file" and not host:
            msg = f"URL has no host: {raw}"
            raise UnsupportedPageError(msg)
        return cls(host=host, path=parsed.path or "/")


def page_key_from_url(url: str) -> str:
    return PageContext.from_url(url).page_key


def is_native_bypass(host: str, bypass_hosts: Iterable[str]) -> bool:
    normalized = str(host or "").strip().lower()
    if not normalized:
        return False
    for candidate in bypass_hosts:
        bypass = str(candidate or "").strip().lower()
        if not bypass:
            continue
        if normalized == bypass or normalized.endswith(f".{bypass}"):
            return True
    return False
