from __future__ import annotations

import pytest

from domain.models import areas_key
from domain.page_context import PageContext, UnsupportedPageError, is_native_bypass, page_key_from_url


@pytest.mark.parametrize(
    ("url", "expected"),
    [
        ("https://example.com/news/today?ref=home#top", "example.com/news/today"),
        ("http://Example.COM", "example.com/"),
        ("https://docs.example.com:8443/a/b/", "docs.example.com/a/b/"),
        ("file:///home/user/page.html", "/home/user/page.html"),
    ],
)
def test_page_key_is_host_plus_path(url: str, expected: str) -> None:
    assert page_key_from_url(url) == expected


@pytest.mark.parametrize(
    "url", ["chrome://extensions", "edge://settings", "about:blank", "", "not a url"]
)
def test_system_pages_are_rejected(url: str) -> None:
    with pytest.raises(UnsupportedPageError):
        PageContext.from_url(url)


def test_areas_key_layout() -> None:
    assert areas_key(page_key_from_url("https://example.com/a")) == "areas_example.com/a"


@pytest.mark.parametrize(
    ("host", "expected"),
    [
        ("x.com", True),
        ("mobile.twitter.com", True),
        ("twitter.com", True),
        ("box.com", False),
        ("example.com", False),
        ("", False),
    ],
)
def test_native_bypass_matches_host_and_subdomains(host: str, expected: bool) -> None:
    assert is_native_bypass(host, ["x.com", "twitter.com"]) is expected
