"""Web extractor — fetch a page over http(s) and keep its readable text.

Guards, all checked before the body is used:
  scheme        http / https
  address       every resolved IP must be public (no loopback, private,
                link-local, reserved, multicast or unspecified ranges)
  redirects     at most 3
  timeout       30 s
  content type  text/html or text/plain
  size          5 MB

Display name: ``<title>``, else ``og:title``, else the URL's hostname.
"""

from __future__ import annotations

import ipaddress
import socket
import urllib.error
import urllib.parse
import urllib.request

import html2text
from bs4 import BeautifulSoup

from lampbook.errors import ExtractionFailure
from lampbook.ingest.base import BaseExtractor, ExtractedDocument
from lampbook.ingest.chunker import normalize_whitespace
from lampbook.models import SourceKind

_USER_AGENT = "lampbook/0.1 (+https://github.com/lampbook/lampbook)"
_SIZE_LIMIT = 5 * 1024 * 1024
_FETCH_TIMEOUT = 30
_REDIRECT_LIMIT = 3
_SCHEMES = frozenset({"http", "https"})
_TEXT_TYPES = frozenset({"text/html", "text/plain"})
_NON_CONTENT_TAGS = ["head", "script", "style", "noscript", "nav", "header", "footer", "aside"]

_markdown = html2text.HTML2Text()
_markdown.body_width = 0
_markdown.ignore_links = True
_markdown.ignore_images = True
_markdown.ignore_emphasis = True


class SsrfError(ExtractionFailure):
    """The URL points at an internal network address."""


def _is_internal(ip: ipaddress.IPv4Address | ipaddress.IPv6Address) -> bool:
    return any(
        (
            ip.is_loopback,
            ip.is_private,
            ip.is_link_local,
            ip.is_reserved,
            ip.is_multicast,
            ip.is_unspecified,
        )
    )


class WebExtractor(BaseExtractor):
    """Extract readable text from a web page."""

    kind = SourceKind.URL

    def extract(self, location: str) -> ExtractedDocument:
        url = location.strip()
        self._validate_scheme(url)
        self._check_ssrf(url)
        body, content_type = self._fetch(url)
        text, title = self._to_plain_text(body, content_type)
        name = title or urllib.parse.urlparse(url).hostname or url
        text = normalize_whitespace(text)
        return ExtractedDocument(text=self._require_text(text, name), name=name, kind=self.kind)

    # ------------------------------------------------------------------
    # Guards
    # ------------------------------------------------------------------

    @staticmethod
    def _validate_scheme(url: str) -> None:
        scheme = urllib.parse.urlparse(url).scheme
        if scheme not in _SCHEMES:
            raise ExtractionFailure(
                f"URL scheme '{scheme}' is not supported; use http:// or https://."
            )

    @staticmethod
    def _check_ssrf(url: str) -> None:
        """Resolve the URL's host and refuse it if any address is internal.

        Raises:
            SsrfError: A resolved address is loopback, private, link-local or reserved.
            ExtractionFailure: The URL has no host, or the host does not resolve.
        """
        host = urllib.parse.urlparse(url).hostname
        if not host:
            raise ExtractionFailure(f"Invalid URL format: {url}")
        try:
            resolved = {info[4][0] for info in socket.getaddrinfo(host, None)}
        except socket.gaierror as exc:
            raise ExtractionFailure(f"Could not resolve host '{host}'.") from exc

        for address in resolved:
            try:
                ip = ipaddress.ip_address(address)
            except ValueError:
                continue
            if _is_internal(ip):
                raise SsrfError(
                    f"'{host}' resolves to a private address ({ip}); "
                    "internal network addresses cannot be fetched."
                )

    # ------------------------------------------------------------------
    # Fetch + convert
    # ------------------------------------------------------------------

    @staticmethod
    def _fetch(url: str) -> tuple[bytes, str]:
        """Download *url* and return ``(body, media_type)``."""
        opener = urllib.request.build_opener(_RedirectLimit(_REDIRECT_LIMIT))
        request = urllib.request.Request(url, headers={"User-Agent": _USER_AGENT})
        try:
            response = opener.open(request, timeout=_FETCH_TIMEOUT)
        except urllib.error.HTTPError as exc:
            raise ExtractionFailure(f"Failed to fetch URL: {exc.code} {exc.reason}") from exc
        except (urllib.error.URLError, TimeoutError) as exc:
            raise ExtractionFailure(f"Failed to fetch URL '{url}'.") from exc

        with response:
            media_type = response.headers.get("Content-Type", "text/html")
            media_type = media_type.partition(";")[0].strip().lower()
            if media_type not in _TEXT_TYPES:
                raise ExtractionFailure(
                    f"Content-Type '{media_type}' cannot be read as a page "
                    "(expected text/html or text/plain)."
                )
            body = response.read(_SIZE_LIMIT + 1)

        if len(body) > _SIZE_LIMIT:
            raise ExtractionFailure(f"Page is larger than the 5 MB limit: {url}")
        return body, media_type

    @staticmethod
    def _to_plain_text(body: bytes, content_type: str) -> tuple[str, str]:
        """Return ``(text, title)``; plain-text bodies have no title."""
        decoded = body.decode("utf-8", errors="replace")
        if content_type == "text/plain":
            return decoded, ""

        soup = BeautifulSoup(decoded, "html.parser")
        title = soup.title.get_text(strip=True) if soup.title else ""
        if not title:
            meta = soup.find("meta", attrs={"property": "og:title"})
            title = str(meta.get("content") or "").strip() if meta else ""

        for tag in soup.find_all(_NON_CONTENT_TAGS):
            tag.decompose()
        return _markdown.handle(str(soup)).strip(), title


class _RedirectLimit(urllib.request.HTTPRedirectHandler):
    """Follow at most *limit* redirects per request."""

    def __init__(self, limit: int) -> None:
        self._limit = limit
        self._followed = 0

    def redirect_request(self, req, fp, code, msg, headers, newurl):
        self._followed += 1
        if self._followed > self._limit:
            raise ExtractionFailure(f"Too many redirects while fetching '{req.full_url}'.")
        return super().redirect_request(req, fp, code, msg, headers, newurl)
