"""
URL canonicalisation and variant expansion.

Search Console reports page URLs in whatever form Google indexed them, while
landing pages are stored as users typed them. Both sides are reduced to a
scheme-free key (host without www, lowercased path without trailing slash,
sorted query) before comparison.

Nothing in this module raises for string input: malformed URLs degrade to a
plain string transform.
"""

import logging
import re
from typing import Optional
from urllib.parse import SplitResult, parse_qsl, quote, unquote, urlencode, urljoin, urlsplit

logger = logging.getLogger(__name__)

# Locales tried when a path has no locale segment of its own
COMMON_LOCALES = ("de", "en", "fr", "es", "it")

_LOCALE_SEGMENT = re.compile(r"^/([a-z]{2})(/|$)", re.IGNORECASE)
_SCHEME = re.compile(r"^[a-z][a-z0-9+.\-]*://", re.IGNORECASE)
_PATH_SAFE = "/:@!$&'()*+,;=~"

# Base for path-only input; its host never appears in a key
_DUMMY_BASE = "http://dummy.invalid/"
_DUMMY_HOST = "dummy.invalid"


# ── Parsing ───────────────────────────────────────────────────────────────────

def _split(url: str) -> Optional[SplitResult]:
    """
    Parse into an http(s) SplitResult, or None when the input can't be read
    as one. Scheme-less "host/path" input is read as http, "/path" input is
    resolved against the dummy base.
    """
    url = url.strip()
    if url.startswith("//"):
        url = "http:" + url
    elif url.startswith("/"):
        url = urljoin(_DUMMY_BASE, url)
    elif not _SCHEME.match(url):
        url = "http://" + url

    try:
        parts = urlsplit(url)
        host = parts.hostname
    except ValueError:
        return None

    if parts.scheme.lower() not in ("http", "https") or not host:
        return None
    return parts


def _fallback_key(url: str) -> str:
    key = re.sub(r"^https?://", "", url.strip(), flags=re.IGNORECASE)
    key = re.sub(r"^(www\.)+", "", key, flags=re.IGNORECASE)
    return key.lower().split("#")[0].rstrip("/")


def _host_for_url(host: str) -> str:
    # urlsplit drops the brackets of an IPv6 literal
    return f"[{host}]" if ":" in host else host


def _canonical_path(path: str) -> str:
    path = quote(unquote(path).lower(), safe=_PATH_SAFE).lower()
    return path.rstrip("/") or "/"


def _canonical_query(query: str) -> str:
    if not query:
        return ""
    params = sorted(parse_qsl(query, keep_blank_values=True), key=lambda kv: kv[0])
    return "?" + urlencode(params) if params else ""


# ── Public API ────────────────────────────────────────────────────────────────

def normalize_url(url: str) -> str:
    """
    Reduce a URL to its canonical matching key: ``host + path + ?query``.

    The scheme and fragment are dropped, ``www.`` is stripped from the host,
    the path is lowercased and loses its trailing slashes (except root),
    and query parameters are sorted by key.
    """
    if not url:
        return ""

    parts = _split(url)
    if parts is None:
        return _fallback_key(url)

    try:
        host = parts.hostname.lower()
        while host.startswith("www."):
            host = host[4:]
        if host == _DUMMY_HOST:
            host = ""
        host = _host_for_url(host)
        return f"{host}{_canonical_path(parts.path)}{_canonical_query(parts.query)}"
    except (ValueError, UnicodeError):
        return _fallback_key(url)


def _toggle_slash(path: str) -> Optional[str]:
    if path == "/":
        return None
    return path[:-1] if path.endswith("/") else path + "/"


def _path_variants(path: str) -> list[str]:
    variants = [path]

    def add(p: str) -> None:
        for candidate in (p, _toggle_slash(p)):
            if candidate and candidate not in variants:
                variants.append(candidate)

    add(path)

    if _LOCALE_SEGMENT.match(path):
        # Only the leading segment is removed; deeper locale segments stay
        add(_LOCALE_SEGMENT.sub("/", path, count=1))
    else:
        for locale in COMMON_LOCALES:
            if path == "/":
                add(f"/{locale}/")
            else:
                add(f"/{locale}{path}")

    return variants


def generate_variants(url: str) -> set[str]:
    """
    Expand a URL into the absolute URLs a provider might report for it.

    protocol (http, https) x host (as given, www toggled) x path (as given,
    trailing slash toggled, leading locale removed or common locales added).
    Query string and fragment are carried over verbatim. Inputs that can't be
    parsed into a host yield ``{url}``.
    """
    if not url:
        return {url}

    parts = _split(url)
    if parts is None or parts.hostname == _DUMMY_HOST:
        return {url}

    try:
        host = parts.hostname.lower()
    except (ValueError, UnicodeError):
        return {url}

    if ":" in host:
        hosts = [_host_for_url(host)]
    else:
        hosts = [host, host[4:] if host.startswith("www.") else f"www.{host}"]
    paths = _path_variants(parts.path or "/")
    suffix = (f"?{parts.query}" if parts.query else "") + (f"#{parts.fragment}" if parts.fragment else "")

    variants = set()
    for protocol in ("https://", "http://"):
        for h in hosts:
            for p in paths:
                variants.add(f"{protocol}{h}{p}{suffix}")
    return variants


def urls_match(url_a: str, url_b: str) -> bool:
    return normalize_url(url_a) == normalize_url(url_b)


def debug_url_matching(url: str) -> dict:
    """Summary of how a URL is keyed and expanded, for diagnosing missed matches."""
    variants = sorted(generate_variants(url))
    normalized = sorted({normalize_url(v) for v in variants})
    return {
        "original":           url,
        "normalized":         normalize_url(url),
        "variant_count":      len(variants),
        "sample_variants":    variants[:10],
        "normalized_variants": normalized[:10],
    }
