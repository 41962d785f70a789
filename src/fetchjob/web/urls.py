"""URL normalization for raw, possibly sloppy, input strings."""

import re

import httpx

from fetchjob.web.errors import URLParseError

_SCHEME_RE = re.compile(r"^[A-Za-z][A-Za-z0-9+.-]*://")
_SINGLE_SLASH_RE = re.compile(r"^(https?):/(?!/)", re.IGNORECASE)

ALLOWED_SCHEMES = ("http", "https")


def normalize_url(raw_url: str) -> httpx.URL:
    """Clean up a raw URL string and parse it.

    Example:
        Input:  '  //Example.COM/news '
        Output: https://example.com/news

    Raises URLParseError when the result has no host or an unsupported scheme.
    """
    cleaned = (raw_url or "").strip().strip("'\"").strip()
    if not cleaned:
        raise URLParseError("empty url", raw_url)

    cleaned = cleaned.replace("\\", "/")
    cleaned = _SINGLE_SLASH_RE.sub(r"\1://", cleaned)

    if cleaned.startswith("//"):
        cleaned = f"https:{cleaned}"
    elif not _SCHEME_RE.match(cleaned):
        cleaned = f"https://{cleaned}"

    try:
        url = httpx.URL(cleaned)
    except httpx.InvalidURL as exc:
        raise URLParseError(f"invalid url {raw_url!r}: {exc}", raw_url) from exc

    scheme = url.scheme.lower()
    if scheme not in ALLOWED_SCHEMES:
        raise URLParseError(f"unsupported scheme {scheme!r} in {raw_url!r}", raw_url)
    if not url.host:
        raise URLParseError(f"missing host in {raw_url!r}", raw_url)

    # httpx lower-cases the host already
    url = url.copy_with(scheme=scheme)
    if not url.path:
        url = url.copy_with(path="/")
    return url
