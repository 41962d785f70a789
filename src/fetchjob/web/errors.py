"""Error taxonomy and failure classification for fetch jobs."""

from __future__ import annotations

from enum import Enum

REDIRECT_CANCELLED = "redirect cancelled"

# Substrings identifying the two transient TLS failures that allow a fallback
# to plain http. The first entry of each group is the text reported by hosted
# runtimes; the rest are what OpenSSL reports for the same condition.
TLS_FAILURE_SIGNATURES: dict[str, tuple[str, ...]] = {
    "certificate": (
        "SSL_CERTIFICATE_ERROR",
        "CERTIFICATE_VERIFY_FAILED",
    ),
    "oversized_record": (
        "tls: oversized record received with length",
        "WRONG_VERSION_NUMBER",
    ),
}

UNSUPPORTED_CANCEL_SIGNATURE = "doesn't support CancelRequest"


class ErrorKind(Enum):
    PARSE = "parse"
    REDIRECT_REJECTED = "redirect_rejected"
    TLS_TRANSIENT = "tls_transient"
    FALLBACK_FAILED = "fallback_failed"
    EMPTY_RESPONSE = "empty_response"
    BODY_READ = "body_read"
    TRANSPORT = "transport"


class FetchError(RuntimeError):
    """Base class for failures stored on a fetch outcome."""


class URLParseError(FetchError):
    """The input URL could not be normalized."""

    def __init__(self, message: str, raw_url: str):
        self.raw_url = raw_url
        super().__init__(message)


class RedirectRejected(FetchError):
    """A redirect was seen while the job's policy forbids it."""

    def __init__(self, chain: list[str]):
        self.chain = chain
        trail = "\n" + "".join(f"{path}\n" for path in chain)
        super().__init__(f"{REDIRECT_CANCELLED} {trail}")


class TransportError(FetchError):
    """The client failed to dispatch the request."""


class EmptyResponseError(FetchError):
    """The client reported success but produced no response body."""


class BodyReadError(FetchError):
    """Reading the response body failed."""


def _error_texts(exc: BaseException) -> list[str]:
    texts: list[str] = []
    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        texts.append(str(current))
        current = current.__cause__ or current.__context__
    return texts


def classify_tls_failure(exc: BaseException) -> str | None:
    """Return the name of the TLS failure signature *exc* matches, if any."""
    for text in _error_texts(exc):
        for name, signatures in TLS_FAILURE_SIGNATURES.items():
            if any(sig in text for sig in signatures):
                return name
    return None


def is_redirect_rejection(exc: BaseException) -> bool:
    if isinstance(exc, RedirectRejected):
        return True
    return any(REDIRECT_CANCELLED in text for text in _error_texts(exc))


def mentions_unsupported_cancel(exc: BaseException) -> bool:
    return any(UNSUPPORTED_CANCEL_SIGNATURE in text for text in _error_texts(exc))
