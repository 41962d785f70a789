"""Fetch jobs: one GET or POST with at most one https-to-http fallback."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta, timezone
from typing import Any

import httpx
import structlog

from fetchjob.config import settings
from fetchjob.web.errors import (
    BodyReadError,
    EmptyResponseError,
    ErrorKind,
    FetchError,
    TransportError,
    URLParseError,
    classify_tls_failure,
    is_redirect_rejection,
    mentions_unsupported_cancel,
)
from fetchjob.web.redirects import RedirectPolicy, dispatch
from fetchjob.web.runtime import ClientFactory, HostRuntime, StandaloneRuntime, default_client, select_transport
from fetchjob.web.urls import ALLOWED_SCHEMES, normalize_url

logger = structlog.get_logger()

STALE_AGE = timedelta(minutes=10)

# Last-Modified: Sat, 29 Aug 2015 21:15:39 GMT, or with a numeric offset such as +0200
_LAST_MODIFIED_RE = re.compile(
    r"^(?P<weekday>[A-Za-z]{3}), (?P<day>\d{2}) (?P<month>[A-Za-z]{3}) (?P<year>\d{4}) "
    r"(?P<hour>\d{2}):(?P<minute>\d{2}):(?P<second>\d{2}) (?P<zone>\S+)$"
)
_ZONE_NAME_RE = re.compile(r"^[A-Za-z]{3,5}$")
_ZONE_OFFSET_RE = re.compile(r"^(?P<sign>[+-])(?P<hours>\d{2})(?P<minutes>\d{2})$")

_WEEKDAYS = {"mon", "tue", "wed", "thu", "fri", "sat", "sun"}
_MONTHS = {
    name: number
    for number, name in enumerate(
        ("jan", "feb", "mar", "apr", "may", "jun", "jul", "aug", "sep", "oct", "nov", "dec"),
        start=1,
    )
}

_DISPATCH_ERRORS = (FetchError, httpx.HTTPError, OSError)
_READ_ERRORS = (httpx.HTTPError, httpx.StreamError, OSError)


@dataclass
class FetchJob:
    """Input of a single fetch.

    Either ``url`` or a prebuilt ``request`` must be given; the request wins
    when both are set. A job can be fetched only once.
    """

    url: str = ""
    request: httpx.Request | None = None
    timeout: float | None = None
    on_redirect: int = RedirectPolicy.FOLLOW
    force_protocol: str = ""
    force_https: bool = False
    context_token: Any = None
    log_level: int | None = None
    _used: bool = field(default=False, init=False, repr=False)

    def fetch(
        self,
        *,
        runtime: HostRuntime | None = None,
        client_factory: ClientFactory | None = None,
    ) -> FetchOutcome:
        return fetch(self, runtime=runtime, client_factory=client_factory)


@dataclass(frozen=True)
class FetchOutcome:
    """Result of a fetch job. ``error`` is None exactly when status and body are set."""

    request: httpx.Request | None
    status_code: int = 0
    body: bytes = b""
    modified: datetime | None = None
    messages: tuple[str, ...] = ()
    error: FetchError | None = None
    error_kind: ErrorKind | None = None
    transport: str | None = None
    fell_back: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def message(self) -> str:
        return "\n".join(self.messages)

    @property
    def body_preview(self) -> str:
        return ellipsize(self.body.decode("utf-8", errors="replace"), settings.preview_chars)


def ellipsize(text: str, limit: int) -> str:
    """Keep the head and tail of *text* around an ellipsis when it exceeds *limit*."""
    if limit <= 0 or len(text) <= limit:
        return text
    half = limit // 2
    return f"{text[:half]} ... {text[-half:]}"


def stale_timestamp(now: datetime | None = None) -> datetime:
    """Modification time signalling that cached content must be refreshed."""
    return (now or datetime.now(UTC)) - STALE_AGE


def _parse_zone(zone: str) -> timezone | None:
    # Zone names are taken at zero offset, whatever the abbreviation
    if _ZONE_NAME_RE.match(zone):
        return UTC
    match = _ZONE_OFFSET_RE.match(zone)
    if match is None:
        return None
    offset = timedelta(hours=int(match["hours"]), minutes=int(match["minutes"]))
    if offset >= timedelta(hours=24):
        return None
    return timezone(-offset if match["sign"] == "-" else offset)


def parse_last_modified(value: str | None) -> datetime | None:
    """Parse a Last-Modified header with a zone name or a numeric offset.

    Month and weekday names are matched without regard to locale. Returns None
    for a missing or unparsable header.
    """
    if not value:
        return None
    match = _LAST_MODIFIED_RE.match(value.strip())
    if match is None or match["weekday"].lower() not in _WEEKDAYS:
        return None
    month = _MONTHS.get(match["month"].lower())
    tz = _parse_zone(match["zone"])
    if month is None or tz is None:
        return None
    try:
        parsed = datetime(
            int(match["year"]),
            month,
            int(match["day"]),
            int(match["hour"]),
            int(match["minute"]),
            int(match["second"]),
            tzinfo=tz,
        )
    except ValueError:
        return None
    return parsed.astimezone(UTC)


def _set_scheme(request: httpx.Request, scheme: str) -> None:
    request.url = request.url.copy_with(scheme=scheme)


def _build_request(job: FetchJob, messages: list[str]) -> tuple[httpx.Request, bool]:
    """Return the outbound request and whether its protocol was forced."""
    if job.request is None:
        request = httpx.Request("GET", normalize_url(job.url))
    else:
        request = job.request
        if not request.url.scheme:
            _set_scheme(request, "https")

    if not request.url.path:
        request.url = request.url.copy_with(path="/")

    protocol = (job.force_protocol or "").strip()
    if len(protocol) > 1:
        protocol = protocol.removesuffix(":")
        if protocol in ALLOWED_SCHEMES:
            _set_scheme(request, protocol)
            messages.append(f"Forcing protocol {protocol!r}")
            return request, True
    return request, False


def _as_fetch_error(exc: BaseException) -> FetchError:
    if isinstance(exc, FetchError):
        return exc
    error = TransportError(str(exc) or type(exc).__name__)
    error.__cause__ = exc
    return error


def fetch(
    job: FetchJob,
    *,
    runtime: HostRuntime | None = None,
    client_factory: ClientFactory | None = None,
) -> FetchOutcome:
    """Run *job* once and return its outcome.

    Failures never propagate: they are stored on the outcome together with the
    diagnostic messages collected along the way.
    """
    if job._used:
        raise FetchError("fetch job already used")
    job._used = True

    runtime = runtime or StandaloneRuntime()
    messages: list[str] = []
    log_level = settings.log_level if job.log_level is None else job.log_level
    timeout = job.timeout or settings.default_timeout_seconds

    if log_level > 0:
        if job.request is not None:
            messages.append(f"orig req url: {job.request.url}")
        else:
            messages.append(f"orig str url: {job.url}")

    try:
        request, forced = _build_request(job, messages)
    except URLParseError as exc:
        logger.warning("URL parse failed", url=job.url, error=str(exc))
        messages.append(f"url parse failed: {exc}")
        return FetchOutcome(request=None, messages=tuple(messages), error=exc, error_kind=ErrorKind.PARSE)

    choice = select_transport(
        runtime,
        job.context_token,
        timeout,
        messages,
        client_factory=client_factory or default_client,
    )
    if runtime.is_dev_environment() and not job.force_https and not forced:
        _set_scheme(request, "http")
        messages.append("dev environment, downgraded to http")

    if log_level > 0:
        messages.append(f"url standardized to {request.url}")

    policy = RedirectPolicy.REJECT if job.on_redirect == RedirectPolicy.REJECT else RedirectPolicy.FOLLOW
    try:
        return _run(choice.client, request, policy, messages, transport=choice.name)
    finally:
        choice.client.close()


def _run(
    client: httpx.Client,
    request: httpx.Request,
    policy: RedirectPolicy,
    messages: list[str],
    *,
    transport: str,
) -> FetchOutcome:
    fell_back = False

    def failed(error: FetchError, kind: ErrorKind, modified: datetime | None = None) -> FetchOutcome:
        return FetchOutcome(
            request=request,
            modified=modified,
            messages=tuple(messages),
            error=error,
            error_kind=kind,
            transport=transport,
            fell_back=fell_back,
        )

    try:
        response = dispatch(client, request, policy, max_redirects=settings.max_redirects)
    except _DISPATCH_ERRORS as exc:
        first = _as_fetch_error(exc)

        if policy is RedirectPolicy.REJECT and is_redirect_rejection(first):
            logger.info("Fetch stopped by redirect", url=str(request.url))
            messages.append("First call failed due to redirect")
            return failed(first, ErrorKind.REDIRECT_REJECTED, stale_timestamp())

        signature = classify_tls_failure(first)
        if signature is None or request.url.scheme != "https":
            logger.warning("Fetch failed", url=str(request.url), error=str(first))
            messages.append(f"request failed: {first}")
            kind = ErrorKind.TRANSPORT if signature is None else ErrorKind.TLS_TRANSIENT
            return failed(first, kind)

        if request.method != "GET":
            # A consumed request body cannot be sent a second time
            logger.warning("No http fallback for non-GET request", url=str(request.url), method=request.method)
            messages.append(f"Cannot do https requests ({signature}). Possible reason: dev environment")
            if mentions_unsupported_cancel(first):
                messages.append("Did you forget to supply the execution context?")
            return failed(first, ErrorKind.TLS_TRANSIENT)

        _set_scheme(request, "http")
        fell_back = True
        logger.info("Falling back to http", url=str(request.url), signature=signature)
        try:
            response = dispatch(client, request, policy, max_redirects=settings.max_redirects)
        except _DISPATCH_ERRORS as retry_exc:
            second = _as_fetch_error(retry_exc)
            if policy is RedirectPolicy.REJECT and is_redirect_rejection(second):
                messages.append("GET fallback failed due to redirect")
                return failed(second, ErrorKind.REDIRECT_REJECTED, stale_timestamp())
            logger.warning("Fallback to http failed", url=str(request.url), error=str(second))
            messages.append(f"GET fallback to http failed with {second}")
            return failed(first, ErrorKind.FALLBACK_FAILED)

        logger.info("Fallback to http succeeded", url=str(request.url), after=str(first))
        messages.append(f"successful fallback to http {request.url} after {first}")

    if response is None:
        messages.append("response or response body was empty")
        return failed(EmptyResponseError("response or response body was nil"), ErrorKind.EMPTY_RESPONSE)

    try:
        body = response.read()
    except _READ_ERRORS as exc:
        error = BodyReadError(f"reading body failed: {exc}")
        error.__cause__ = exc
        messages.append(str(error))
        return failed(error, ErrorKind.BODY_READ)
    finally:
        response.close()

    modified = parse_last_modified(response.headers.get("Last-Modified"))
    logger.info("Fetched", url=str(request.url), status=response.status_code, bytes=len(body))
    return FetchOutcome(
        request=request,
        status_code=response.status_code,
        body=body,
        modified=modified,
        messages=tuple(messages),
        transport=transport,
        fell_back=fell_back,
    )
