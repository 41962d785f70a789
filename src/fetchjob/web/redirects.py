"""Redirect policy for fetch jobs."""

from __future__ import annotations

from collections.abc import Callable
from enum import IntEnum

import httpx
import structlog

from fetchjob.web.errors import RedirectRejected

logger = structlog.get_logger()

RedirectCheck = Callable[[httpx.Request, list[httpx.Request]], None]


class RedirectPolicy(IntEnum):
    FOLLOW = 0
    REJECT = 1


def check_redirect(target: httpx.Request, via: list[httpx.Request]) -> None:
    """Reject every redirect except a single hop from /path to /path/.

    *via* holds the requests already sent, oldest first. Raises RedirectRejected
    carrying the visited paths followed by the target path.
    """
    if len(via) == 1 and target.url.path == via[0].url.path + "/":
        return
    chain = [req.url.path for req in via]
    chain.append(target.url.path)
    raise RedirectRejected(chain)


def send_with_redirect_check(
    client: httpx.Client,
    request: httpx.Request,
    check: RedirectCheck,
    *,
    max_redirects: int,
) -> httpx.Response:
    """Send *request*, calling *check* before following each redirect hop.

    The returned response is streamed and still open; the caller closes it.
    """
    via: list[httpx.Request] = []
    while True:
        response = client.send(request, stream=True, follow_redirects=False)
        next_request = response.next_request
        if next_request is None:
            return response
        response.close()

        if len(via) >= max_redirects:
            raise httpx.TooManyRedirects("Exceeded maximum allowed redirects.", request=request)

        via.append(request)
        logger.debug("Redirect hop", source=str(request.url), target=str(next_request.url))
        check(next_request, via)
        request = next_request


def dispatch(
    client: httpx.Client,
    request: httpx.Request,
    policy: RedirectPolicy,
    *,
    max_redirects: int,
) -> httpx.Response:
    """Send *request* honouring *policy*. Returns an open streamed response."""
    if policy is RedirectPolicy.REJECT:
        return send_with_redirect_check(client, request, check_redirect, max_redirects=max_redirects)
    return client.send(request, stream=True, follow_redirects=True)
