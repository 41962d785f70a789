"""Tests for the redirect policy."""

import httpx
import pytest

from fetchjob.web.errors import RedirectRejected
from fetchjob.web.redirects import RedirectPolicy, check_redirect, dispatch


def _req(path: str) -> httpx.Request:
    return httpx.Request("GET", f"https://example.com{path}")


class TestCheckRedirect:
    def test_allows_single_trailing_slash_hop(self):
        check_redirect(_req("/gesundheit/"), [_req("/gesundheit")])

    def test_rejects_other_target(self):
        with pytest.raises(RedirectRejected) as exc_info:
            check_redirect(_req("/login"), [_req("/account")])
        assert exc_info.value.chain == ["/account", "/login"]

    def test_rejects_trailing_slash_after_second_hop(self):
        with pytest.raises(RedirectRejected) as exc_info:
            check_redirect(_req("/b/"), [_req("/a"), _req("/b")])
        assert exc_info.value.chain == ["/a", "/b", "/b/"]


def _redirecting_client(routes: dict[str, str]) -> httpx.Client:
    def handler(request: httpx.Request) -> httpx.Response:
        target = routes.get(request.url.path)
        if target is not None:
            return httpx.Response(301, headers={"Location": target})
        return httpx.Response(200, content=request.url.path.encode())

    return httpx.Client(transport=httpx.MockTransport(handler))


class TestDispatch:
    def test_reject_policy_follows_trailing_slash(self):
        with _redirecting_client({"/docs": "/docs/"}) as client:
            response = dispatch(client, _req("/docs"), RedirectPolicy.REJECT, max_redirects=10)
            assert response.read() == b"/docs/"
            response.close()

    def test_reject_policy_raises(self):
        with _redirecting_client({"/old": "/new"}) as client:
            with pytest.raises(RedirectRejected):
                dispatch(client, _req("/old"), RedirectPolicy.REJECT, max_redirects=10)

    def test_follow_policy_follows_anything(self):
        with _redirecting_client({"/old": "/new"}) as client:
            response = dispatch(client, _req("/old"), RedirectPolicy.FOLLOW, max_redirects=10)
            assert response.read() == b"/new"
            response.close()

    def test_hop_cap(self):
        with _redirecting_client({"/a": "/b", "/b": "/a"}) as client:
            with pytest.raises(httpx.TooManyRedirects):
                dispatch(client, _req("/a"), RedirectPolicy.FOLLOW, max_redirects=3)
