"""Tests for failure classification."""

import httpx

from fetchjob.web.errors import (
    REDIRECT_CANCELLED,
    RedirectRejected,
    TransportError,
    classify_tls_failure,
    is_redirect_rejection,
    mentions_unsupported_cancel,
)


class TestClassifyTlsFailure:
    def test_certificate_error(self):
        assert classify_tls_failure(httpx.ConnectError("urlfetch: SSL_CERTIFICATE_ERROR")) == "certificate"
        assert classify_tls_failure(httpx.ConnectError("[SSL: CERTIFICATE_VERIFY_FAILED] nope")) == "certificate"

    def test_oversized_record(self):
        exc = httpx.ConnectError("tls: oversized record received with length 20527")
        assert classify_tls_failure(exc) == "oversized_record"
        assert classify_tls_failure(httpx.ConnectError("[SSL: WRONG_VERSION_NUMBER]")) == "oversized_record"

    def test_matches_through_cause_chain(self):
        wrapper = TransportError("connect failed")
        wrapper.__cause__ = httpx.ConnectError("[SSL: CERTIFICATE_VERIFY_FAILED] certificate verify failed")
        assert classify_tls_failure(wrapper) == "certificate"

    def test_other_errors_do_not_match(self):
        assert classify_tls_failure(httpx.ConnectError("Name or service not known")) is None
        assert classify_tls_failure(httpx.ReadTimeout("timed out")) is None


class TestRedirectRejected:
    def test_message_carries_marker_and_chain(self):
        exc = RedirectRejected(["/old", "/new"])
        assert str(exc).startswith(REDIRECT_CANCELLED)
        assert str(exc).endswith("\n/old\n/new\n")
        assert exc.chain == ["/old", "/new"]

    def test_is_redirect_rejection(self):
        assert is_redirect_rejection(RedirectRejected(["/a", "/b"]))
        assert is_redirect_rejection(TransportError(f"Get /a: {REDIRECT_CANCELLED} /a /b"))
        assert not is_redirect_rejection(TransportError("connection refused"))


def test_mentions_unsupported_cancel():
    exc = TransportError("Client Transport of type init.failingTransport doesn't support CancelRequest")
    assert mentions_unsupported_cancel(exc)
    assert not mentions_unsupported_cancel(TransportError("boom"))
