"""Tests for the fetchjob CLI."""

import httpx
from typer.testing import CliRunner

from fetchjob import cli
from fetchjob.web.errors import ErrorKind, TransportError
from fetchjob.web.fetch import FetchJob, FetchOutcome

runner = CliRunner()


def test_get_prints_summary(monkeypatch):
    outcome = FetchOutcome(
        request=httpx.Request("GET", "https://example.com/"),
        status_code=200,
        body=b"hello",
        messages=("standard client",),
        transport="standard",
    )
    monkeypatch.setattr(FetchJob, "fetch", lambda self, **kwargs: outcome)

    result = runner.invoke(cli.app, ["get", "https://example.com/", "--preview"])

    assert result.exit_code == 0
    assert "Fetch Result" in result.output
    assert "standard client" in result.output
    assert "hello" in result.output


def test_get_exits_nonzero_on_error(monkeypatch):
    outcome = FetchOutcome(
        request=httpx.Request("GET", "https://example.com/"),
        messages=("request failed: connection refused",),
        error=TransportError("connection refused"),
        error_kind=ErrorKind.TRANSPORT,
        transport="standard",
    )
    monkeypatch.setattr(FetchJob, "fetch", lambda self, **kwargs: outcome)

    result = runner.invoke(cli.app, ["get", "https://example.com/"])

    assert result.exit_code == 1
    assert "connection refused" in result.output


def test_build_job_for_post():
    job = cli._build_job(
        "example.com/submit",
        method="post",
        data="a=1",
        timeout=None,
        reject_redirects=True,
        force_protocol="",
        force_https=False,
        verbose=False,
    )
    assert job.request.method == "POST"
    assert str(job.request.url) == "https://example.com/submit"
    assert job.on_redirect == 1
