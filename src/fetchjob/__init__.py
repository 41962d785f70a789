"""Resilient HTTP resource fetching with a single https-to-http fallback."""

from fetchjob.web.errors import ErrorKind, FetchError
from fetchjob.web.fetch import FetchJob, FetchOutcome, fetch

__all__ = [
    "ErrorKind",
    "FetchError",
    "FetchJob",
    "FetchOutcome",
    "fetch",
]
