"""Host runtime abstraction: execution contexts, client factories, dev probe."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Protocol

import httpx
import structlog

from fetchjob.config import settings

logger = structlog.get_logger()

ClientFactory = Callable[[float], httpx.Client]


@dataclass(frozen=True)
class ContextResult:
    """Outcome of deriving an execution context from an opaque token."""

    context: Any = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.context is not None


class HostRuntime(Protocol):
    @property
    def name(self) -> str: ...

    def derive_context(self, token: Any) -> ContextResult: ...

    def client(self, context: Any, timeout: float) -> httpx.Client: ...

    def is_dev_environment(self) -> bool: ...


def default_client(timeout: float, *, transport: httpx.BaseTransport | None = None) -> httpx.Client:
    """Build the standard client used when no host context is available."""
    return httpx.Client(
        timeout=timeout,
        headers={"User-Agent": settings.user_agent},
        max_redirects=settings.max_redirects,
        transport=transport,
    )


class StandaloneRuntime:
    """Runtime for plain processes: there is never a host context to derive."""

    name = "standalone"

    def derive_context(self, token: Any) -> ContextResult:
        return ContextResult(error="standalone runtime has no execution context")

    def client(self, context: Any, timeout: float) -> httpx.Client:
        return default_client(timeout)

    def is_dev_environment(self) -> bool:
        return settings.dev_environment


def resolve_context(runtime: HostRuntime, token: Any) -> ContextResult:
    """Derive a context, turning any exception from the runtime into a failed result."""
    try:
        return runtime.derive_context(token)
    except Exception as exc:
        logger.warning("Context derivation failed", runtime=runtime.name, error=str(exc))
        return ContextResult(error=f"{type(exc).__name__}: {exc}")


@dataclass(frozen=True)
class TransportChoice:
    client: httpx.Client
    name: str
    hosted: bool


def select_transport(
    runtime: HostRuntime,
    token: Any,
    timeout: float,
    messages: list[str],
    *,
    client_factory: ClientFactory = default_client,
) -> TransportChoice:
    """Pick the host runtime's client when a context can be derived from *token*.

    Falls back to *client_factory* otherwise. Diagnostics are appended to *messages*.
    """
    if token is not None:
        result = resolve_context(runtime, token)
        if result.ok:
            messages.append(f"{runtime.name} client")
            return TransportChoice(client=runtime.client(result.context, timeout), name=runtime.name, hosted=True)
        messages.append(f"context derivation failed: {result.error or 'no context'}")

    messages.append("standard client")
    return TransportChoice(client=client_factory(timeout), name="standard", hosted=False)
