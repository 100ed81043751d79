"""Single HTTP(S) health probe against one monitored service.

A probe never raises for ordinary network trouble: every failure mode is
reported as a :class:`ProbeFailure` value so the circuit breaker can count
it like any other failure.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Any, Optional

import httpx
from pydantic import ValidationError

from health_breaker.breaker.models import (
    FailureKind,
    HealthCheckOutcome,
    HealthPayload,
    ProbeFailure,
    ProbeResponse,
)
from health_breaker.config.schema import ServiceDescriptor
from health_breaker.constants import DEFAULT_PROBE_TIMEOUT_MS
from health_breaker.errors import ProbeError

logger = logging.getLogger(__name__)

# Bodies are echoed into error messages; keep them short.
_MAX_BODY_ECHO = 200


class HealthProbe:
    """Issues ``GET <scheme>://<host>:<port><health_path>`` with a hard timeout.

    Parameters
    ----------
    service:
        The service to probe.
    timeout:
        Seconds before the probe resolves as a TIMEOUT failure.
    client:
        Optional shared :class:`httpx.AsyncClient`. When omitted the probe
        creates (and owns) its own client on first use.
    """

    def __init__(
        self,
        service: ServiceDescriptor,
        *,
        timeout: float = DEFAULT_PROBE_TIMEOUT_MS / 1000.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._service = service
        self._timeout = timeout
        self._client: Optional[httpx.AsyncClient] = client
        self._owns_client = client is None

    # ── lifecycle ───────────────────────────────────────────────────

    async def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    async def close(self) -> None:
        """Close the HTTP client if this probe created it."""
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    # ── public API ──────────────────────────────────────────────────

    async def probe(self) -> HealthCheckOutcome:
        """Send one health request and classify what came back."""
        start = time.monotonic()
        try:
            payload = await asyncio.wait_for(self._fetch(), timeout=self._timeout)
        except asyncio.TimeoutError:
            return ProbeFailure(
                kind=FailureKind.TIMEOUT,
                message="Health check request timed out",
                latency_ms=_elapsed_ms(start),
            )
        except ProbeError as exc:
            logger.debug("[%s] %s", self._service.name, exc)
            return ProbeFailure(
                kind=FailureKind(exc.kind),
                message=exc.message,
                latency_ms=_elapsed_ms(start),
            )
        except Exception as exc:
            logger.error(
                "[%s] Unexpected error during health probe: %s",
                self._service.name,
                exc,
                exc_info=True,
            )
            return ProbeFailure(
                kind=FailureKind.TRANSPORT,
                message=f"Unexpected probe error: {type(exc).__name__}: {exc}",
                latency_ms=_elapsed_ms(start),
            )
        return ProbeResponse(payload=payload, latency_ms=_elapsed_ms(start))

    # ── internals ───────────────────────────────────────────────────

    async def _fetch(self) -> HealthPayload:
        client = await self._ensure_client()
        name = self._service.name
        try:
            resp = await client.get(self._service.url, timeout=self._timeout)
        except httpx.TimeoutException as exc:
            raise ProbeError(
                "Health check request timed out", FailureKind.TIMEOUT, name, exc
            ) from exc
        except (httpx.HTTPError, OSError) as exc:
            raise ProbeError(
                str(exc) or type(exc).__name__, FailureKind.TRANSPORT, name, exc
            ) from exc
        except RuntimeError as exc:
            # httpx refuses requests once the client is closed (monitor teardown)
            if not client.is_closed:
                raise
            raise ProbeError("HTTP client closed", FailureKind.TRANSPORT, name, exc) from exc
        return parse_health_payload(resp.text, svc_name=name)


def parse_health_payload(body: str, *, svc_name: Optional[str] = None) -> HealthPayload:
    """Parse a health endpoint body, raising :class:`ProbeError` (PROTOCOL)."""
    try:
        data: Any = json.loads(body)
    except (ValueError, RecursionError) as exc:
        raise ProbeError(
            f"Invalid JSON response: {body[:_MAX_BODY_ECHO]}",
            FailureKind.PROTOCOL,
            svc_name,
            exc,
        ) from exc

    if not isinstance(data, dict):
        raise ProbeError(
            f"Invalid health payload: expected a JSON object, got {type(data).__name__}",
            FailureKind.PROTOCOL,
            svc_name,
        )

    try:
        return HealthPayload.model_validate(data)
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or '<root>'}: {err['msg']}"
            for err in exc.errors()
        )
        raise ProbeError(
            f"Invalid health payload: {problems}", FailureKind.PROTOCOL, svc_name, exc
        ) from exc


def _elapsed_ms(start: float) -> float:
    return (time.monotonic() - start) * 1000.0
