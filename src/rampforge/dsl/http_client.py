"""Request executor: one timed HTTP call per endpoint, classified, never raising."""

from __future__ import annotations

import json
import time
from typing import TYPE_CHECKING

import aiohttp

from rampforge._internal.logging import get_logger
from rampforge.dsl.endpoints import render_body
from rampforge.metrics.models import ErrorClass, RequestOutcome

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from rampforge.dsl.endpoints import EndpointSpec

logger = get_logger("dsl.http_client")


def _noop_dispatch() -> None:
    """Default no-op dispatch hook."""


class RequestExecutor:
    """Issues single requests against the target and measures them.

    Wraps one ``aiohttp.ClientSession``; each virtual user opens its own
    executor with ``async with``. ``execute`` always returns a
    ``RequestOutcome``: timeouts, connection failures and error statuses
    are classified instead of raised, so a failing request can never break
    a user's loop.

    Attributes:
        base_url: Base URL prepended to every endpoint path.
        headers: Headers applied to every request.
    """

    def __init__(
        self,
        base_url: str,
        timeout_ms: float,
        *,
        headers: Mapping[str, str] | None = None,
        on_dispatch: Callable[[], None] | None = None,
        template_context: Mapping[str, object] | None = None,
    ) -> None:
        """Initialize the executor.

        Args:
            base_url: Base URL prepended to every endpoint path.
            timeout_ms: Hard per-request timeout in milliseconds.
            headers: Headers applied to every request.
            on_dispatch: Called immediately before each dispatch; the
                recorder's ``mark_started`` so in-flight requests are visible.
            template_context: Placeholder values for body templates.
        """
        self.base_url = base_url.rstrip("/")
        self.headers: dict[str, str] = dict(headers or {})
        self._timeout = aiohttp.ClientTimeout(total=timeout_ms / 1000.0)
        self._on_dispatch = on_dispatch or _noop_dispatch
        self._template_context = dict(template_context or {})
        self._session: aiohttp.ClientSession | None = None

    async def __aenter__(self) -> RequestExecutor:
        """Open the underlying aiohttp session."""
        self._session = aiohttp.ClientSession(timeout=self._timeout)
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object | None,
    ) -> None:
        """Close the underlying aiohttp session."""
        if self._session is not None:
            await self._session.close()
            self._session = None

    async def execute(
        self,
        endpoint: EndpointSpec,
        auth_token: str | None = None,
    ) -> RequestOutcome:
        """Send one request to *endpoint* and classify the result.

        Args:
            endpoint: The endpoint to call.
            auth_token: Optional bearer token for the ``Authorization`` header.

        Returns:
            The request's outcome.

        Raises:
            RuntimeError: If used outside of ``async with``.
        """
        outcome, _payload = await self._dispatch(endpoint, auth_token, want_json=False)
        return outcome

    async def execute_json(
        self,
        endpoint: EndpointSpec,
        auth_token: str | None = None,
    ) -> tuple[RequestOutcome, object | None]:
        """Like :meth:`execute`, but also return the decoded JSON body.

        Used by the login phase to pick the session token out of the
        response. The body is None when no response arrived or it was not
        valid JSON.

        Raises:
            RuntimeError: If used outside of ``async with``.
        """
        return await self._dispatch(endpoint, auth_token, want_json=True)

    def build_url(self, endpoint: EndpointSpec) -> str:
        """Return the absolute URL for *endpoint*."""
        path = endpoint.path if endpoint.path.startswith("/") else f"/{endpoint.path}"
        return f"{self.base_url}{path}"

    async def _dispatch(
        self,
        endpoint: EndpointSpec,
        auth_token: str | None,
        *,
        want_json: bool,
    ) -> tuple[RequestOutcome, object | None]:
        if self._session is None:
            msg = "RequestExecutor must be used as an async context manager"
            raise RuntimeError(msg)

        url = self.build_url(endpoint)
        headers = {**self.headers, **endpoint.headers}
        if auth_token:
            headers["Authorization"] = f"Bearer {auth_token}"

        data: str | None = None
        if endpoint.body is not None:
            data = json.dumps(render_body(endpoint.body, self._template_context))
            headers.setdefault("Content-Type", "application/json")

        status_code: int | None = None
        error_class: ErrorClass | None = None
        payload: object | None = None

        self._on_dispatch()
        start = time.monotonic()
        try:
            async with self._session.request(
                endpoint.method, url, headers=headers, data=data
            ) as resp:
                status_code = resp.status
                body = await resp.read()
            error_class = ErrorClass.from_status(status_code)
            if want_json and body:
                try:
                    payload = json.loads(body)
                except ValueError:
                    payload = None
        except TimeoutError:
            status_code = None
            error_class = ErrorClass.TIMEOUT
        except (aiohttp.ClientError, OSError) as exc:
            status_code = None
            error_class = ErrorClass.NETWORK
            logger.debug("%s %s: %s: %s", endpoint.method, url, type(exc).__name__, exc)
        except Exception:
            status_code = None
            error_class = ErrorClass.NETWORK
            logger.debug("%s %s: unexpected failure", endpoint.method, url, exc_info=True)
        latency_ms = (time.monotonic() - start) * 1000.0

        outcome = RequestOutcome(
            success=error_class is None,
            latency_ms=latency_ms,
            status_code=status_code,
            error_class=error_class,
            name=endpoint.label,
        )
        return outcome, payload
