"""Model-switching gateway server.

Accepts any request Claude Code sends to ANTHROPIC_BASE_URL and forwards it
to the resolved provider:

1. Resolves the provider from the path (``/p/<name>/...``) or the active profile
2. Rewrites the ``model`` field of JSON bodies to the provider's tier model
3. Replaces client credentials with the provider's own, when it has any
4. Streams the upstream response back unchanged, tagged with
   ``X-Model-Switch-Provider``

Any failure before the upstream response arrives becomes a 502 with a
``proxy_error`` JSON body. SIGHUP reloads the profiles without dropping
connections.
"""

from __future__ import annotations

import asyncio
import logging
import signal
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

import aiohttp
from aiohttp import web
from multidict import CIMultiDict
from yarl import URL

from model_switch.core.config import ConfigError, Provider
from model_switch.gateway.errors import (
    PROXY_ERROR_STATUS,
    BodyReadError,
    GatewayError,
    UpstreamUnreachable,
    error_body,
)
from model_switch.gateway.rewrite import rewrite_body
from model_switch.gateway.routing import resolve_route
from model_switch.gateway.store import ConfigStore

logger = logging.getLogger(__name__)

PROVIDER_HEADER = "X-Model-Switch-Provider"
API_VERSION_SEGMENT = "/v1"

# Never forwarded upstream
HOP_BY_HOP_HEADERS = frozenset({"host", "connection", "transfer-encoding", "keep-alive"})
# aiohttp has already decoded the inbound body and recomputes its length
BODY_FRAMING_HEADERS = frozenset({"content-length", "content-encoding"})
# Dropped when the provider supplies its own credentials
CREDENTIAL_HEADERS = frozenset({"authorization", "x-api-key"})
# Never copied back to the client
RESPONSE_SKIP_HEADERS = frozenset({"transfer-encoding", "connection"})


@dataclass
class GatewayConfig:
    """Runtime settings for the gateway listener.

    ``None`` for a timeout means wait forever.
    """

    host: str = "127.0.0.1"
    port: int = 4000

    connect_timeout: float | None = 10.0
    read_timeout: float | None = 600.0

    # Request limits
    max_body_size: int = 500 * 1024 * 1024  # 500MB


def build_upstream_url(base_url: str, upstream_path: str, query: str | None = None) -> str:
    """Join a provider base URL and an upstream path.

    When the base URL already ends in ``/v1`` a leading ``/v1`` segment of
    the path is dropped, so ``https://host/v1`` + ``/v1/messages`` gives
    ``https://host/v1/messages``. ``query`` is appended verbatim.
    """
    base = base_url.rstrip("/")
    path = upstream_path
    if base.endswith(API_VERSION_SEGMENT) and (
        path == API_VERSION_SEGMENT or path.startswith(API_VERSION_SEGMENT + "/")
    ):
        path = path[len(API_VERSION_SEGMENT) :]
    url = base + path
    if query is not None:
        url = f"{url}?{query}"
    return url


def build_upstream_headers(
    inbound: Any,
    provider: Provider,
    has_body: bool,
) -> CIMultiDict[str]:
    """Headers for the outbound request.

    Args:
        inbound: The client's headers (any multi-mapping with ``items()``).
        provider: Resolved provider.
        has_body: Whether a request body will be sent.
    """
    skip = HOP_BY_HOP_HEADERS | BODY_FRAMING_HEADERS
    if provider.has_credentials:
        skip = skip | CREDENTIAL_HEADERS

    headers: CIMultiDict[str] = CIMultiDict()
    for key, value in inbound.items():
        if key.lower() not in skip:
            headers.add(key, value)

    if provider.api_key is not None:
        headers["x-api-key"] = provider.api_key
        headers["Authorization"] = f"Bearer {provider.api_key}"
    # Applied last so it wins over api_key
    if provider.auth_token is not None:
        headers["Authorization"] = f"Bearer {provider.auth_token}"

    if has_body:
        headers["content-type"] = "application/json"
    return headers


def copy_response_headers(
    upstream: Iterable[tuple[str, str]], provider_name: str
) -> CIMultiDict[str]:
    """Headers for the client response."""
    headers: CIMultiDict[str] = CIMultiDict()
    for key, value in upstream:
        if key.lower() not in RESPONSE_SKIP_HEADERS:
            headers.add(key, value)
    headers[PROVIDER_HEADER] = provider_name
    return headers


@dataclass
class GatewayServer:
    """Catch-all HTTP gateway in front of the configured providers.

    Example:
        >>> store = ConfigStore.open(ProfileConfig.load)
        >>> server = GatewayServer(config=GatewayConfig(port=4000), store=store)
        >>> await server.serve()
    """

    config: GatewayConfig
    store: ConfigStore
    _app: Any = None  # aiohttp.web.Application
    _runner: Any = None  # aiohttp.web.AppRunner
    _site: Any = None  # aiohttp.web.TCPSite
    _session: Any = None  # aiohttp.ClientSession
    _shutdown_event: asyncio.Event = field(default_factory=asyncio.Event)
    _request_counter: int = 0
    _background_tasks: set[asyncio.Task[Any]] = field(default_factory=set)

    @property
    def bound_port(self) -> int:
        """Port actually bound (useful with port=0)."""
        if self._site is None:
            raise RuntimeError("Gateway is not started")
        return self._site._server.sockets[0].getsockname()[1]

    async def start(self) -> None:
        """Create the upstream session and start listening.

        Bind errors propagate to the caller, with nothing left open.
        """
        self._app = web.Application(client_max_size=self.config.max_body_size)
        self._app.router.add_route("*", "/{tail:.*}", self.forward)

        runner = web.AppRunner(self._app)
        await runner.setup()
        site = web.TCPSite(runner, self.config.host, self.config.port)
        try:
            await site.start()
        except Exception:
            await runner.cleanup()
            raise
        self._runner, self._site = runner, site

        timeout = aiohttp.ClientTimeout(
            total=None,
            connect=self.config.connect_timeout,
            sock_read=self.config.read_timeout,
        )
        # Bodies are relayed byte-for-byte, so no decompression and no
        # Accept-Encoding the client did not ask for
        self._session = aiohttp.ClientSession(
            timeout=timeout,
            auto_decompress=False,
            skip_auto_headers=("Accept-Encoding", "User-Agent"),
        )

        snapshot = self.store.snapshot
        logger.info(
            "Gateway listening on http://%s:%d (active provider: %s, %d configured)",
            self.config.host,
            self.bound_port,
            snapshot.active,
            len(snapshot.providers),
        )

    async def serve(self) -> None:
        """Start the gateway and run until shutdown() is called."""
        await self.start()
        loop = asyncio.get_running_loop()
        self.install_signal_handlers(loop)
        try:
            await self._shutdown_event.wait()
        finally:
            self.remove_signal_handlers(loop)
            await self.shutdown()

    async def shutdown(self) -> None:
        """Stop listening and close the upstream session. Idempotent."""
        self._shutdown_event.set()
        runner, self._runner = self._runner, None
        session, self._session = self._session, None
        self._site = None
        if runner is None and session is None:
            return
        logger.info("Shutting down gateway...")
        if runner:
            await runner.cleanup()
        if session:
            await session.close()

    # ------------------------------------------------------------------
    # Signals and reload
    # ------------------------------------------------------------------

    def install_signal_handlers(self, loop: asyncio.AbstractEventLoop) -> None:
        """SIGHUP reloads profiles; SIGTERM/SIGINT shut down.

        Registration errors propagate, aborting startup.
        """
        loop.add_signal_handler(signal.SIGHUP, self._on_reload_signal)
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, self._on_shutdown_signal)

    def remove_signal_handlers(self, loop: asyncio.AbstractEventLoop) -> None:
        for sig in (signal.SIGHUP, signal.SIGTERM, signal.SIGINT):
            loop.remove_signal_handler(sig)

    def _on_reload_signal(self) -> None:
        logger.info("Received SIGHUP, reloading config...")
        self._spawn(self.reload_config())

    def _on_shutdown_signal(self) -> None:
        logger.info("Received shutdown signal")
        # serve() performs the cleanup once it wakes up
        self._shutdown_event.set()

    def _spawn(self, coro: Any) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)

    async def reload_config(self) -> bool:
        """Reload the profiles, keeping the current ones on failure.

        Returns:
            True if the new profiles are in effect.
        """
        try:
            await self.store.reload()
        except ConfigError as e:
            logger.error("Failed to reload config: %s", e)
            return False
        return True

    # ------------------------------------------------------------------
    # Forwarding
    # ------------------------------------------------------------------

    def _next_trace_id(self) -> str:
        self._request_counter += 1
        return f"{self._request_counter:04d}"

    def _error_response(self, message: str) -> web.Response:
        return web.json_response(error_body(message), status=PROXY_ERROR_STATUS)

    async def forward(self, request: web.Request) -> web.StreamResponse:
        """Handle any inbound request. Never raises."""
        trace_id = self._next_trace_id()
        try:
            return await self._forward(request, trace_id)
        except GatewayError as e:
            logger.warning("[%s] %s %s failed: %s", trace_id, request.method, request.path, e)
            return self._error_response(str(e))
        except Exception as e:
            logger.exception(
                "[%s] Unexpected error forwarding %s %s", trace_id, request.method, request.path
            )
            return self._error_response(f"Internal proxy error: {e}")

    async def _forward(self, request: web.Request, trace_id: str) -> web.StreamResponse:
        path, sep, query = request.raw_path.partition("?")

        # Resolve against one snapshot; only immutable values survive past here
        route = resolve_route(path, self.store.snapshot)
        provider = route.provider

        try:
            body = await request.read()
        except Exception as e:
            raise BodyReadError(f"Failed to read request body: {e}") from e

        body, requested_model, upstream_model = rewrite_body(body, provider)
        url = build_upstream_url(provider.base_url, route.upstream_path, query if sep else None)
        headers = build_upstream_headers(request.headers, provider, has_body=bool(body))

        if requested_model is not None and requested_model != upstream_model:
            logger.info(
                "[%s] %s %s -> %s (model %s -> %s)",
                trace_id,
                request.method,
                path,
                route.provider_name,
                requested_model,
                upstream_model,
            )
        else:
            logger.info("[%s] %s %s -> %s", trace_id, request.method, path, route.provider_name)
        logger.debug("[%s] Upstream URL: %s", trace_id, url)

        try:
            upstream = await self._session.request(
                request.method,
                URL(url, encoded=True),
                headers=headers,
                data=body or None,
                allow_redirects=False,
            )
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise UpstreamUnreachable(url, str(e) or type(e).__name__) from e

        async with upstream:
            return await self._relay(request, upstream, route.provider_name, trace_id)

    async def _relay(
        self,
        request: web.Request,
        upstream: aiohttp.ClientResponse,
        provider_name: str,
        trace_id: str,
    ) -> web.StreamResponse:
        """Stream the upstream response back to the client unchanged."""
        response = web.StreamResponse(status=upstream.status, reason=upstream.reason)
        response.headers.extend(copy_response_headers(upstream.headers.items(), provider_name))
        await response.prepare(request)

        if upstream.status >= 400:
            logger.warning("[%s] Upstream %s returned %d", trace_id, provider_name, upstream.status)

        # Headers are on the wire now: failures can only cut the body short
        sent = 0
        try:
            async for chunk in upstream.content.iter_any():
                try:
                    await response.write(chunk)
                except ConnectionResetError:
                    logger.debug("[%s] Client disconnected during streaming", trace_id)
                    return response
                sent += len(chunk)
        except (aiohttp.ClientError, asyncio.TimeoutError):
            logger.exception("[%s] Upstream stream from %s interrupted", trace_id, provider_name)
            # No final chunk, so the client sees a truncated body
            if request.transport is not None:
                request.transport.close()
            return response

        logger.info("[%s] %d <- %s (%d bytes)", trace_id, upstream.status, provider_name, sent)
        return response
