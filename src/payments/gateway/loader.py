"""Payment gateway script loader, sole owner of the gateway's global handle.

Every call to ``ensure_loaded()`` discards whatever the page already holds
(script tags from the gateway's origin and the global they installed) and
loads a cache-busted copy, so a handle initialised earlier in the page's
life is never reused. Calls made while a load is in flight share that
load instead of injecting a second tag.
"""

import asyncio
import time
from collections.abc import Callable
from urllib.parse import urlencode, urlsplit, urlunsplit

import structlog

from payments.gateway.port import GatewayHandle, ScriptHost, ScriptLoadError
from shared.exceptions import GatewayUnavailableError

logger = structlog.get_logger(__name__)


class GatewayLoader:
    def __init__(
        self,
        host: ScriptHost,
        script_url: str,
        global_name: str = "Razorpay",
        timeout: float = 15.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._host = host
        self._script_url = script_url
        self._global_name = global_name
        self._timeout = timeout
        self._clock = clock
        self._handle: GatewayHandle | None = None
        self._inflight: asyncio.Task | None = None

    @property
    def origin(self) -> str:
        parts = urlsplit(self._script_url)
        return f"{parts.scheme}://{parts.netloc}"

    @property
    def is_ready(self) -> bool:
        return self._handle is not None

    @property
    def handle(self) -> GatewayHandle:
        """The loaded gateway handle; only available after a successful load."""
        if self._handle is None:
            raise GatewayUnavailableError("Gateway handle requested before the script loaded")
        return self._handle

    async def ensure_loaded(self) -> bool:
        """Load a fresh gateway script. Returns False if it failed or timed out."""
        if self._inflight is None or self._inflight.done():
            self._inflight = asyncio.ensure_future(self._load())
        return await asyncio.shield(self._inflight)

    async def _load(self) -> bool:
        for tag in self._host.find_scripts(self.origin):
            self._host.remove_script(tag)
            logger.debug("Removed stale gateway script", src=tag.src)
        self._host.clear_global(self._global_name)
        self._handle = None

        src = self._cache_busted_url()
        try:
            handle = await asyncio.wait_for(
                self._host.inject_script(src, self._global_name),
                timeout=self._timeout,
            )
        except TimeoutError:
            logger.error("Payment gateway script timed out", src=src, timeout=self._timeout)
            return False
        except ScriptLoadError as exc:
            logger.error("Failed to load payment gateway script", src=src, error=str(exc))
            return False

        self._handle = handle
        logger.info("Payment gateway script loaded", src=src)
        return True

    def _cache_busted_url(self) -> str:
        parts = urlsplit(self._script_url)
        stamp = urlencode({"t": int(self._clock() * 1000)})
        query = f"{parts.query}&{stamp}" if parts.query else stamp
        return urlunsplit((parts.scheme, parts.netloc, parts.path, query, parts.fragment))
