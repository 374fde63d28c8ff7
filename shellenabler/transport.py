"""Token-scoped HTTP access to the router plus raw TCP reachability probes."""

import asyncio
import logging
from typing import Any, Dict, Optional

import aiohttp

from .errors import NetworkError


async def check_port_open(host: str, port: int, timeout: float = 3.0) -> bool:
    """Return True if a TCP connection to host:port succeeds within timeout."""
    try:
        _, writer = await asyncio.wait_for(
            asyncio.open_connection(host, port),
            timeout=timeout
        )
        writer.close()
        await writer.wait_closed()
        return True
    except (asyncio.TimeoutError, OSError, ValueError):
        # ValueError covers hostnames that fail IDNA encoding
        return False


def strip_port(host: str) -> str:
    """'192.168.31.1:8080' -> '192.168.31.1'. Bare IPv6 literals are returned untouched."""
    if host.count(":") == 1:
        return host.split(":", 1)[0]
    return host


class Transport:
    """Sends GET/POST requests to /cgi-bin/luci/;stok=<token>/<path>.

    Every call is a single attempt; failures surface as NetworkError and the
    caller decides what to do about them.
    """

    def __init__(
        self,
        session: aiohttp.ClientSession,
        host: str,
        token: str,
        timeout: float = 30,
        probe_timeout: float = 3,
        logger: Optional[logging.Logger] = None,
    ):
        self._session = session
        self.host = host
        self.token = token
        self.timeout = timeout
        self.probe_timeout = probe_timeout
        self.logger = logger or logging.getLogger(__name__)

    def api_url(self, path: str) -> str:
        return f"http://{self.host}/cgi-bin/luci/;stok={self.token}/{path.lstrip('/')}"

    async def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> bytes:
        url = self.api_url(path)
        self.logger.debug(f"GET {url} params={params}")
        return await self._request("GET", url, params=params)

    async def post(self, path: str, data: Dict[str, Any]) -> bytes:
        """POST a form-urlencoded body."""
        url = self.api_url(path)
        self.logger.debug(f"POST {url} data={data}")
        return await self._request("POST", url, data=data)

    async def _request(self, method: str, url: str, **kwargs) -> bytes:
        try:
            async with self._session.request(
                method,
                url,
                timeout=aiohttp.ClientTimeout(total=self.timeout),
                **kwargs
            ) as response:
                body = await response.read()
                self.logger.debug(
                    f"{method} response ({response.status}): {body[:500].decode('utf-8', errors='replace')}"
                )
                return body
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise NetworkError(f"{method} {url} failed: {e}") from e

    async def probe_port(self, port: int, host: Optional[str] = None) -> bool:
        """TCP-probe a port on the router. Never raises."""
        target = host or strip_port(self.host)
        is_open = await check_port_open(target, port, self.probe_timeout)
        self.logger.debug(f"Port {target}:{port} {'open' if is_open else 'closed'}")
        return is_open
