"""Router manager: maps model identifiers to client classes and logs in."""

import logging
from typing import Dict, Optional, Type

import aiohttp

from .auth import login
from .config import Config
from .errors import UnsupportedModelError
from .routers.base import BaseRouterClient
from .routers.ax5400pro import AX5400ProClient
from .task_time import FileTaskTimeStore, TaskTimeStore
from .transport import Transport

logger = logging.getLogger(__name__)


def normalize_host(host: str) -> str:
    """Strip a scheme and trailing slash: 'http://192.168.31.1/' -> '192.168.31.1'."""
    host = host.strip()
    for prefix in ("http://", "https://"):
        if host.startswith(prefix):
            host = host[len(prefix):]
    return host.rstrip("/")


class RouterManager:
    """Creates logged-in router clients.

    Usage:
        async with RouterManager(config) as manager:
            client = await manager.connect(host, password, "redmi_ax5400pro")
            overall, report = await client.check_shell_status()
    """

    # Map model identifiers to client classes
    CLIENT_MAP: Dict[str, Type[BaseRouterClient]] = {
        AX5400ProClient.MODEL: AX5400ProClient,
    }

    # Login hash per model: True = SHA-256, False = SHA-1
    AUTH_POLICY: Dict[str, bool] = {
        AX5400ProClient.MODEL: True,
    }

    def __init__(self, config: Optional[Config] = None,
                 task_time_store: Optional[TaskTimeStore] = None,
                 session: Optional[aiohttp.ClientSession] = None):
        """Initialize the router manager.

        Args:
            config: Timing and cache settings (defaults apply when omitted).
            task_time_store: Override for the task time cursor storage.
            session: Existing aiohttp session to use; one is created if omitted.
        """
        self.config = config or Config()
        self.task_time_store = task_time_store
        self._session = session
        self._owns_session = session is None

    async def __aenter__(self) -> "RouterManager":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    def get_supported_models(self) -> list[str]:
        """Get list of supported router models."""
        return list(self.CLIENT_MAP.keys())

    def get_client_class(self, model: str) -> Type[BaseRouterClient]:
        """Look up the client class for a model.

        Raises:
            UnsupportedModelError: No client exists for the model.
        """
        client_class = self.CLIENT_MAP.get(model.strip().lower())
        if not client_class:
            raise UnsupportedModelError(model, self.get_supported_models())
        return client_class

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    def _build_task_time_store(self) -> TaskTimeStore:
        if self.task_time_store:
            return self.task_time_store
        cache_file = self.config.task_time.cache_file
        return FileTaskTimeStore(cache_file) if cache_file else FileTaskTimeStore()

    async def connect(self, host: str, password: str, model: str) -> BaseRouterClient:
        """Log in to the router and return the client for its model.

        The model is checked before any request is sent.

        Raises:
            UnsupportedModelError: No client exists for the model.
            NetworkError, ProtocolError, AuthError: Login failed.
        """
        client_class = self.get_client_class(model)
        model_key = client_class.MODEL
        host = normalize_host(host)
        timing = self.config.timing
        logger.debug(f"Creating {model_key} client for {host}")

        session = self._get_session()
        token = await login(
            session,
            host,
            password,
            use_sha256=self.AUTH_POLICY.get(model_key, True),
            timeout=timing.http_timeout,
        )

        transport = Transport(
            session,
            host,
            token,
            timeout=timing.http_timeout,
            probe_timeout=timing.probe_timeout,
        )
        return client_class(
            transport,
            task_time_store=self._build_task_time_store(),
            step_delay=timing.step_delay,
            post_trigger_delay=timing.post_trigger_delay,
        )

    async def close(self) -> None:
        """Close the HTTP session if this manager created it."""
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
