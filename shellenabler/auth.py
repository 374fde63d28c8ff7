"""Login handshake for the Xiaomi LuCI management API.

API Endpoints:
- POST /cgi-bin/luci/api/xqsystem/login - form body username/password/logtype/nonce,
  returns {"code":0,"token":"...","url":"..."}

The password never travels in clear text: the client sends
H(nonce + H(password + SHARED_KEY)) where H is SHA-1 or SHA-256 depending on
the model. The key is baked into the firmware's image packing tool.
"""

import asyncio
import hashlib
import json
import logging
import random
import time
from dataclasses import dataclass
from typing import Callable, Optional

import aiohttp

from .errors import AuthError, NetworkError, ProtocolError

logger = logging.getLogger(__name__)

DEFAULT_ROUTER_IP = "192.168.31.1"
SHARED_KEY = "a2ffa5c9be07488bbb04a3a47d3c5f6a"

API_LOGIN = "/cgi-bin/luci/api/xqsystem/login"
LOGIN_USERNAME = "admin"
LOGIN_TYPE = "2"


@dataclass
class LoginResult:
    """Decoded body of the login endpoint."""
    code: int
    token: str = ""
    url: str = ""  # carries the error text when code != 0

    @classmethod
    def from_json(cls, body: str) -> "LoginResult":
        try:
            data = json.loads(body)
        except json.JSONDecodeError as e:
            raise ProtocolError(f"Login response is not JSON: {e}") from e
        if not isinstance(data, dict) or "code" not in data:
            raise ProtocolError(f"Unexpected login response: {body[:200]}")
        try:
            code = int(data["code"])
        except (TypeError, ValueError) as e:
            raise ProtocolError(f"Login response has invalid code: {data['code']!r}") from e
        return cls(code=code, token=str(data.get("token") or ""), url=str(data.get("url") or ""))


def generate_nonce(clock: Callable[[], float] = time.time,
                   rng: Optional[random.Random] = None) -> str:
    """Build a single-use login nonce of the form 0_<epoch-seconds>_<0..9999>."""
    rng = rng or random.Random()
    return f"0_{int(clock())}_{rng.randint(0, 9999)}"


def _digest(data: str, use_sha256: bool) -> str:
    algorithm = hashlib.sha256 if use_sha256 else hashlib.sha1
    return algorithm(data.encode()).hexdigest()


def encrypt_password(password: str, nonce: str, use_sha256: bool = True,
                     key: str = SHARED_KEY) -> str:
    """Hash the admin password the way the web UI does before login.

    Args:
        password: Admin password in clear text.
        nonce: Nonce sent alongside this login attempt.
        use_sha256: SHA-256 for newer firmware, SHA-1 for older models.
        key: Shared firmware key.

    Returns:
        Hex digest of H(nonce + H(password + key)).
    """
    return _digest(nonce + _digest(password + key, use_sha256), use_sha256)


async def login(
    session: aiohttp.ClientSession,
    host: str,
    password: str,
    use_sha256: bool = True,
    timeout: float = 30,
    clock: Callable[[], float] = time.time,
    rng: Optional[random.Random] = None,
) -> str:
    """Log in as admin and return the session token (stok).

    Raises:
        NetworkError: The router could not be reached.
        ProtocolError: The response body was not the expected JSON.
        AuthError: The router rejected the password.
    """
    nonce = generate_nonce(clock, rng)
    encrypted = encrypt_password(password, nonce, use_sha256)
    login_url = f"http://{host}{API_LOGIN}"
    form = {
        "username": LOGIN_USERNAME,
        "password": encrypted,
        "logtype": LOGIN_TYPE,
        "nonce": nonce,
    }

    logger.debug(f"[AUTH] POST {login_url}")
    logger.debug(f"[AUTH] nonce={nonce} ({'sha256' if use_sha256 else 'sha1'})")

    try:
        async with session.post(
            login_url,
            data=form,
            timeout=aiohttp.ClientTimeout(total=timeout),
        ) as response:
            body = await response.text()
            logger.debug(f"[AUTH] Login response ({response.status}): {body[:200]}")
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        raise NetworkError(f"Login request to {host} failed: {e}") from e

    result = LoginResult.from_json(body)
    if result.code != 0:
        raise AuthError(result.code, result.url)

    logger.info(f"[AUTH] Logged in to {host}")
    return result.token
