"""
Sensing / actuation collaborator.

The decision core only needs the `Actuator` protocol. `BridgeClient` is the
production implementation: a thin async HTTP client for the browser
automation bridge that owns the game page.
"""

import asyncio
import json
import logging
from typing import Any, Optional, Protocol

import aiohttp

from . import timing
from .errors import ActuationError
from .parser import parse_bool

log = logging.getLogger("HuntBot")

REQUEST_TIMEOUT = 8.0    # seconds per bridge call
READY_POLL      = 0.5


class Actuator(Protocol):
    async def get_agent_status(self) -> dict: ...
    async def get_entities(self) -> list: ...
    async def is_connected(self) -> bool: ...
    async def move_to(self, x: float, y: float) -> None: ...
    async def attack(self, entity_id: str) -> None: ...
    async def respawn(self) -> None: ...
    async def ensure_ready(self, timeout: float) -> None: ...
    async def navigate(self, url: str) -> None: ...
    async def wait_ready(self) -> None: ...
    async def is_logged_in(self) -> bool: ...
    async def login(self, username: str, password: str) -> bool: ...
    async def click(self, selector: str) -> None: ...
    async def configure(self, settings: dict) -> None: ...


# ═══════════════════════════════════════════════════════════════
#  HTTP BRIDGE CLIENT
# ═══════════════════════════════════════════════════════════════

class BridgeClient:
    """
    Async client for the automation bridge.

    Reads return the raw JSON payload (StateParser turns it into models).
    Commands return None on success and raise ActuationError otherwise.
    """

    def __init__(self, base: str, session: aiohttp.ClientSession):
        self.base    = base.rstrip("/")
        self.session = session
        self.headers = {
            "Content-Type": "application/json",
            "User-Agent":   "HuntBot/1.0",
        }

    async def _req(self, method: str, path: str, **kwargs) -> Any:
        url = f"{self.base}{path}"
        try:
            timeout = aiohttp.ClientTimeout(total=REQUEST_TIMEOUT)
            async with self.session.request(
                method, url, headers=self.headers, timeout=timeout, **kwargs
            ) as r:
                text = await r.text()
                log.debug(f"[BRIDGE] {method} {path} → HTTP {r.status} | body: {text[:300]}")
                if r.status in (200, 201, 204):
                    if not text:
                        return None
                    try:
                        return json.loads(text)
                    except json.JSONDecodeError:
                        return {"raw": text}
                if r.status == 404:
                    raise ActuationError(f"{method} {path}: endpoint not found")
                if r.status in (401, 403):
                    raise ActuationError(f"{method} {path}: bridge refused access (HTTP {r.status})")
                raise ActuationError(f"{method} {path}: HTTP {r.status}: {text[:200]}")
        except asyncio.TimeoutError as e:
            raise ActuationError(f"timeout on {method} {path}") from e
        except aiohttp.ClientConnectorError as e:
            raise ActuationError(f"cannot connect to {url}: {e}") from e
        except aiohttp.ClientError as e:
            raise ActuationError(f"connection error {method} {path}: {e}") from e

    async def _command(self, path: str, payload: Optional[dict] = None) -> Any:
        data = await self._req("POST", path, json=payload or {})
        if isinstance(data, dict) and data.get("ok") is False:
            reason = data.get("error") or "command rejected"
            raise ActuationError(f"{path}: {reason}")
        return data

    @staticmethod
    def _flag(data: Any, *keys: str) -> bool:
        if isinstance(data, dict):
            for key in keys:
                if key in data:
                    return parse_bool(data[key])
            return False
        return parse_bool(data)

    # Sensing
    async def get_agent_status(self) -> dict:
        data = await self._req("GET", "/hero")
        if data is None:
            raise ActuationError("hero object not found")
        return data

    async def get_entities(self) -> list:
        data = await self._req("GET", "/mobs")
        if data is None:
            return []
        return data

    async def is_connected(self) -> bool:
        return self._flag(await self._req("GET", "/connection"), "connected")

    # Actuation
    async def move_to(self, x: float, y: float) -> None:
        log.debug(f"[BRIDGE] move_to ({x:.1f}, {y:.1f})")
        await self._command("/move", {"x": x, "y": y})

    async def attack(self, entity_id: str) -> None:
        log.debug(f"[BRIDGE] attack {entity_id}")
        await self._command("/attack", {"id": entity_id})

    async def respawn(self) -> None:
        log.info("[BRIDGE] Attempting to respawn...")
        await self._command("/respawn")

    async def click(self, selector: str) -> None:
        await self._command("/click", {"selector": selector})

    # Session
    async def configure(self, settings: dict) -> None:
        log.debug(f"[BRIDGE] configure {settings}")
        await self._command("/configure", settings)

    async def navigate(self, url: str) -> None:
        log.debug(f"[BRIDGE] navigate {url}")
        await self._command("/navigate", {"url": url})

    async def wait_ready(self) -> None:
        await self._command("/wait-ready")

    async def is_logged_in(self) -> bool:
        return self._flag(await self._req("GET", "/session"), "logged_in", "loggedIn")

    async def login(self, username: str, password: str) -> bool:
        data = await self._command("/login", {"username": username, "password": password})
        return self._flag(data, "ok", "logged_in")

    async def ensure_ready(self, timeout: float) -> None:
        log.info("[BRIDGE] Waiting for game engine to be ready...")
        loop     = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while loop.time() < deadline:
            try:
                if self._flag(await self._req("GET", "/ready"), "ready"):
                    log.info("[BRIDGE] Game engine is ready!")
                    return
            except ActuationError as e:
                log.debug(f"[BRIDGE] Ready check failed: {e}")
            await timing.sleep(READY_POLL)
        raise ActuationError(f"game engine not ready after {timeout:.0f}s")
