import asyncio

import pytest

from huntbot import timing
from huntbot.config import (
    AccountConfig,
    Config,
    HuntingGround,
    ProfileConfig,
    RuntimeConfig,
    apply_defaults,
)
from huntbot.errors import ActuationError
from huntbot.models import AgentStatus, Entity
from huntbot.store import WorldStateStore


class FakeActuator:
    """In-memory stand-in for the automation bridge. Records every call."""

    def __init__(self, status=None, entities=None, connected=True):
        self.status    = status if status is not None else hero_payload()
        self.entities  = entities if entities is not None else []
        self.connected = connected
        self.logged_in = True
        self.calls     = []
        self.failing   = set()
        self.hooks     = {}

    async def _call(self, name, *args):
        self.calls.append((name, *args))
        if name in self.failing:
            raise ActuationError(f"{name} failed")
        hook = self.hooks.get(name)
        if hook is not None:
            hook(*args)

    def called(self, name):
        return [c for c in self.calls if c[0] == name]

    @property
    def moves(self):
        return [(c[1], c[2]) for c in self.called("move_to")]

    async def get_agent_status(self):
        await self._call("get_agent_status")
        return dict(self.status)

    async def get_entities(self):
        await self._call("get_entities")
        return list(self.entities)

    async def is_connected(self):
        await self._call("is_connected")
        return self.connected

    async def move_to(self, x, y):
        await self._call("move_to", x, y)

    async def attack(self, entity_id):
        await self._call("attack", entity_id)

    async def respawn(self):
        await self._call("respawn")

    async def ensure_ready(self, timeout):
        await self._call("ensure_ready", timeout)

    async def navigate(self, url):
        await self._call("navigate", url)

    async def wait_ready(self):
        await self._call("wait_ready")

    async def is_logged_in(self):
        await self._call("is_logged_in")
        return self.logged_in

    async def login(self, username, password):
        await self._call("login", username, password)
        return True

    async def click(self, selector):
        await self._call("click", selector)

    async def configure(self, settings):
        await self._call("configure", settings)


def hero_payload(x=400.0, y=300.0, map_id="forest", hp=100, hp_max=100, dead=False):
    return {"x": x, "y": y, "mapId": map_id, "hp": hp, "hpMax": hp_max,
            "mp": 50, "mpMax": 50, "level": 10, "dead": dead}


def mob(id, name="Orc", level=10, x=0.0, y=0.0, alive=True, attackable=True):
    return Entity(id=id, name=name, level=level, x=x, y=y, hp=50, hp_max=50,
                  alive=alive, attackable=attackable)


def status_at(x=400.0, y=300.0, map_id="forest", hp=100, hp_max=100, dead=False):
    return AgentStatus(x=x, y=y, map_id=map_id, hp=hp, hp_max=hp_max, dead=dead)


def make_config(**runtime) -> Config:
    cfg = Config(
        account=AccountConfig(username="hero", password="secret", start_url="https://game.test/"),
        profile=ProfileConfig(
            name="forest",
            hunting_ground=HuntingGround(map_id="forest", center_x=400.0, center_y=300.0, radius=250.0),
        ),
        runtime=RuntimeConfig(**{"tick_interval": 0.01, "poll_interval": 0.002, "patrol_interval": 30.0, **runtime}),
    )
    return apply_defaults(cfg)


@pytest.fixture
def slept(monkeypatch):
    """Replace timing.sleep with a recording, non-blocking version."""
    durations = []

    async def fake_sleep(seconds):
        durations.append(seconds)
        await asyncio.sleep(0)

    monkeypatch.setattr(timing, "sleep", fake_sleep)
    return durations


@pytest.fixture
def cfg():
    return make_config()


@pytest.fixture
def actuator():
    return FakeActuator()


@pytest.fixture
def store():
    return WorldStateStore()
