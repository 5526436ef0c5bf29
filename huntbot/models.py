"""
World data as the decision core sees it.

Everything here is produced by `parser.StateParser` from raw bridge payloads,
so the rest of the bot can assume well-typed values.
"""

import time
from dataclasses import dataclass, field
from enum import Enum

from .geometry import Point


class Phase(Enum):
    STARTUP      = "STARTUP"
    LOGIN        = "LOGIN"
    WAIT_READY   = "WAIT_READY"
    NAVIGATE     = "NAVIGATE"
    HUNT         = "HUNT"
    DEAD         = "DEAD"
    RECOVER      = "RECOVER"
    DISCONNECTED = "DISCONNECTED"
    SHUTDOWN     = "SHUTDOWN"

    def __str__(self) -> str:
        return self.value


@dataclass
class AgentStatus:
    x:           float = 0.0
    y:           float = 0.0
    map_id:      str   = ""
    hp:          int   = 0
    hp_max:      int   = 0
    mp:          int   = 0
    mp_max:      int   = 0
    level:       int   = 0
    exp:         int   = 0
    in_combat:   bool  = False
    dead:        bool  = False
    last_update: float = 0.0

    @property
    def position(self) -> Point:
        return Point(self.x, self.y)

    @property
    def hp_pct(self) -> int:
        if self.hp_max == 0:
            return 0
        return int(self.hp * 100 / self.hp_max)

    @property
    def mp_pct(self) -> int:
        if self.mp_max == 0:
            return 0
        return int(self.mp * 100 / self.mp_max)


@dataclass
class Entity:
    id:         str
    name:       str   = ""
    level:      int   = 0
    x:          float = 0.0
    y:          float = 0.0
    hp:         int   = 0
    hp_max:     int   = 0
    alive:      bool  = False
    attackable: bool  = False

    @property
    def position(self) -> Point:
        return Point(self.x, self.y)

    @property
    def engageable(self) -> bool:
        return self.alive and self.attackable


@dataclass
class ConnectionState:
    connected:  bool  = True
    last_check: float = 0.0
    retries:    int   = 0


@dataclass(frozen=True)
class PositionRecord:
    x:         float
    y:         float
    timestamp: float = field(default_factory=time.monotonic)
