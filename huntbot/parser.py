"""
Raw bridge payloads → typed models.

This is the only place that tolerates loose data. Missing or wrong-typed
fields fall back to zero / empty / False so that partial telemetry never
stops the control loop. Field names cover the variants the game client is
known to expose.
"""

import logging
import math
from typing import Any, Optional

from .models import AgentStatus, Entity

log = logging.getLogger("HuntBot")

_TRUE_STRINGS = ("true", "1", "yes")


def parse_float(value: Any, default: float = 0.0) -> float:
    """Finite float or `default`. NaN and infinities count as malformed."""
    if isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        try:
            result = float(value)
        except OverflowError:
            return default
    elif isinstance(value, str):
        try:
            result = float(value)
        except ValueError:
            return default
    else:
        return default
    if not math.isfinite(result):
        return default
    return result


def parse_int(value: Any, default: int = 0) -> int:
    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    return int(parse_float(value, float(default)))


def parse_str(value: Any, default: str = "") -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    if isinstance(value, float) and math.isfinite(value):
        return str(value)
    return default


def parse_bool(value: Any, default: bool = False) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value == 1
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_STRINGS
    return default


def _first(raw: dict, *keys: str) -> Any:
    """First present, non-None value among the alias keys."""
    for key in keys:
        value = raw.get(key)
        if value is not None:
            return value
    return None


class StateParser:
    """Converts the bridge's JSON into AgentStatus / Entity values."""

    @staticmethod
    def parse_status(raw: Any) -> AgentStatus:
        if not isinstance(raw, dict):
            log.debug(f"[PARSE] Status payload is {type(raw).__name__}, using defaults")
            return AgentStatus()

        hero = raw.get("hero", raw)
        if not isinstance(hero, dict):
            return AgentStatus()

        map_id = _first(hero, "mapId", "map_id")
        if map_id is None and isinstance(hero.get("map"), dict):
            map_id = hero["map"].get("id")

        hp     = parse_int(_first(hero, "hp", "HP"))
        hp_max = parse_int(_first(hero, "hpMax", "hp_max", "maxhp", "maxHP"))

        dead_raw = _first(hero, "dead", "isDead")
        if dead_raw is None:
            dead = hp_max > 0 and hp <= 0
        else:
            dead = parse_bool(dead_raw)

        return AgentStatus(
            x         = parse_float(_first(hero, "x", "posX")),
            y         = parse_float(_first(hero, "y", "posY")),
            map_id    = parse_str(map_id),
            hp        = hp,
            hp_max    = hp_max,
            mp        = parse_int(_first(hero, "mp", "MP")),
            mp_max    = parse_int(_first(hero, "mpMax", "mp_max", "maxmp", "maxMP")),
            level     = parse_int(_first(hero, "level", "lvl")),
            exp       = parse_int(hero.get("exp")),
            in_combat = parse_bool(_first(hero, "inCombat", "in_combat", "incombat")),
            dead      = dead,
        )

    @staticmethod
    def parse_entity(raw: Any, fallback_id: str = "") -> Optional[Entity]:
        if not isinstance(raw, dict):
            log.debug(f"[PARSE] Skipping entity of type {type(raw).__name__}")
            return None

        hp = parse_int(raw.get("hp"))
        alive_raw = raw.get("alive")
        if alive_raw is None:
            alive = "hp" in raw and hp > 0 and not parse_bool(raw.get("dead"))
        else:
            alive = parse_bool(alive_raw)
        attackable_raw = raw.get("attackable")
        attackable = alive if attackable_raw is None else parse_bool(attackable_raw)

        return Entity(
            id         = parse_str(raw.get("id"), fallback_id),
            name       = parse_str(_first(raw, "name", "nick")),
            level      = parse_int(_first(raw, "level", "lvl")),
            x          = parse_float(_first(raw, "x", "posX")),
            y          = parse_float(_first(raw, "y", "posY")),
            hp         = hp,
            hp_max     = parse_int(_first(raw, "hpMax", "hp_max", "maxhp")),
            alive      = alive,
            attackable = attackable,
        )

    @classmethod
    def parse_entities(cls, raw: Any) -> list[Entity]:
        if isinstance(raw, dict):
            inner = _first(raw, "mobs", "npcs", "data")
            if inner is not None:
                raw = inner

        if isinstance(raw, dict):
            # {id: {...}} map, as the game keeps its NPC table
            items = [(str(key), value) for key, value in raw.items()]
        elif isinstance(raw, list):
            items = [("", value) for value in raw]
        else:
            if raw is not None:
                log.debug(f"[PARSE] Unexpected entity payload: {type(raw).__name__}")
            return []

        entities = []
        for fallback_id, item in items:
            entity = cls.parse_entity(item, fallback_id)
            if entity is not None:
                entities.append(entity)
        return entities
