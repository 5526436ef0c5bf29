"""
Target selection: pure scoring, no I/O.

select_target() filters the visible entities by the combat constraints and
returns the single highest-scoring one (first seen wins a tie).
"""

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from .geometry import distance
from .models import AgentStatus, Entity

log = logging.getLogger("HuntBot")

BASE_SCORE         = 100.0
PRIORITY_STEP      = 50.0    # bonus per rank in the priority list
DISTANCE_REFERENCE = 300.0   # distance that costs a full DISTANCE_WEIGHT
DISTANCE_WEIGHT    = 50.0


@dataclass
class TargetScore:
    entity:   Entity
    score:    float
    distance: float


def priority_bonus(name: str, priority: Sequence[str]) -> float:
    for i, wanted in enumerate(priority):
        if name == wanted:
            return (len(priority) - i) * PRIORITY_STEP
    return 0.0


def score_entity(entity: Entity, dist: float, priority: Sequence[str] = ()) -> float:
    score  = BASE_SCORE + priority_bonus(entity.name, priority)
    score -= (dist / DISTANCE_REFERENCE) * DISTANCE_WEIGHT
    return score


def _in_level_band(level: int, min_level: int, max_level: int) -> bool:
    if min_level > 0 and level < min_level:
        return False
    if max_level > 0 and level > max_level:
        return False
    return True


def rank_targets(status: AgentStatus, entities: Sequence[Entity], constraints) -> list[TargetScore]:
    """Scored candidates in scan order. `constraints` is a CombatConfig."""
    here       = status.position
    candidates = []
    for entity in entities:
        if not entity.engageable:
            continue
        if not _in_level_band(entity.level, constraints.min_level, constraints.max_level):
            continue
        dist = distance(here, entity.position)
        if constraints.max_engage_distance > 0 and dist > constraints.max_engage_distance:
            continue
        score = score_entity(entity, dist, constraints.target_priority)
        candidates.append(TargetScore(entity, score, dist))
    return candidates


def select_target(status: AgentStatus, entities: Sequence[Entity], constraints) -> Optional[Entity]:
    candidates = rank_targets(status, entities, constraints)
    if not candidates:
        return None

    best = candidates[0]
    for candidate in candidates[1:]:
        if candidate.score > best.score:
            best = candidate

    log.debug(f"[TARGET] {best.entity.name}#{best.entity.id} score={best.score:.1f} "
              f"dist={best.distance:.0f} ({len(candidates)} candidates)")
    return best.entity


def find_nearest(status: AgentStatus, entities: Sequence[Entity]) -> Optional[Entity]:
    """Closest alive, attackable entity, ignoring every other constraint."""
    here    = status.position
    nearest = None
    best    = float("inf")
    for entity in entities:
        if not entity.engageable:
            continue
        dist = distance(here, entity.position)
        if dist < best:
            best, nearest = dist, entity
    return nearest
