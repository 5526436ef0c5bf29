"""
Combat controller.

Holds at most one engaged target and, once per HUNT tick, decides whether
to retreat, keep the target, replace it, or find a new one, then moves and
attacks with human-like pacing.
"""

import logging
from typing import Optional

from . import timing
from .errors import ActuationError, CombatError
from .geometry import Point, add_jitter, distance, random_offset
from .models import AgentStatus, Entity
from .store import StoreView
from .targeting import select_target

log = logging.getLogger("HuntBot")

ATTACK_RANGE   = 50.0    # closer than this we attack without moving
RETREAT_RADIUS = 100.0


class CombatController:

    def __init__(self, actuator, cfg):
        self.actuator = actuator
        self.cfg      = cfg
        self.current_target: Optional[Entity] = None
        self.attacks  = 0

    def reset(self):
        self.current_target = None

    async def tick(self, view: StoreView):
        """
        One combat step. Raises CombatError if a move/attack fails; the next
        tick starts again from fresh state, so there is no retry here.
        """
        status = view.get_status()

        # ①  Low HP beats everything else
        if status.hp_pct < self.cfg.combat.hp_threshold:
            log.warning(f"[COMBAT] HP critically low ({status.hp_pct}%), retreating")
            self.current_target = None
            await self.retreat(status)
            return

        entities = view.get_entities()

        # ②  Re-validate the held target against the latest snapshot
        if self.current_target is not None:
            fresh = self._find_alive(self.current_target.id, entities)
            if fresh is not None:
                self.current_target = fresh
            else:
                log.debug(f"[COMBAT] Target {self.current_target.id} no longer valid")
                self.current_target = None
                if self.cfg.combat.retarget_on_loss:
                    self.current_target = select_target(status, entities, self.cfg.combat)
                    if self.current_target is not None:
                        self._log_acquired(self.current_target, "Retargeted")

        # ③  Acquire
        if self.current_target is None:
            self.current_target = select_target(status, entities, self.cfg.combat)
            if self.current_target is None:
                return
            self._log_acquired(self.current_target, "New target")

        # ④  Engage
        await self.engage(status, self.current_target)

    @staticmethod
    def _find_alive(entity_id: str, entities: list[Entity]) -> Optional[Entity]:
        for entity in entities:
            if entity.id == entity_id and entity.engageable:
                return entity
        return None

    @staticmethod
    def _log_acquired(target: Entity, what: str):
        log.info(f"[COMBAT] {what}: {target.name} (lvl {target.level}, id={target.id})")

    async def engage(self, status: AgentStatus, target: Entity):
        behavior = self.cfg.behavior
        dist     = distance(status.position, target.position)
        log.debug(f"[COMBAT] Engaging {target.name} at {dist:.0f}")

        if dist > ATTACK_RANGE:
            dest = add_jitter(target.position, behavior.path_jitter)
            try:
                await self.actuator.move_to(dest.x, dest.y)
            except ActuationError as e:
                raise CombatError(f"failed to move to target: {e}") from e
            await timing.sleep_range(behavior.min_delay, behavior.max_delay)

        try:
            await self.actuator.attack(target.id)
        except ActuationError as e:
            raise CombatError(f"failed to attack {target.id}: {e}") from e
        self.attacks += 1

        await timing.sleep_range(behavior.min_delay, behavior.max_delay)

    async def retreat(self, status: AgentStatus):
        offset = random_offset(RETREAT_RADIUS)
        dest   = Point(status.x + offset.x, status.y + offset.y)
        try:
            await self.actuator.move_to(dest.x, dest.y)
        except ActuationError as e:
            raise CombatError(f"failed to retreat: {e}") from e
        await timing.long_pause()
