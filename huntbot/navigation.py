"""
Waypoint travel and patrolling.

Everything is built from jittered move_to calls plus pauses; there is no
obstacle-aware path planning, arriving "close enough" is the goal.
"""

import logging

from . import timing
from .errors import ActuationError, NavigationError
from .geometry import Point, add_jitter, distance, generate_path, random_offset
from .store import StoreView

log = logging.getLogger("HuntBot")

MOVE_SETTLE     = 2.0     # seconds to let a waypoint move finish
PORTAL_TIMEOUT  = 10.0
PORTAL_POLL     = 0.5
PATROL_SPREAD   = 0.8     # patrol inside 80% of the hunting-ground radius
DIRECT_MOVE_MAX = 150.0   # longer moves are split into a curved path
PATH_STEP       = 50.0


class Navigator:

    def __init__(self, actuator, cfg):
        self.actuator = actuator
        self.cfg      = cfg
        self.patrols  = 0

    @property
    def hunting_ground(self):
        return self.cfg.profile.hunting_ground

    def at_hunting_ground(self, view: StoreView) -> bool:
        status = view.get_status()
        ground = self.hunting_ground
        if status.map_id != ground.map_id:
            return False
        center = Point(ground.center_x, ground.center_y)
        return distance(status.position, center) <= ground.radius

    async def go_to_hunting_ground(self, view: StoreView):
        if self.at_hunting_ground(view):
            log.info("[NAV] Already at hunting ground")
            return

        waypoints = self.cfg.profile.waypoints
        log.info(f"[NAV] Navigating to hunting ground ({len(waypoints)} waypoints)")
        behavior = self.cfg.behavior
        for i, wp in enumerate(waypoints, start=1):
            log.info(f"[NAV] Waypoint {i}/{len(waypoints)}: {wp.description or wp.map_id}")
            try:
                await self._follow_waypoint(wp, view)
            except NavigationError as e:
                raise NavigationError(f"failed to follow waypoint {i}: {e}") from e
            await timing.sleep_range(behavior.min_delay, behavior.max_delay)

        log.info("[NAV] Arrived at hunting ground")

    async def _follow_waypoint(self, wp, view: StoreView):
        status = view.get_status()

        if status.map_id != wp.map_id and wp.action == "portal":
            log.debug(f"[NAV] Using portal to reach map {wp.map_id}")
            if wp.selector:
                try:
                    await self.actuator.click(wp.selector)
                except ActuationError as e:
                    raise NavigationError(f"failed to click portal {wp.selector}: {e}") from e
            await self._wait_for_map(wp.map_id, view)

        dest = add_jitter(Point(wp.x, wp.y), self.cfg.behavior.path_jitter)
        log.debug(f"[NAV] Moving to waypoint ({dest.x:.0f}, {dest.y:.0f})")
        try:
            await self.actuator.move_to(dest.x, dest.y)
        except ActuationError as e:
            raise NavigationError(f"failed to move to waypoint: {e}") from e

        await timing.sleep(MOVE_SETTLE)

    async def _wait_for_map(self, map_id: str, view: StoreView):
        waited = 0.0
        while waited < PORTAL_TIMEOUT:
            if view.get_status().map_id == map_id:
                log.debug("[NAV] Map changed successfully")
                return
            await timing.sleep(PORTAL_POLL)
            waited += PORTAL_POLL
        if view.get_status().map_id != map_id:
            raise NavigationError(f"map did not change to {map_id} after portal")

    async def patrol_area(self, view: StoreView):
        status = view.get_status()
        ground = self.hunting_ground
        center = Point(ground.center_x, ground.center_y)
        offset = random_offset(ground.radius * PATROL_SPREAD)
        dest   = Point(center.x + offset.x, center.y + offset.y)
        here   = status.position
        log.debug(f"[NAV] Patrolling to ({dest.x:.0f}, {dest.y:.0f})")

        behavior = self.cfg.behavior
        if distance(here, dest) > DIRECT_MOVE_MAX:
            for point in generate_path(here, dest, PATH_STEP):
                await self._patrol_move(point)
                await timing.sleep_range(behavior.min_delay / 2, behavior.max_delay / 2)
        else:
            await self._patrol_move(dest)
        self.patrols += 1

    async def _patrol_move(self, point: Point):
        try:
            await self.actuator.move_to(point.x, point.y)
        except ActuationError as e:
            raise NavigationError(f"failed to patrol: {e}") from e

    async def return_from_death(self, view: StoreView):
        log.info("[NAV] Returning from death to hunting ground...")
        await timing.long_pause()
        await self.go_to_hunting_ground(view)
