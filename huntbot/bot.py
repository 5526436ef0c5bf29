"""
Phase controller: the bot's main loop.

Owns the phase state machine and is the only writer of the current phase:

    STARTUP → LOGIN → WAIT_READY → NAVIGATE (or auto-detect) → HUNT
    HUNT → DEAD → RECOVER → HUNT
    HUNT → DISCONNECTED → HUNT
    any  → SHUTDOWN

Two asyncio tasks share the WorldStateStore: the sensing loop writes fresh
snapshots every `poll_interval`, the hunt loop reads them every
`tick_interval` and issues commands through the actuator.
"""

import asyncio
import logging
from contextlib import suppress
from typing import Optional

import aiohttp

from . import timing
from .actuator import Actuator, BridgeClient
from .combat import CombatController
from .config import AUTO_DETECT_RADIUS, Config, HuntingGround, bridge_settings
from .errors import (
    ActuationError,
    CombatError,
    GameNotReadyError,
    LoginError,
    NavigationError,
    ReconnectError,
)
from .models import Phase
from .navigation import Navigator
from .parser import StateParser
from .store import WorldStateStore

log = logging.getLogger("HuntBot")

INITIAL_STATE_WAIT = 2.0    # let the first polls land before deciding anything
LOGIN_SETTLE       = 3.0
LOGIN_SUBMIT_WAIT  = 5.0
SERVER_SELECT_WAIT = 2.0
STUCK_DISTANCE     = 10.0
STUCK_WINDOW       = 30.0
DEATH_SETTLE       = 2.0
RESPAWN_SETTLE     = 3.0
AUTO_DEATH_WAIT    = 5.0
AUTO_RETURN_WAIT   = 30.0   # time for the player to walk back manually


async def sleep_or_stop(stop: asyncio.Event, seconds: float) -> bool:
    """Wait up to `seconds`; True if `stop` was set meanwhile."""
    try:
        await asyncio.wait_for(stop.wait(), timeout=seconds)
    except asyncio.TimeoutError:
        return False
    return True


class HuntBot:

    def __init__(self, cfg: Config, actuator: Actuator, store: Optional[WorldStateStore] = None):
        self.cfg       = cfg
        self.actuator  = actuator
        self.store     = store or WorldStateStore()
        self.view      = self.store.view()
        self.combat    = CombatController(actuator, cfg)
        self.navigator = Navigator(actuator, cfg)

        self.phase_history: list[Phase] = [self.store.get_phase()]
        self.stat_ticks      = 0
        self.stat_deaths     = 0
        self.stat_reconnects = 0
        self._last_patrol: Optional[float] = None

    @property
    def phase(self) -> Phase:
        return self.store.get_phase()

    def _enter(self, phase: Phase):
        old = self.store.get_phase()
        if old is phase:
            return
        self.store.set_phase(phase)
        self.phase_history.append(phase)
        log.info(f"[PHASE] {old} → {phase}")

    # ── Entry ────────────────────────────────────────────────

    async def run(self, stop: asyncio.Event):
        """
        Drive the bot until `stop` is set. Returns normally on a clean stop;
        raises LoginError, GameNotReadyError, NavigationError or
        ReconnectError when the session cannot continue.
        """
        poller: Optional[asyncio.Task] = None
        try:
            self._enter(Phase.LOGIN)
            await self._login()
            if stop.is_set():
                return

            self._enter(Phase.WAIT_READY)
            try:
                await self.actuator.ensure_ready(self.cfg.runtime.ready_timeout)
            except ActuationError as e:
                raise GameNotReadyError(f"game not ready: {e}") from e

            poller = asyncio.create_task(self._poll_loop(stop), name="huntbot-sensing")
            await timing.sleep(INITIAL_STATE_WAIT)
            if stop.is_set():
                return

            if self.cfg.runtime.auto_detect_mode:
                log.info("[BOT] AUTO-DETECT MODE: hunting at current location")
                self._detect_hunting_ground()
            else:
                self._enter(Phase.NAVIGATE)
                await self.navigator.go_to_hunting_ground(self.view)

            self._enter(Phase.HUNT)
            await self._hunt(stop)
        finally:
            if poller is not None:
                poller.cancel()
                with suppress(asyncio.CancelledError):
                    await poller
            self._enter(Phase.SHUTDOWN)
            self._print_summary()

    # ── Login ────────────────────────────────────────────────

    async def _login(self):
        acc = self.cfg.account
        try:
            await self.actuator.configure(bridge_settings(self.cfg))
        except ActuationError as e:
            log.warning(f"[LOGIN] Bridge rejected browser settings: {e}")

        log.info("[LOGIN] Navigating to game...")
        try:
            await self.actuator.navigate(acc.start_url)
            await self.actuator.wait_ready()
        except ActuationError as e:
            raise LoginError(f"failed to open {acc.start_url}: {e}") from e

        await timing.sleep(LOGIN_SETTLE)

        try:
            if await self.actuator.is_logged_in():
                log.info("[LOGIN] Already logged in (using saved session)")
                return
        except ActuationError as e:
            log.debug(f"[LOGIN] Session check failed: {e}")

        log.info("[LOGIN] Attempting login...")
        await timing.random_pause()
        try:
            if not await self.actuator.login(acc.username, acc.password):
                log.warning("[LOGIN] Login form not found, manual intervention may be required")
        except ActuationError as e:
            log.warning(f"[LOGIN] Automated login failed, manual intervention may be required: {e}")

        await timing.sleep(LOGIN_SUBMIT_WAIT)

        if acc.server:
            log.info(f"[LOGIN] Selecting server {acc.server}...")
            await timing.sleep(SERVER_SELECT_WAIT)

        log.info("[LOGIN] Login complete")

    # ── Sensing loop ─────────────────────────────────────────

    async def _poll_loop(self, stop: asyncio.Event):
        interval = self.cfg.runtime.poll_interval
        while not stop.is_set():
            try:
                await self.poll_once()
            except (KeyboardInterrupt, asyncio.CancelledError):
                raise
            except Exception as e:
                log.error(f"[POLL] Unexpected error: {e}", exc_info=True)
            if await sleep_or_stop(stop, interval):
                return

    async def poll_once(self):
        """Pull one status / entity / connectivity snapshot into the store."""
        try:
            raw_status = await self.actuator.get_agent_status()
        except ActuationError as e:
            log.debug(f"[POLL] Failed to get hero state: {e}")
            return
        self.store.update_status(StateParser.parse_status(raw_status))

        try:
            raw_entities = await self.actuator.get_entities()
        except ActuationError as e:
            log.debug(f"[POLL] Failed to get mobs: {e}")
            return
        self.store.update_entities(StateParser.parse_entities(raw_entities))

        try:
            connected = await self.actuator.is_connected()
        except ActuationError:
            connected = False
        self.store.update_connection(connected)

    # ── Hunt loop ────────────────────────────────────────────

    async def _hunt(self, stop: asyncio.Event):
        while not stop.is_set():
            if await sleep_or_stop(stop, self.cfg.runtime.tick_interval):
                log.info("[BOT] Stop requested, leaving hunt loop")
                return
            self.stat_ticks += 1
            await self.hunt_tick()

    async def hunt_tick(self):
        status = self.view.get_status()

        # ①  Death
        if status.dead:
            await self._handle_death()
            return

        # ②  Connectivity
        if not self.view.is_connected():
            log.warning(f"[BOT] Connection lost ({self.store.retries()} failed checks)")
            self._enter(Phase.DISCONNECTED)
            await self._reconnect()
            self.combat.reset()
            self._enter(Phase.HUNT)
            return

        # ③  Stuck: nudge, phase stays HUNT
        if self.view.is_stuck(STUCK_DISTANCE, STUCK_WINDOW):
            log.warning("[BOT] Character appears stuck, attempting recovery")
            try:
                await self.navigator.patrol_area(self.view)
            except NavigationError as e:
                log.warning(f"[BOT] Failed to recover from stuck state: {e}")

        # ④  Idle patrol when nothing is around
        now = asyncio.get_running_loop().time()
        if self._last_patrol is None:
            self._last_patrol = now
        if now - self._last_patrol > self.cfg.runtime.patrol_interval:
            if not self.view.get_entities():
                log.debug("[BOT] No mobs nearby, patrolling")
                try:
                    await self.navigator.patrol_area(self.view)
                except NavigationError as e:
                    log.warning(f"[BOT] Patrol failed: {e}")
            self._last_patrol = now

        # ⑤  Combat
        try:
            await self.combat.tick(self.view)
        except CombatError as e:
            log.warning(f"[COMBAT] Tick failed: {e}")

        # ⑥  Idle break
        count = self.store.increment_action_counter()
        behavior = self.cfg.behavior
        if timing.should_take_break(count, behavior.idle_break_every):
            log.info(f"[BOT] Taking idle break ({behavior.idle_break_duration:.0f}s)")
            await timing.sleep(behavior.idle_break_duration)

    # ── Death ────────────────────────────────────────────────

    async def _handle_death(self):
        self.stat_deaths += 1
        self._enter(Phase.DEAD)

        if self.cfg.runtime.auto_detect_mode:
            log.warning("[DEATH] Character died! Waiting for respawn...")
            await timing.sleep(AUTO_DEATH_WAIT)
            try:
                await self.actuator.respawn()
            except ActuationError as e:
                log.warning(f"[DEATH] Respawn failed: {e}")
            log.info("[DEATH] Respawned - return to your hunting ground manually!")
            await timing.sleep(AUTO_RETURN_WAIT)
            self._detect_hunting_ground()
        else:
            try:
                await self._recover_from_death()
            except (ActuationError, NavigationError) as e:
                log.error(f"[DEATH] Failed to handle death: {e}")

        self.combat.reset()
        self._enter(Phase.HUNT)

    async def _recover_from_death(self):
        log.info("[DEATH] Handling death...")
        await timing.sleep(DEATH_SETTLE)
        await self.actuator.respawn()
        log.info("[DEATH] Respawned successfully")
        await timing.sleep(RESPAWN_SETTLE)

        self._enter(Phase.RECOVER)
        await self.navigator.return_from_death(self.view)
        log.info("[DEATH] Recovery complete")

    def _detect_hunting_ground(self):
        status = self.view.get_status()
        radius = self.cfg.profile.hunting_ground.radius or AUTO_DETECT_RADIUS
        self.cfg.profile.hunting_ground = HuntingGround(
            map_id   = status.map_id,
            center_x = status.x,
            center_y = status.y,
            radius   = radius,
        )
        log.info(f"[BOT] Hunting ground set to map={status.map_id} "
                 f"({status.x:.0f}, {status.y:.0f}) r={radius:.0f}")

    # ── Reconnect ────────────────────────────────────────────

    async def _reconnect(self):
        rc  = self.cfg.runtime.reconnect
        url = self.cfg.account.start_url
        log.warning("[RECONNECT] Handling disconnection...")
        for attempt in range(rc.attempts):
            delay = timing.backoff(rc.base, rc.factor, rc.max, attempt)
            log.info(f"[RECONNECT] Attempt {attempt + 1}/{rc.attempts} in {delay:.0f}s")
            await timing.sleep(delay)

            try:
                await self.actuator.navigate(url)
            except ActuationError as e:
                log.warning(f"[RECONNECT] Failed to navigate: {e}")
                continue

            try:
                await self.actuator.ensure_ready(self.cfg.runtime.ready_timeout)
            except ActuationError as e:
                log.warning(f"[RECONNECT] Game not ready after reload: {e}")
                continue

            self.store.update_connection(True)
            self.stat_reconnects += 1
            log.info("[RECONNECT] Reconnected successfully")
            return

        raise ReconnectError(rc.attempts)

    def _print_summary(self):
        log.info("=" * 60)
        log.info("  SESSION SUMMARY")
        log.info(f"  Hunt ticks     : {self.stat_ticks}")
        log.info(f"  Attacks issued : {self.combat.attacks}")
        log.info(f"  Deaths         : {self.stat_deaths}")
        log.info(f"  Reconnects     : {self.stat_reconnects}")
        log.info(f"  Patrols        : {self.navigator.patrols}")
        log.info("=" * 60)


async def run(stop: asyncio.Event, cfg: Config, actuator: Optional[Actuator] = None):
    """
    Blocking entry point. Without an explicit actuator, talks to the
    automation bridge at `cfg.runtime.bridge_url`.
    """
    if actuator is not None:
        await HuntBot(cfg, actuator).run(stop)
        return

    connector = aiohttp.TCPConnector(limit=10, enable_cleanup_closed=True)
    async with aiohttp.ClientSession(connector=connector) as session:
        bridge = BridgeClient(cfg.runtime.bridge_url, session)
        await HuntBot(cfg, bridge).run(stop)
