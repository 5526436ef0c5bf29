"""
Shared world state.

The sensing loop writes, the decision loop reads. Every accessor runs under
a readers/writer lock and every read hands back an independent copy, so a
caller can keep using what it got while the next poll lands.
"""

import logging
import threading
import time
from collections import deque
from contextlib import contextmanager
from copy import deepcopy
from typing import Optional

from .models import AgentStatus, ConnectionState, Entity, Phase, PositionRecord

log = logging.getLogger("HuntBot")

HISTORY_SIZE = 10


class ReadWriteLock:
    """Many readers or one writer. Waiting writers block new readers."""

    def __init__(self):
        self._cond            = threading.Condition(threading.Lock())
        self._readers         = 0
        self._writer          = False
        self._writers_waiting = 0

    @contextmanager
    def read(self):
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self):
        with self._cond:
            self._writers_waiting += 1
            while self._writer or self._readers:
                self._cond.wait()
            self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class WorldStateStore:
    """
    Latest-value-wins snapshot of the world.

    Written by the sensing loop (status, entities, connection) and by the
    phase controller (phase). Nothing else should hold this object; decision
    components get a `StoreView`.
    """

    def __init__(self, history_size: int = HISTORY_SIZE, clock=time.monotonic):
        self._lock       = ReadWriteLock()
        self._clock      = clock
        self._status     = AgentStatus()
        self._entities:  list[Entity] = []
        self._connection = ConnectionState(connected=True)
        self._phase      = Phase.STARTUP
        self._history:   deque[PositionRecord] = deque(maxlen=history_size)
        self._actions    = 0

    # ── Writes ───────────────────────────────────────────────

    def update_status(self, status: AgentStatus):
        now      = self._clock()
        snapshot = deepcopy(status)
        snapshot.last_update = time.time()
        with self._lock.write():
            self._status = snapshot
            self._history.append(PositionRecord(snapshot.x, snapshot.y, now))

    def update_entities(self, entities: list[Entity]):
        snapshot = deepcopy(list(entities))
        with self._lock.write():
            self._entities = snapshot

    def update_connection(self, connected: bool):
        with self._lock.write():
            was_connected = self._connection.connected
            retries = 0 if connected else self._connection.retries + 1
            self._connection = ConnectionState(
                connected  = connected,
                last_check = time.time(),
                retries    = retries,
            )
        if connected != was_connected:
            log.debug(f"[STORE] Connection {'up' if connected else 'down'} (retries={retries})")

    def set_phase(self, phase: Phase):
        with self._lock.write():
            self._phase = phase

    def increment_action_counter(self) -> int:
        with self._lock.write():
            self._actions += 1
            return self._actions

    # ── Reads ────────────────────────────────────────────────

    def get_status(self) -> AgentStatus:
        with self._lock.read():
            return deepcopy(self._status)

    def get_entities(self) -> list[Entity]:
        with self._lock.read():
            return deepcopy(self._entities)

    def get_phase(self) -> Phase:
        with self._lock.read():
            return self._phase

    def is_connected(self) -> bool:
        with self._lock.read():
            return self._connection.connected

    def get_connection(self) -> ConnectionState:
        with self._lock.read():
            return deepcopy(self._connection)

    def retries(self) -> int:
        with self._lock.read():
            return self._connection.retries

    def action_count(self) -> int:
        with self._lock.read():
            return self._actions

    def position_history(self) -> list[PositionRecord]:
        with self._lock.read():
            return list(self._history)

    def is_stuck(self, threshold: float, window: float, now: Optional[float] = None) -> bool:
        """
        True when some earlier sample inside the last `window` seconds lies
        within `threshold` of the newest one. Fewer than two samples is never
        stuck.
        """
        with self._lock.read():
            history = list(self._history)

        if len(history) < 2:
            return False

        now    = self._clock() if now is None else now
        latest = history[-1]
        limit  = threshold * threshold
        for record in reversed(history[:-1]):
            if now - record.timestamp > window:
                break
            dx = latest.x - record.x
            dy = latest.y - record.y
            if dx * dx + dy * dy < limit:
                return True
        return False

    def view(self) -> "StoreView":
        return StoreView(self)


class StoreView:
    """Read-only face of the store handed to combat and navigation."""

    def __init__(self, store: WorldStateStore):
        self._store = store

    def get_status(self) -> AgentStatus:
        return self._store.get_status()

    def get_entities(self) -> list[Entity]:
        return self._store.get_entities()

    def get_phase(self) -> Phase:
        return self._store.get_phase()

    def is_connected(self) -> bool:
        return self._store.is_connected()

    def is_stuck(self, threshold: float, window: float) -> bool:
        return self._store.is_stuck(threshold, window)
