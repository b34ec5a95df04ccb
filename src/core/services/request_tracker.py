"""Registro de requests en vuelo.

Cada llamada de Safe Fetch registra aquí su `CancellationHandle` junto con
el componente que la originó. El registro permite cancelar en bloque todo
lo que pertenece a una vista que se cierra y purgar requests que nunca
terminan (p.ej. tras suspender el proceso).

Es una instancia explícita, no un singleton de módulo: cada consola (y cada
test) crea la suya.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Callable

logger = logging.getLogger(__name__)


class CancellationHandle:
    """Envuelve la tarea asyncio que ejecuta una llamada de red."""

    def __init__(self, task: asyncio.Task | None = None) -> None:
        self._task = task
        self.reason: str | None = None

    def bind(self, task: asyncio.Task) -> None:
        self._task = task
        if self.reason is not None:
            task.cancel()

    @property
    def cancelled(self) -> bool:
        return self.reason is not None

    def cancel(self, reason: str = "cancelled") -> None:
        if self.reason is None:
            self.reason = reason
        if self._task is not None and not self._task.done():
            self._task.cancel()


@dataclass
class TrackedRequest:
    request_id: str
    handle: CancellationHandle
    component_name: str
    url: str
    started_at: float


class RequestTracker:
    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._active: dict[str, TrackedRequest] = {}

    def register(
        self,
        request_id: str,
        handle: CancellationHandle,
        component_name: str,
        url: str,
    ) -> None:
        # Un id repetido reemplaza la entrada: solo el último handle queda accesible.
        self._active[request_id] = TrackedRequest(
            request_id=request_id,
            handle=handle,
            component_name=component_name,
            url=url,
            started_at=self._clock(),
        )

    def unregister(self, request_id: str, handle: CancellationHandle | None = None) -> None:
        """Elimina la entrada; si se pasa `handle`, solo si sigue siendo la registrada."""

        entry = self._active.get(request_id)
        if entry is None:
            return
        if handle is not None and entry.handle is not handle:
            return
        del self._active[request_id]

    def cancel_all(self, component_name: str) -> int:
        matching = [e for e in self._active.values() if e.component_name == component_name]
        for entry in matching:
            entry.handle.cancel("component_closed")
            del self._active[entry.request_id]
        if matching:
            logger.debug("Cancelled %d request(s) for %s", len(matching), component_name)
        return len(matching)

    def prune_stale(self, max_age_seconds: float) -> int:
        now = self._clock()
        stale = [e for e in self._active.values() if now - e.started_at > max_age_seconds]
        for entry in stale:
            logger.warning("Aborting stale request %s (%s)", entry.request_id, entry.component_name)
            entry.handle.cancel("stale")
            del self._active[entry.request_id]
        return len(stale)

    @property
    def active_count(self) -> int:
        return len(self._active)

    def snapshot(self) -> list[dict[str, object]]:
        now = self._clock()
        return [
            {
                "id": e.request_id,
                "url": e.url,
                "component_name": e.component_name,
                "duration": now - e.started_at,
            }
            for e in self._active.values()
        ]
