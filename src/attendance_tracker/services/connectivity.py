from __future__ import annotations

import logging
import threading
from typing import Callable

_LOGGER = logging.getLogger(__name__)

Probe = Callable[[], bool]
Listener = Callable[[], None]


class ConnectivityMonitor:
    """Turn a reachability probe into a connectivity-regained signal."""

    def __init__(self, probe: Probe, *, initially_online: bool = True) -> None:
        self._probe = probe
        self._online = initially_online
        self._listeners: list[Listener] = []
        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def is_online(self) -> bool:
        return self._online

    def on_reconnect(self, listener: Listener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def check(self) -> bool:
        """Probe once; fire listeners on an offline to online transition."""
        try:
            online = bool(self._probe())
        except Exception as exc:  # pragma: no cover - probe owners should not raise
            _LOGGER.debug("Connectivity probe raised: %s", exc)
            online = False

        was_online = self._online
        self._online = online
        if online and not was_online:
            _LOGGER.info("Connectivity regained")
            self._notify()
        elif was_online and not online:
            _LOGGER.warning("Connectivity lost; changes will be queued")
        return online

    def mark_offline(self) -> None:
        """Record a failure seen elsewhere so the next good probe counts as a reconnect."""
        self._online = False

    def start(self, interval: float) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run,
            args=(interval,),
            name="connectivity-monitor",
            daemon=True,
        )
        self._thread.start()

    def stop(self) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=5)
            self._thread = None

    def _run(self, interval: float) -> None:
        while not self._stop_event.wait(interval):
            self.check()

    def _notify(self) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener()
            except Exception:  # pragma: no cover - keep the monitor alive
                _LOGGER.exception("Reconnect listener failed")
