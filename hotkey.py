"""Global toggle hotkey based on pynput.

A hotkey is one key name as pynput prints it (``Key.f9``, ``'r'``) or several
joined with ``+`` (``Key.ctrl_l+Key.space``). The toggle fires when the last
key of the combination goes down and re-arms once any of them is released.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

try:
    from pynput import keyboard
except Exception:  # pragma: no cover
    keyboard = None  # type: ignore

log = logging.getLogger(__name__)


def parse_hotkey(spec: str) -> frozenset[str]:
    keys = frozenset(part.strip() for part in spec.split("+") if part.strip())
    if not keys:
        raise ValueError(f"empty hotkey: {spec!r}")
    return keys


class GlobalHotkeyAdapter:
    def __init__(self, hotkey_name: str = "Key.f9") -> None:
        self.keys = parse_hotkey(hotkey_name)
        self._held: set[str] = set()
        self._armed = True
        self._listener: Optional[object] = None
        self._lock = threading.Lock()

    def start(self, on_toggle: Callable[[], None]) -> None:
        if keyboard is None:
            raise RuntimeError("pynput is not installed")

        def _on_press(key: object) -> None:
            name = str(key)
            if name not in self.keys:
                return
            with self._lock:
                self._held.add(name)
                fire = self._armed and self._held == self.keys
                if fire:
                    self._armed = False
            if fire:
                log.debug("hotkey %s pressed", "+".join(sorted(self.keys)))
                on_toggle()

        def _on_release(key: object) -> None:
            name = str(key)
            with self._lock:
                self._held.discard(name)
                if name in self.keys:
                    self._armed = True

        self._listener = keyboard.Listener(on_press=_on_press, on_release=_on_release)
        self._listener.start()

    def stop(self) -> None:
        listener, self._listener = self._listener, None
        if listener is not None:
            listener.stop()
        with self._lock:
            self._held.clear()
            self._armed = True
