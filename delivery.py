"""Delivery sinks: clipboard (optionally auto-pasted) and stdout."""

from __future__ import annotations

import sys
import time
from typing import TextIO

from models import DeliveryResult

try:
    import pyperclip
except Exception:  # pragma: no cover
    pyperclip = None  # type: ignore

try:
    from pynput.keyboard import Controller, Key
except Exception:  # pragma: no cover
    Controller = None  # type: ignore
    Key = None  # type: ignore


class ClipboardDelivery:
    def __init__(self, auto_paste: bool = False, paste_delay_s: float = 0.05) -> None:
        self.auto_paste = auto_paste
        self._paste_delay_s = paste_delay_s

    def deliver_text(self, text: str) -> DeliveryResult:
        if not text.strip():
            return DeliveryResult(success=False, reason="empty text")
        if pyperclip is None:
            return DeliveryResult(success=False, reason="clipboard dependency missing")
        try:
            pyperclip.copy(text)
        except Exception as exc:  # pyperclip raises PyperclipException without a backend
            return DeliveryResult(success=False, reason=f"clipboard unavailable: {exc}")
        if not self.auto_paste:
            return DeliveryResult(success=True)
        if Controller is None or Key is None:
            return DeliveryResult(success=False, reason="copied, but keyboard dependency missing for paste")
        try:
            time.sleep(self._paste_delay_s)
            modifier = Key.cmd if sys.platform == "darwin" else Key.ctrl
            keyboard = Controller()
            keyboard.press(modifier)
            keyboard.press("v")
            keyboard.release("v")
            keyboard.release(modifier)
        except Exception as exc:
            return DeliveryResult(success=False, reason=f"copied, but paste failed: {exc}")
        return DeliveryResult(success=True)


class StdoutDelivery:
    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream

    def deliver_text(self, text: str) -> DeliveryResult:
        stream = self._stream or sys.stdout
        try:
            stream.write(text + "\n")
            stream.flush()
        except OSError as exc:
            return DeliveryResult(success=False, reason=str(exc))
        return DeliveryResult(success=True)
