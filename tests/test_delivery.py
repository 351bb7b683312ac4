from __future__ import annotations

import io
from unittest.mock import MagicMock

import delivery
from delivery import ClipboardDelivery, StdoutDelivery


def test_clipboard_returns_failure_when_dependency_missing(monkeypatch) -> None:  # noqa: ANN001
    monkeypatch.setattr(delivery, "pyperclip", None)

    result = ClipboardDelivery().deliver_text("hello")

    assert result.success is False
    assert "missing" in result.reason


def test_clipboard_rejects_empty_text() -> None:
    result = ClipboardDelivery().deliver_text("   ")

    assert result.success is False


def test_clipboard_copies_text(monkeypatch) -> None:  # noqa: ANN001
    fake_clip = MagicMock()
    monkeypatch.setattr(delivery, "pyperclip", fake_clip)

    result = ClipboardDelivery().deliver_text("hello")

    assert result.success is True
    fake_clip.copy.assert_called_once_with("hello")


def test_clipboard_error_is_reported_not_raised(monkeypatch) -> None:  # noqa: ANN001
    fake_clip = MagicMock()
    fake_clip.copy.side_effect = RuntimeError("no copy/paste mechanism")
    monkeypatch.setattr(delivery, "pyperclip", fake_clip)

    result = ClipboardDelivery().deliver_text("hello")

    assert result.success is False
    assert "clipboard unavailable" in result.reason


def test_auto_paste_sends_paste_chord(monkeypatch) -> None:  # noqa: ANN001
    keyboard = MagicMock()
    fake_key = MagicMock()
    monkeypatch.setattr(delivery, "pyperclip", MagicMock())
    monkeypatch.setattr(delivery, "Controller", MagicMock(return_value=keyboard))
    monkeypatch.setattr(delivery, "Key", fake_key)
    monkeypatch.setattr(delivery.sys, "platform", "linux")

    result = ClipboardDelivery(auto_paste=True, paste_delay_s=0).deliver_text("hello")

    assert result.success is True
    keyboard.press.assert_any_call(fake_key.ctrl)
    keyboard.press.assert_any_call("v")
    keyboard.release.assert_any_call(fake_key.ctrl)


def test_auto_paste_without_keyboard_dependency(monkeypatch) -> None:  # noqa: ANN001
    monkeypatch.setattr(delivery, "pyperclip", MagicMock())
    monkeypatch.setattr(delivery, "Controller", None)

    result = ClipboardDelivery(auto_paste=True).deliver_text("hello")

    assert result.success is False
    assert result.reason.startswith("copied")


def test_stdout_delivery_writes_line() -> None:
    stream = io.StringIO()

    result = StdoutDelivery(stream=stream).deliver_text("hello")

    assert result.success is True
    assert stream.getvalue() == "hello\n"
