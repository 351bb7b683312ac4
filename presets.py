"""Built-in and user-defined refinement presets."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional

from models import Preset

log = logging.getLogger(__name__)

USER = "user"

BUILTIN_PRESETS: tuple[Preset, ...] = (
    Preset(
        name="ai-prompt",
        description="Clean transcript for AI assistant prompts",
        prompt=(
            "Clean up this voice transcript for use as an AI assistant prompt. "
            "Fix grammar and punctuation. Remove filler words. "
            "Keep it close to plain text, but use minimal markdown when it improves clarity: "
            "lists for multiple items, bold for emphasis, headings only when absolutely necessary. "
            "Preserve the speaker's intent and technical terminology. "
            "Output only the cleaned text."
        ),
    ),
    Preset(
        name="email",
        description="Format transcript as an email",
        prompt=(
            "Clean up this voice transcript into an email. "
            "Fix grammar and punctuation. Remove filler words. "
            "Keep it concise. Match the sender's original tone (casual or formal). "
            "Do NOT add placeholder names or unnecessary formalities. "
            "Output only the cleaned text."
        ),
    ),
    Preset(
        name="notes",
        description="Light cleanup for personal notes",
        prompt=(
            "Lightly clean up this voice transcript for personal notes. "
            "Fix major grammar issues and remove excessive filler words. "
            "Preserve the speaker's natural voice and thought structure. "
            "Start directly with the cleaned content, never add an introduction or commentary. "
            "Output ONLY the cleaned transcript, nothing else."
        ),
    ),
)


class PresetStore:
    """Looks presets up by name; a user file wins over a built-in of the same name."""

    def __init__(self, presets_dir: Path, active: Optional[str] = None) -> None:
        self._dir = presets_dir
        self.active = active

    def resolve_active_preset(self) -> Optional[Preset]:
        if not self.active:
            return None
        preset = self.load(self.active)
        if preset is None:
            log.warning("active preset %r not found, skipping cleanup", self.active)
        return preset

    def load(self, name: str) -> Optional[Preset]:
        user = self._load_user(name)
        if user is not None:
            return user
        return next((p for p in BUILTIN_PRESETS if p.name == name), None)

    def list_all(self) -> list[Preset]:
        presets = {p.name: p for p in BUILTIN_PRESETS}
        if self._dir.is_dir():
            for path in sorted(self._dir.glob("*.json")):
                user = self._load_user(path.stem)
                if user is not None:
                    presets[user.name] = user
        return [presets[name] for name in sorted(presets)]

    def _load_user(self, name: str) -> Optional[Preset]:
        path = self._dir / f"{name}.json"
        if not path.is_file():
            return None
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as exc:
            log.warning("failed to read preset %s: %s", path, exc)
            return None
        if not isinstance(data, dict) or not data.get("prompt"):
            log.warning("preset %s has no prompt, ignoring it", path)
            return None
        return Preset(
            name=name,
            description=str(data.get("description", "")),
            prompt=str(data["prompt"]),
            polisher=data.get("polisher") or None,
            model=data.get("model") or None,
            source=USER,
        )
