from __future__ import annotations

import json
from pathlib import Path

from presets import BUILTIN_PRESETS, PresetStore


def test_builtin_presets_are_available(tmp_path: Path) -> None:
    store = PresetStore(tmp_path / "presets")

    names = [p.name for p in store.list_all()]
    assert names == sorted(p.name for p in BUILTIN_PRESETS)
    assert store.load("email").source == "built-in"


def test_no_active_preset_resolves_to_none(tmp_path: Path) -> None:
    assert PresetStore(tmp_path).resolve_active_preset() is None


def test_unknown_active_preset_resolves_to_none(tmp_path: Path) -> None:
    assert PresetStore(tmp_path, active="does-not-exist").resolve_active_preset() is None


def test_user_preset_overrides_builtin(tmp_path: Path) -> None:
    (tmp_path / "email.json").write_text(
        json.dumps({"description": "mine", "prompt": "Be brief.", "polisher": "ollama", "model": "llama3.2"}),
        encoding="utf-8",
    )
    store = PresetStore(tmp_path, active="email")

    preset = store.resolve_active_preset()
    assert preset is not None
    assert preset.prompt == "Be brief."
    assert preset.polisher == "ollama"
    assert preset.model == "llama3.2"
    assert preset.source == "user"
    assert [p for p in store.list_all() if p.name == "email"][0].source == "user"


def test_invalid_user_preset_is_ignored(tmp_path: Path) -> None:
    (tmp_path / "broken.json").write_text("{nope", encoding="utf-8")
    (tmp_path / "empty.json").write_text(json.dumps({"description": "no prompt"}), encoding="utf-8")
    store = PresetStore(tmp_path)

    assert store.load("broken") is None
    assert store.load("empty") is None
    assert "broken" not in [p.name for p in store.list_all()]
