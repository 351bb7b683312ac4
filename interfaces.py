"""Protocol interfaces used by RecordingController and its collaborators."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Optional, Protocol

from models import DeliveryResult, Preset

SampleCallback = Callable[[Any], None]


class AudioSource(Protocol):
    def start(self, on_samples: SampleCallback) -> None: ...

    def stop(self) -> None: ...


class Encoder(Protocol):
    extension: str
    mime_type: str
    header_size: int

    def encode(self, samples: Any, sample_rate: int, channels: int) -> bytes: ...


class DeliverySink(Protocol):
    def deliver_text(self, text: str) -> DeliveryResult: ...


class PresetProvider(Protocol):
    def resolve_active_preset(self) -> Optional[Preset]: ...


class ConfigStore(Protocol):
    @property
    def config_dir(self) -> Path: ...

    def get_backend(self) -> str: ...

    def set_backend(self, name: str) -> None: ...

    def get_api_key(self, backend: str) -> str: ...

    def set_api_key(self, backend: str, key: str) -> None: ...

    def get_language(self) -> Optional[str]: ...

    def get_active_preset(self) -> Optional[str]: ...

    def get_polisher(self) -> str: ...

    def get_hotkey(self) -> str: ...
