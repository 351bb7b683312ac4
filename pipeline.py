"""Split -> dispatch -> refine, shared by the controller and file transcription."""

from __future__ import annotations

import logging
from typing import Callable, Optional

from backends import BackendRegistry
from chunker import CHUNK_OVERLAP_BYTES, CHUNK_THRESHOLD_BYTES, split_payload
from dispatcher import TranscriptionDispatcher
from errors import ConfigError, RefinementError
from interfaces import PresetProvider
from models import Preset
from refiner import Refiner

log = logging.getLogger(__name__)


class TranscriptionPipeline:
    def __init__(
        self,
        registry: BackendRegistry,
        api_key_for: Callable[[str], str],
        dispatcher: Optional[TranscriptionDispatcher] = None,
        refiner: Optional[Refiner] = None,
        preset_provider: Optional[PresetProvider] = None,
        threshold: int = CHUNK_THRESHOLD_BYTES,
        overlap: int = CHUNK_OVERLAP_BYTES,
    ) -> None:
        self.registry = registry
        self._api_key_for = api_key_for
        self.dispatcher = dispatcher or TranscriptionDispatcher()
        self.refiner = refiner
        self.preset_provider = preset_provider
        self.threshold = threshold
        self.overlap = overlap

    def check_config(self, backend_name: str) -> str:
        """Return the API key for ``backend_name`` or raise ConfigError."""
        descriptor = self.registry.descriptor(backend_name)
        api_key = self._api_key_for(backend_name)
        if descriptor.requires_api_key and not api_key:
            raise ConfigError(f"no API key configured for {descriptor.display_name}")
        return api_key

    def config_valid(self, backend_name: str) -> bool:
        try:
            self.check_config(backend_name)
        except ConfigError:
            return False
        return True

    def transcribe(
        self,
        payload: bytes,
        backend_name: str,
        language: Optional[str] = None,
        extension: str = "wav",
        mime_type: str = "audio/wav",
        header_size: int = 0,
    ) -> str:
        api_key = self.check_config(backend_name)
        backend = self.registry.lookup(backend_name)
        chunks = split_payload(payload, self.threshold, self.overlap, header_size=header_size)
        if len(chunks) > 1:
            log.info("payload of %.1f MB split into %d chunks", len(payload) / 1024 / 1024, len(chunks))
        return self.dispatcher.transcribe(
            backend, api_key, chunks, language=language, extension=extension, mime_type=mime_type
        )

    def active_preset(self) -> Optional[Preset]:
        if self.refiner is None or self.preset_provider is None:
            return None
        return self.preset_provider.resolve_active_preset()

    def refine(self, text: str, preset: Optional[Preset]) -> tuple[str, Optional[RefinementError]]:
        if self.refiner is None:
            return text, None
        return self.refiner.refine(text, preset)
