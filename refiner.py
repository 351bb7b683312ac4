"""Optional LLM cleanup of a finished transcript.

Refinement never fails a recording: on any error the caller keeps the raw
transcript and gets the error back as a warning.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from backends import BackendRegistry
from errors import ConfigError, RefinementError, Talk2TextError
from models import Preset

log = logging.getLogger(__name__)

KeyLookup = Callable[[str], str]


class Refiner:
    def __init__(
        self,
        registry: BackendRegistry,
        api_key_for: KeyLookup,
        default_polisher: str = "openai",
    ) -> None:
        self._registry = registry
        self._api_key_for = api_key_for
        self._default_polisher = default_polisher

    def refine(self, text: str, preset: Optional[Preset]) -> tuple[str, Optional[RefinementError]]:
        """Return ``(text, warning)``.

        With no preset the input comes back untouched and nothing is called.
        On failure the input comes back together with a RefinementError.
        """
        if preset is None or not text.strip():
            return text, None

        polisher_name = preset.polisher or self._default_polisher
        try:
            descriptor = self._registry.descriptor(polisher_name)
            api_key = self._api_key_for(polisher_name)
            if descriptor.requires_api_key and not api_key:
                raise ConfigError(f"no API key for polisher {polisher_name!r}")
            refined = descriptor.backend.refine(api_key, preset.prompt, text, preset.model)
        except Talk2TextError as exc:
            log.warning("refinement with preset %r failed: %s", preset.name, exc)
            return text, RefinementError(f"{preset.name}: {exc.message}")
        except Exception as exc:  # noqa: BLE001
            log.warning("refinement with preset %r failed unexpectedly: %s", preset.name, exc)
            return text, RefinementError(f"{preset.name}: {exc}")

        if not refined.strip():
            return text, RefinementError(f"{preset.name}: empty response")
        log.info("refined transcript with preset %r via %s", preset.name, polisher_name)
        return refined, None
