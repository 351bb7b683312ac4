"""Terminal entrypoint."""

from __future__ import annotations

import argparse
import logging
import mimetypes
import os
import sys
import threading
import wave
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from config import JsonConfigStore
from delivery import ClipboardDelivery, StdoutDelivery
from dispatcher import TranscriptionDispatcher
from encoder import WavEncoder, pcm_to_int16
from errors import Talk2TextError, user_message
from hotkey import GlobalHotkeyAdapter
from interfaces import ConfigStore
from models import RecordingState, TranscriptionOutcome
from pipeline import TranscriptionPipeline
from polishers import default_polisher_registry
from presets import PresetStore
from recognizer import default_registry
from recorder import SoundDeviceRecorder, input_devices
from recording_controller import RecordingController
from refiner import Refiner

log = logging.getLogger("talk2text")


def setup_logging(verbose: bool) -> None:
    level_name = os.getenv("TALK2TEXT_LOG_LEVEL") or ("DEBUG" if verbose else "WARNING")
    logging.basicConfig(
        level=getattr(logging, level_name.upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


class App:
    def __init__(self, args: argparse.Namespace, config_store: Optional[ConfigStore] = None) -> None:
        self.args = args
        self.config_store: ConfigStore = config_store or JsonConfigStore()
        self.registry = default_registry()
        self.polishers = default_polisher_registry()

        preset_name = None if getattr(args, "no_preset", False) else (
            getattr(args, "preset", None) or self.config_store.get_active_preset()
        )
        self.presets = PresetStore(self.config_store.config_dir / "presets", active=preset_name)
        self.pipeline = TranscriptionPipeline(
            registry=self.registry,
            api_key_for=self.config_store.get_api_key,
            dispatcher=TranscriptionDispatcher(on_progress=self._on_progress),
            refiner=Refiner(self.polishers, self.config_store.get_api_key, self.config_store.get_polisher()),
            preset_provider=self.presets,
        )
        self.backend_name = getattr(args, "backend", None) or self.config_store.get_backend()
        self.language = getattr(args, "language", None) or self.config_store.get_language()

    def build_controller(self) -> RecordingController:
        if getattr(self.args, "stdout", False):
            delivery = StdoutDelivery()
        else:
            delivery = ClipboardDelivery(auto_paste=getattr(self.args, "paste", False))
        return RecordingController(
            audio_source=SoundDeviceRecorder(device=getattr(self.args, "device", None)),
            encoder=WavEncoder(),
            pipeline=self.pipeline,
            delivery=delivery,
            backend_name=self.backend_name,
            language=self.language,
            on_state_change=self._on_state_change,
            on_warning=self._on_warning,
        )

    # ------------------------------------------------------------------
    # Callbacks
    # ------------------------------------------------------------------

    def _on_state_change(self, from_state: RecordingState, to_state: RecordingState) -> None:
        labels = {
            RecordingState.RECORDING: "Recording...",
            RecordingState.TRANSCRIBING: "Transcribing...",
            RecordingState.POLISHING: "Polishing...",
        }
        if to_state in labels:
            print(labels[to_state], file=sys.stderr)

    def _on_progress(self, done: int, total: int) -> None:
        if total > 1:
            print(f"  {done}/{total} chunks", file=sys.stderr)

    def _on_warning(self, code: str, message: str) -> None:
        print(f"Warning: {user_message(code)} ({message})", file=sys.stderr)


def _report(outcome: Optional[TranscriptionOutcome], to_stdout: bool) -> int:
    if outcome is None:
        return 0
    if not outcome.ok:
        error = outcome.error
        code = getattr(error, "code", "")
        print(f"Error: {user_message(code)} ({error})", file=sys.stderr)
        return 1
    if not outcome.text:
        print("No speech detected.", file=sys.stderr)
    elif not to_stdout and outcome.delivered:
        print("Copied to clipboard.", file=sys.stderr)
    return 0


def cmd_record(args: argparse.Namespace) -> int:
    app = App(args)
    controller = app.build_controller()
    status = controller.status()
    if not status.config_valid:
        print(
            f"Error: no API key for '{app.backend_name}'. "
            f"Run 'talk2text config --api-key {app.backend_name} KEY' or set the environment variable.",
            file=sys.stderr,
        )
        return 1

    if args.hotkey is None:
        try:
            input("Press Enter to start recording...")
            if not controller.start_recording():
                return 1
            input("Press Enter to stop.")
        except (KeyboardInterrupt, EOFError):
            controller.cancel_recording("interrupted")
            return 1
        return _report(controller.stop_recording(), args.stdout)

    hotkey = GlobalHotkeyAdapter(hotkey_name=args.hotkey or app.config_store.get_hotkey())
    stop_event = threading.Event()

    def on_toggle() -> None:
        # stop_recording blocks until the transcript is ready
        def run() -> None:
            _report(controller.toggle(), args.stdout)

        threading.Thread(target=run, daemon=True).start()

    try:
        hotkey.start(on_toggle)
    except RuntimeError as exc:
        print(f"Error: hotkey disabled: {exc}", file=sys.stderr)
        return 1
    print("Press the hotkey to start/stop recording, Ctrl+C to quit.", file=sys.stderr)
    try:
        stop_event.wait()
    except KeyboardInterrupt:
        pass
    finally:
        hotkey.stop()
        controller.cancel_recording("quit")
    return 0


def _load_audio_file(path: Path, encoder: WavEncoder) -> tuple[bytes, str, str, int]:
    """Return ``(payload, extension, mime_type, header_size)`` for ``path``.

    WAV files are always re-encoded as 16-bit PCM with a canonical header so
    chunks of long files decode on their own; other formats go up as they are.
    """
    extension = path.suffix.lstrip(".").lower() or "mp3"
    if extension == "wav":
        with wave.open(str(path), "rb") as wf:
            samples = pcm_to_int16(wf.readframes(wf.getnframes()), wf.getsampwidth())
            payload = encoder.encode(samples, wf.getframerate(), wf.getnchannels())
        return payload, encoder.extension, encoder.mime_type, encoder.header_size
    mime_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
    return path.read_bytes(), extension, mime_type, 0


def cmd_file(args: argparse.Namespace) -> int:
    app = App(args)
    status = 0
    for name in args.paths:
        path = Path(name)
        log.debug("transcribing %s with %s", path, app.backend_name)
        try:
            payload, extension, mime_type, header_size = _load_audio_file(path, WavEncoder())
            text = app.pipeline.transcribe(
                payload,
                app.backend_name,
                language=app.language,
                extension=extension,
                mime_type=mime_type,
                header_size=header_size,
            )
        except (OSError, wave.Error) as exc:
            print(f"Error: cannot read {path}: {exc}", file=sys.stderr)
            status = 1
            continue
        except Talk2TextError as exc:
            print(f"Error: {path}: {user_message(exc.code)} ({exc.message})", file=sys.stderr)
            status = 1
            continue
        text, warning = app.pipeline.refine(text, app.pipeline.active_preset())
        if warning is not None:
            app._on_warning(warning.code, warning.message)
        print(text)
    return status


def cmd_presets(args: argparse.Namespace) -> int:
    app = App(args)
    active = app.presets.active
    for preset in app.presets.list_all():
        marker = "*" if preset.name == active else " "
        print(f"{marker} {preset.name:<12} [{preset.source}] {preset.description}")
    return 0


def cmd_backends(args: argparse.Namespace) -> int:
    app = App(args)
    print("Transcription:")
    for descriptor in app.registry:
        key = "key set" if app.config_store.get_api_key(descriptor.name) else "no key"
        print(f"  {descriptor.name:<10} {descriptor.display_name:<22} {key}")
    print("Refinement:")
    for descriptor in app.polishers:
        if not descriptor.requires_api_key:
            key = "local"
        else:
            key = "key set" if app.config_store.get_api_key(descriptor.name) else "no key"
        print(f"  {descriptor.name:<10} {descriptor.display_name:<22} {key}")
    return 0


def cmd_devices(args: argparse.Namespace) -> int:
    devices = input_devices()
    if not devices:
        print("No input devices found.", file=sys.stderr)
        return 1
    for index, name in devices:
        print(f"{index:>3}  {name}")
    return 0


def cmd_config(args: argparse.Namespace) -> int:
    store = JsonConfigStore()
    if args.backend:
        store.set_backend(args.backend)
    if args.api_key:
        name, key = args.api_key
        store.set_api_key(name, key)
    if args.preset is not None:
        store.set_active_preset(args.preset or None)
    if args.polisher:
        store.set_polisher(args.polisher)
    if args.language is not None:
        store.set_language(args.language or None)
    if args.hotkey:
        store.set_hotkey(args.hotkey)
    print(f"# {store.path}")
    for name, value in store.as_dict().items():
        print(f"{name} = {value}")
    return 0


def _device_arg(value: str) -> int | str:
    return int(value) if value.isdigit() else value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="talk2text", description="Voice to text via hosted speech APIs.")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    def add_transcription_args(p: argparse.ArgumentParser) -> None:
        p.add_argument("--backend", help="transcription backend name")
        p.add_argument("--language", help="language hint, e.g. en, de")
        group = p.add_mutually_exclusive_group()
        group.add_argument("--preset", help="cleanup preset to apply")
        group.add_argument("--no-preset", action="store_true", help="skip cleanup")

    record = sub.add_parser("record", help="record from the microphone")
    add_transcription_args(record)
    record.add_argument("--hotkey", nargs="?", const="", default=None, help="toggle with a global hotkey")
    record.add_argument("--stdout", action="store_true", help="print instead of copying to the clipboard")
    record.add_argument("--paste", action="store_true", help="paste into the focused window after copying")
    record.add_argument("--device", type=_device_arg, help="input device index or name, see 'devices'")
    record.set_defaults(func=cmd_record)

    file_cmd = sub.add_parser("file", help="transcribe audio files")
    add_transcription_args(file_cmd)
    file_cmd.add_argument("paths", nargs="+")
    file_cmd.set_defaults(func=cmd_file)

    sub.add_parser("presets", help="list cleanup presets").set_defaults(func=cmd_presets)
    sub.add_parser("backends", help="list available backends").set_defaults(func=cmd_backends)
    sub.add_parser("devices", help="list microphones").set_defaults(func=cmd_devices)

    config = sub.add_parser("config", help="show or change settings")
    config.add_argument("--backend")
    config.add_argument("--api-key", nargs=2, metavar=("NAME", "KEY"))
    config.add_argument("--preset", help="active preset, empty string to clear")
    config.add_argument("--polisher", help="default cleanup backend")
    config.add_argument("--language", help="default language, empty string to clear")
    config.add_argument("--hotkey", help="pynput key name, e.g. Key.f9")
    config.set_defaults(func=cmd_config)
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    load_dotenv()
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose)
    return args.func(args)


if __name__ == "__main__":
    raise SystemExit(main())
