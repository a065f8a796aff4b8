"""Application state for the encoder: settings, storage checks and the worker."""

from __future__ import annotations

import math
import os
import queue
import shutil
import threading
from enum import Enum
from pathlib import Path

from .encoding import (
    EncodingConfig,
    ProgressUpdate,
    find_max_frame,
    frame_file_name,
    run_encoding,
)
from .models import Resolution
from .utils import ProbeError, find_ffmpeg, get_duration, get_frame_rate, get_resolution

_IDLE_FRAME = "File: -- | Idle | ETA: --:--"
_NO_OUTPUT_DIR = "Please select output directory"
_INSTRUCTIONS_MARKER = "### instrukce ###"
_RESOLUTION_TAGS = ("2k", "4k", "6k", "2K", "4K", "6K")
_GIB = 1024.0 * 1024.0 * 1024.0
_U64_MAX = 2**64 - 1


class DialogState(Enum):
    """Which confirmation dialog, if any, is showing."""

    NONE = "none"
    CONFIRM_CANCEL = "cancel"
    CONFIRM_CANCEL_DELETE = "cancel_delete"

    @property
    def delete_frames(self) -> bool:
        """Whether confirming this dialog also deletes rendered frames."""
        return self is DialogState.CONFIRM_CANCEL_DELETE


class StorageError(Exception):
    """Raised when free space cannot be checked or is insufficient."""


def find_input_video(assets_dir: str | os.PathLike) -> Path:
    """First ``.mov`` file in the assets directory, or ``video.mov`` there."""
    assets = Path(assets_dir)
    try:
        candidates = sorted(assets.iterdir())
    except OSError:
        candidates = []
    for candidate in candidates:
        if candidate.is_file() and candidate.suffix == ".mov":
            return candidate
    return assets / "video.mov"


def load_instructions(path: str | os.PathLike) -> str:
    """Text following the instructions marker in the given file."""
    try:
        content = Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        return "Could not load instructions."
    sections = content.split(_INSTRUCTIONS_MARKER)
    section = sections[1] if len(sections) > 1 else " "
    return section.strip()


def retag_name(name: str, tag: str) -> str:
    """Replace the first kind of resolution tag found in ``name`` with ``tag``."""
    for existing in _RESOLUTION_TAGS:
        if existing in name:
            return name.replace(existing, tag)
    return name


def _frame_count(duration: float, frame_rate: float) -> int:
    product = duration * frame_rate
    if math.isnan(product) or product <= 0:
        return 0
    if math.isinf(product):
        return _U64_MAX
    return min(math.ceil(product), _U64_MAX)


class EncoderState:
    """Everything the encoder window shows and controls."""

    def __init__(self, assets_dir: str | os.PathLike = "assets") -> None:
        self.assets_dir = Path(assets_dir)
        self.ffmpeg_path, self.ffprobe_path = find_ffmpeg()
        self.input_video = find_input_video(self.assets_dir)
        self.original_base_name = self.input_video.stem or "video"
        self.base_name = self.original_base_name
        self.instructions = load_instructions(self.assets_dir / "instrukce.md")

        self.output_dir: Path | None = None
        self.status = "Ready"
        self.progress = 0.0
        self.encoding = False
        self.worker_thread: threading.Thread | None = None
        self.current_frame = _IDLE_FRAME
        self.resolution = Resolution.K6
        self.sufficient_storage = False
        self.storage_error: str | None = _NO_OUTPUT_DIR
        self.has_existing_frames = False
        self.dialog_state = DialogState.NONE

        self._progress_queue: queue.Queue[ProgressUpdate] = queue.Queue()
        self._cancel_event: threading.Event | None = None

    def set_output_dir(self, path: str | os.PathLike) -> None:
        """Choose the output directory and re-check storage."""
        self.output_dir = Path(path)
        self.update_storage_status()

    def set_resolution(self, resolution: Resolution) -> None:
        """Change the output resolution, retagging the base name if it changed."""
        if resolution == self.resolution:
            return
        self.resolution = resolution
        self._update_base_name()
        self.update_storage_status()

    def _update_base_name(self) -> None:
        self.base_name = retag_name(self.original_base_name, self.resolution.file_tag())

    def _frame_files(self) -> list[Path]:
        if self.output_dir is None:
            return []
        try:
            entries = list(self.output_dir.iterdir())
        except OSError:
            return []
        return [
            entry
            for entry in entries
            if entry.name.startswith(self.base_name) and entry.name.endswith(".png")
        ]

    def _check_for_existing_frames(self) -> bool:
        return bool(self._frame_files())

    def update_storage_status(self) -> None:
        """Refresh the storage flags and error message."""
        if self.output_dir is None:
            self.sufficient_storage = False
            self.storage_error = _NO_OUTPUT_DIR
            self.has_existing_frames = False
            return

        self.has_existing_frames = self._check_for_existing_frames()
        try:
            self.check_storage_availability()
        except StorageError as exc:
            self.sufficient_storage = False
            self.storage_error = str(exc)
        else:
            self.sufficient_storage = True
            self.storage_error = None

    def check_storage_availability(self) -> float:
        """Space needed for the whole sequence in GiB; raises StorageError if short."""
        if self.output_dir is None:
            raise StorageError("Output directory not set")

        try:
            size = self.resolution.target_size()
            if size is None:
                size = get_resolution(self.input_video, self.ffprobe_path)
            width, height = size
            bytes_per_frame = width * height * 6  # 16-bit RGB
            duration = get_duration(self.input_video, self.ffprobe_path)
            frame_rate = get_frame_rate(self.input_video, self.ffprobe_path)
        except ProbeError as exc:
            raise StorageError(str(exc)) from exc

        total_frames = _frame_count(duration, frame_rate)
        required = bytes_per_frame * total_frames
        required_with_buffer = int(required * 1.2)

        try:
            free_space = shutil.disk_usage(self.output_dir).free
        except OSError as exc:
            raise StorageError(str(exc)) from exc

        if free_space < required_with_buffer:
            raise StorageError(
                f"Insufficient storage: {required_with_buffer / _GIB:.2f}GB required, "
                f"{free_space / _GIB:.2f}GB available"
            )
        return required_with_buffer / _GIB

    def _fail_start(self, message: str) -> None:
        self.status = message
        self.current_frame = f"File: -- | {message} | ETA: --:--"

    def start_encoding(self) -> None:
        """Validate the setup and start rendering in a background thread."""
        self._update_base_name()

        if self.encoding:
            return

        if self.output_dir is None:
            self._fail_start("Error: Output directory not set")
            return

        overlay_image = self.assets_dir / f"overlay_{self.resolution.file_tag()}.png"
        checks = [
            (self.ffmpeg_path, f"Error: FFmpeg not found at {self.ffmpeg_path}"),
            (self.ffprobe_path, f"Error: FFprobe not found at {self.ffprobe_path}"),
            (self.input_video, f"Error: Input video not found at {self.input_video}"),
            (overlay_image, f"Error: Overlay image not found at {overlay_image}"),
        ]
        for path, error in checks:
            if not Path(path).exists():
                self._fail_start(error)
                return

        try:
            required_gb = self.check_storage_availability()
        except StorageError as exc:
            self._fail_start(f"Storage error: {exc}")
            return
        self.status = f"Starting... | Free space available: {required_gb:.2f}GB required"

        self.status = "Encoding..."
        self.encoding = True
        self.progress = 0.0

        max_frame = find_max_frame(self.output_dir, self.base_name)
        first_file = frame_file_name(self.base_name, max_frame)
        self.current_frame = f"File: {first_file} | Starting FFmpeg | ETA: --:--"

        progress_queue: queue.Queue[ProgressUpdate] = queue.Queue()
        cancel_event = threading.Event()
        self._progress_queue = progress_queue
        self._cancel_event = cancel_event

        config = EncodingConfig(
            input_video=self.input_video,
            overlay_image=overlay_image,
            output_dir=self.output_dir,
            ffmpeg_path=Path(self.ffmpeg_path),
            ffprobe_path=Path(self.ffprobe_path),
            resolution=self.resolution,
            base_name=self.base_name,
        )

        def worker() -> None:
            try:
                run_encoding(config, progress_queue, cancel_event)
            except Exception as exc:  # reported to the UI rather than lost
                progress_queue.put(ProgressUpdate(-1.0, 0, f"Error: {exc}"))

        self.worker_thread = threading.Thread(target=worker, daemon=True)
        self.worker_thread.start()

    def _signal_stop(self) -> None:
        if self._cancel_event is not None:
            self._cancel_event.set()
            self._cancel_event = None

    def pause_encoding(self) -> None:
        """Stop ffmpeg, keeping the frames rendered so far."""
        self._signal_stop()

    def cancel_encoding(self, delete_frames: bool) -> None:
        """Stop ffmpeg, optionally delete rendered frames, and reset to idle."""
        self._signal_stop()

        if delete_frames:
            for path in self._frame_files():
                try:
                    path.unlink()
                except OSError:
                    pass

        self.encoding = False
        self.status = "Ready"
        self.progress = 0.0
        self.current_frame = _IDLE_FRAME
        self.has_existing_frames = self._check_for_existing_frames()
        self.update_storage_status()
        self.dialog_state = DialogState.NONE

    def poll(self) -> None:
        """Apply pending progress reports and notice a finished worker."""
        while True:
            try:
                update = self._progress_queue.get_nowait()
            except queue.Empty:
                break
            file_name = frame_file_name(self.base_name, update.frame)
            full_message = f"File: {file_name} | {update.message}"
            if update.progress < 0.0:
                self.status = full_message
                self.encoding = False
            elif update.progress >= 100.0:
                self.progress = 100.0
                self.status = "Done!"
                self.encoding = False
            else:
                self.progress = update.progress
            self.current_frame = full_message

        if self.worker_thread is not None and not self.worker_thread.is_alive():
            self.worker_thread = None
            self._cancel_event = None