"""Running ffmpeg to render overlaid PNG frame sequences."""

from __future__ import annotations

import math
import os
import re
import subprocess
import sys
import tempfile
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from .models import Resolution
from .utils import get_duration, get_frame_rate, get_resolution

_U32_MAX = 2**32 - 1
_U64_MAX = 2**64 - 1
_UINT_RE = re.compile(r"\+?[0-9]+")
_CREATE_NO_WINDOW = 0x08000000
_POLL_INTERVAL = 0.2


class EncodingError(Exception):
    """Raised when ffmpeg cannot be started or exits with an error."""


@dataclass(frozen=True)
class EncodingConfig:
    """Everything needed to render one frame sequence."""

    input_video: Path
    overlay_image: Path
    output_dir: Path
    ffmpeg_path: Path
    ffprobe_path: Path
    resolution: Resolution
    base_name: str


@dataclass(frozen=True)
class ProgressUpdate:
    """A progress report from the encoder.

    ``progress`` is a percentage; -1 signals an error, -2 a pause.
    """

    progress: float
    frame: int
    message: str


class _Sink(Protocol):
    def put(self, item: ProgressUpdate) -> None: ...


def _parse_uint(text: str, limit: int) -> int | None:
    if not _UINT_RE.fullmatch(text):
        return None
    value = int(text)
    return value if value <= limit else None


def _strip_repeated_prefix(text: str, prefix: str) -> str:
    if not prefix:
        return text
    while text.startswith(prefix):
        text = text[len(prefix):]
    return text


def _strip_repeated_suffix(text: str, suffix: str) -> str:
    if not suffix:
        return text
    while text.endswith(suffix):
        text = text[: -len(suffix)]
    return text


def find_max_frame(output_dir: str | os.PathLike, base_name: str) -> int:
    """Highest frame number among ``<base_name>-NNNNNN.png`` files, or 0."""
    max_frame = 0
    try:
        entries = list(os.scandir(output_dir))
    except OSError:
        return 0
    for entry in entries:
        name = entry.name
        if not (name.startswith(base_name) and name.endswith(".png")):
            continue
        num_str = _strip_repeated_prefix(name, base_name).lstrip("-")
        num_str = _strip_repeated_suffix(num_str, ".png")
        number = _parse_uint(num_str, _U32_MAX)
        if number is not None:
            max_frame = max(max_frame, number)
    return max_frame


def frame_file_name(base_name: str, frame: int) -> str:
    """File name of one rendered frame."""
    return f"{base_name}-{frame:06d}.png"


def format_eta(seconds: float) -> str:
    """Format a remaining time as ``MM:SS``; negative or invalid values become zero."""
    if math.isnan(seconds) or seconds <= 0:
        whole = 0
    elif math.isinf(seconds):
        whole = _U64_MAX
    else:
        whole = min(int(seconds), _U64_MAX)
    return f"{whole // 60:02d}:{whole % 60:02d}"


def _target_size(resolution: Resolution, width: int, height: int) -> tuple[int, int]:
    size = resolution.target_size()
    return size if size is not None else (width, height)


def build_filter_complex(resolution: Resolution, width: int, height: int) -> str:
    """ffmpeg filter graph that scales the video and composites the overlay."""
    flags = resolution.filter_flags()
    if resolution != Resolution.K6:
        tw, th = _target_size(resolution, width, height)
        return (
            f"[0:v]scale={tw}:{th}:flags={flags}:force_original_aspect_ratio=decrease,"
            f"pad={tw}:{th}:(ow-iw)/2:(oh-ih)/2:color=black[vid]; "
            f"[1:v]scale={tw}:{th}:flags={flags}[ovr]; "
            f"[vid][ovr]overlay=0:0:format=rgb,format=rgb48le"
        )
    return (
        f"[1:v]scale={width}:{height}:flags={flags}[ovr]; "
        f"[0:v][ovr]overlay=0:0:format=rgb,format=rgb48le"
    )


def build_command(
    config: EncodingConfig,
    start_frame: int,
    start_time: float,
    filter_complex: str,
    progress_path: str | os.PathLike,
) -> list[str]:
    """Full ffmpeg argument list, starting with the executable."""
    output_path = Path(config.output_dir) / f"{config.base_name}-%06d.png"
    return [
        str(config.ffmpeg_path),
        "-ss", f"{start_time:.3f}",
        "-i", str(config.input_video),
        "-i", str(config.overlay_image),
        "-filter_complex", filter_complex,
        "-vsync", "0",
        "-start_number", str(start_frame),
        "-progress", str(progress_path),
        "-color_trc", "linear",
        "-colorspace", "bt709",
        "-color_primaries", "bt709",
        "-pix_fmt", "rgb48le",
        "-compression_level", "1",
        "-pred", "none",
        str(output_path),
        "-y",
    ]


def _read_progress(
    contents: str,
    *,
    start_frame: int,
    total_frames: int,
    initial_progress: float,
    last_frame: int,
    last_eta: str,
    duration: float,
    elapsed: float,
) -> tuple[float, int, str]:
    progress_value = initial_progress
    for line in contents.splitlines():
        if line.startswith("frame="):
            frame_index = _parse_uint(line.split("=")[1].strip(), _U32_MAX)
            if frame_index is not None:
                last_frame = start_frame + frame_index
                if total_frames > 0:
                    progress_value = min(last_frame / total_frames * 100.0, 100.0)
        elif line.startswith("out_time_ms"):
            _, sep, time_str = line.partition("=")
            if sep and _parse_uint(time_str, _U64_MAX) is not None and duration > 0.0:
                if progress_value > 0.1:
                    total_estimated = (elapsed * 100.0) / progress_value
                    last_eta = format_eta(total_estimated - elapsed)
                else:
                    last_eta = "--:--"
    return progress_value, last_frame, last_eta


def _total_frames(duration: float, frame_rate: float) -> int:
    product = duration * frame_rate
    if math.isnan(product) or product <= 0:
        return 0
    if math.isinf(product):
        return _U32_MAX
    return min(math.ceil(product), _U32_MAX)


def run_encoding(
    config: EncodingConfig,
    progress_queue: _Sink,
    cancel_event: threading.Event,
) -> None:
    """Render frames with ffmpeg, resuming after the last existing frame.

    Progress is reported through ``progress_queue``. Setting ``cancel_event``
    stops ffmpeg and reports a pause. Raises EncodingError if ffmpeg fails.
    """
    duration = get_duration(config.input_video, config.ffprobe_path)
    frame_rate = get_frame_rate(config.input_video, config.ffprobe_path)
    width, height = get_resolution(config.input_video, config.ffprobe_path)

    total_frames = _total_frames(duration, frame_rate)
    start_frame = find_max_frame(config.output_dir, config.base_name)
    start_time = start_frame / frame_rate if frame_rate else math.inf

    target_width, target_height = _target_size(config.resolution, width, height)
    filter_complex = build_filter_complex(config.resolution, width, height)

    fd, progress_name = tempfile.mkstemp(suffix=".progress")
    os.close(fd)
    progress_path = Path(progress_name)
    try:
        command = build_command(config, start_frame, start_time, filter_complex, progress_path)
        kwargs = {}
        if sys.platform == "win32":
            kwargs["creationflags"] = _CREATE_NO_WINDOW
        try:
            process = subprocess.Popen(
                command,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                **kwargs,
            )
        except OSError as exc:
            raise EncodingError(f"Could not start FFmpeg: {exc}") from exc

        started = time.monotonic()
        if total_frames > 0:
            initial_progress = min(start_frame / total_frames * 100.0, 100.0)
        else:
            initial_progress = 0.0

        progress_queue.put(
            ProgressUpdate(
                initial_progress,
                start_frame,
                f"Processing | Res: {target_width}x{target_height} "
                f"| Start: {start_frame:06d} | ETA: --:--",
            )
        )

        last_eta = "--:--"
        last_frame = start_frame

        while process.poll() is None:
            if cancel_event.is_set():
                process.kill()
                progress_queue.put(ProgressUpdate(-2.0, last_frame, f"Paused | ETA: {last_eta}"))
                return

            try:
                contents = progress_path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError):
                contents = None

            if contents is not None:
                progress_value, last_frame, last_eta = _read_progress(
                    contents,
                    start_frame=start_frame,
                    total_frames=total_frames,
                    initial_progress=initial_progress,
                    last_frame=last_frame,
                    last_eta=last_eta,
                    duration=duration,
                    elapsed=time.monotonic() - started,
                )
                progress_queue.put(
                    ProgressUpdate(
                        progress_value,
                        last_frame,
                        f"Processing | Res: {target_width}x{target_height} | ETA: {last_eta}",
                    )
                )

            time.sleep(_POLL_INTERVAL)

        returncode = process.wait()
        if returncode == 0:
            progress_queue.put(
                ProgressUpdate(
                    100.0,
                    last_frame,
                    f"Processing | Res: {target_width}x{target_height} | ETA: 00:00",
                )
            )
            return
        raise EncodingError(
            f"FFmpeg exited with error at frame {last_frame} "
            f"(ETA: {last_eta}): exit status: {returncode}"
        )
    finally:
        try:
            progress_path.unlink()
        except OSError:
            pass