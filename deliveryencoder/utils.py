"""Locating ffmpeg/ffprobe and probing video properties."""

from __future__ import annotations

import math
import os
import re
import subprocess
import sys
from pathlib import Path

_UINT_RE = re.compile(r"\+?[0-9]+")
_CREATE_NO_WINDOW = 0x08000000


class ProbeError(Exception):
    """Raised when ffprobe fails or returns something unexpected."""


def _is_windows() -> bool:
    return sys.platform == "win32"


def open_folder(path: str | os.PathLike) -> None:
    """Open a directory in the platform's file manager, ignoring failures."""
    if _is_windows():
        command = "explorer"
    elif sys.platform == "darwin":
        command = "open"
    else:
        command = "xdg-open"
    try:
        subprocess.Popen([command, str(path)])
    except OSError:
        pass


def find_ffmpeg() -> tuple[Path, Path]:
    """Return paths to ffmpeg and ffprobe, searching local folders then PATH."""
    if _is_windows():
        ffmpeg_name, ffprobe_name = "ffmpeg.exe", "ffprobe.exe"
    else:
        ffmpeg_name, ffprobe_name = "ffmpeg", "ffprobe"

    locations = [
        Path(ffmpeg_name),
        Path("assets") / "ffmpeg" / ffmpeg_name,
        Path("ffmpeg") / ffmpeg_name,
    ]
    for ffmpeg_path in locations:
        ffprobe_path = ffmpeg_path.with_name(ffprobe_name)
        if ffmpeg_path.exists() and ffprobe_path.exists():
            return ffmpeg_path, ffprobe_path

    search_path = os.environ.get("PATH")
    if search_path is not None:
        for directory in search_path.split(os.pathsep):
            ffmpeg_path = Path(directory) / ffmpeg_name
            ffprobe_path = Path(directory) / ffprobe_name
            if ffmpeg_path.exists() and ffprobe_path.exists():
                return ffmpeg_path, ffprobe_path

    return Path(ffmpeg_name), Path(ffprobe_name)


def _parse_uint(text: str) -> int:
    if not _UINT_RE.fullmatch(text):
        raise ValueError(f"invalid digit found in string: {text!r}")
    return int(text)


def _parse_float(text: str) -> float:
    if not text or text != text.strip() or "_" in text:
        raise ValueError(f"invalid float literal: {text!r}")
    return float(text)


def parse_resolution(text: str) -> tuple[int, int]:
    """Parse ffprobe's ``width,height`` output."""
    res_str = text.strip()
    parts = res_str.split(",")
    if len(parts) != 2:
        raise ProbeError(f"Unexpected resolution format: {res_str}")
    try:
        return _parse_uint(parts[0]), _parse_uint(parts[1])
    except ValueError as exc:
        raise ProbeError(f"Resolution parse error: {exc}") from exc


def parse_duration(text: str) -> float:
    """Parse ffprobe's duration output in seconds."""
    try:
        return _parse_float(text.strip())
    except ValueError as exc:
        raise ProbeError(f"Duration parse error: {exc}") from exc


def parse_frame_rate(text: str) -> float:
    """Parse a frame rate given as a fraction (``30000/1001``) or a number."""
    rate_str = text.strip()
    try:
        if "/" in rate_str:
            num, den = rate_str.split("/", 1)
            numerator = _parse_float(num)
            denominator = _parse_float(den)
            if denominator == 0:
                if numerator == 0 or math.isnan(numerator):
                    return math.nan
                return math.copysign(math.inf, numerator) * math.copysign(1.0, denominator)
            return numerator / denominator
        return _parse_float(rate_str)
    except ValueError as exc:
        raise ProbeError(f"Frame rate parse error: {exc}") from exc


def _run_ffprobe(ffprobe_path: str | os.PathLike, args: list[str]) -> str:
    kwargs = {}
    if _is_windows():
        kwargs["creationflags"] = _CREATE_NO_WINDOW
    try:
        result = subprocess.run(
            [str(ffprobe_path), *args],
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            check=False,
            **kwargs,
        )
    except OSError as exc:
        raise ProbeError(f"Could not run ffprobe: {exc}") from exc
    if result.returncode != 0:
        stderr = result.stderr.decode("utf-8", errors="replace")
        raise ProbeError(f"FFprobe failed: {stderr}")
    try:
        return result.stdout.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise ProbeError(f"Invalid ffprobe output: {exc}") from exc


def get_resolution(input_path: str | os.PathLike, ffprobe_path: str | os.PathLike) -> tuple[int, int]:
    """Width and height of the first video stream."""
    output = _run_ffprobe(
        ffprobe_path,
        [
            "-v", "error",
            "-select_streams", "v:0",
            "-show_entries", "stream=width,height",
            "-of", "csv=p=0",
            str(input_path),
        ],
    )
    return parse_resolution(output)


def get_duration(input_path: str | os.PathLike, ffprobe_path: str | os.PathLike) -> float:
    """Container duration in seconds."""
    output = _run_ffprobe(
        ffprobe_path,
        [
            "-v", "error",
            "-show_entries", "format=duration",
            "-of", "default=noprint_wrappers=1:nokey=1",
            str(input_path),
        ],
    )
    return parse_duration(output)


def get_frame_rate(input_path: str | os.PathLike, ffprobe_path: str | os.PathLike) -> float:
    """Average frame rate of the first video stream."""
    output = _run_ffprobe(
        ffprobe_path,
        [
            "-v", "error",
            "-select_streams", "v:0",
            "-show_entries", "stream=avg_frame_rate",
            "-of", "default=noprint_wrappers=1:nokey=1",
            str(input_path),
        ],
    )
    return parse_frame_rate(output)