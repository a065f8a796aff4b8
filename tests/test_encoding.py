import queue
import subprocess
import threading
from pathlib import Path
from unittest import mock

import pytest

from deliveryencoder.encoding import (
    EncodingConfig,
    EncodingError,
    ProgressUpdate,
    build_command,
    build_filter_complex,
    find_max_frame,
    format_eta,
    frame_file_name,
    run_encoding,
)
from deliveryencoder.models import Resolution
from deliveryencoder.utils import ProbeError


def _config(tmp_path, resolution=Resolution.K6, base_name="shot"):
    out = tmp_path / "out"
    out.mkdir(exist_ok=True)
    return EncodingConfig(
        input_video=tmp_path / "video.mov",
        overlay_image=tmp_path / "overlay.png",
        output_dir=out,
        ffmpeg_path=tmp_path / "ffmpeg",
        ffprobe_path=tmp_path / "ffprobe",
        resolution=resolution,
        base_name=base_name,
    )


def _fake_run(fail=False):
    def run(args, **kwargs):
        if fail:
            return subprocess.CompletedProcess(args, 1, b"", b"boom")
        if "format=duration" in args:
            out = b"2.0\n"
        elif "stream=avg_frame_rate" in args:
            out = b"25/1\n"
        else:
            out = b"1920,1080\n"
        return subprocess.CompletedProcess(args, 0, out, b"")

    return run


class _FakeProcess:
    instances = []

    def __init__(self, args, returncode=0, progress="frame=10\nout_time_ms=400000\n"):
        self.args = args
        self.final_code = returncode
        self.progress = progress
        self.polls = 0
        self.killed = False
        _FakeProcess.instances.append(self)

    def poll(self):
        self.polls += 1
        if self.killed:
            return -9
        if self.polls == 1:
            path = self.args[self.args.index("-progress") + 1]
            Path(path).write_text(self.progress, encoding="utf-8")
            return None
        return self.final_code

    def kill(self):
        self.killed = True

    def wait(self):
        return -9 if self.killed else self.final_code


def _popen_factory(returncode=0):
    _FakeProcess.instances = []

    def popen(args, **kwargs):
        return _FakeProcess(args, returncode=returncode)

    return popen


def _drain(q):
    items = []
    while True:
        try:
            items.append(q.get_nowait())
        except queue.Empty:
            return items


def test_frame_file_name_is_zero_padded():
    assert frame_file_name("shot_4k", 7) == "shot_4k-000007.png"


def test_frame_file_name_round_trips_with_find_max_frame(tmp_path):
    for n in (3, 12, 120):
        (tmp_path / frame_file_name("clip", n)).write_bytes(b"")
    assert find_max_frame(tmp_path, "clip") == 120


def test_find_max_frame_ignores_other_files(tmp_path):
    (tmp_path / frame_file_name("clip", 5)).write_bytes(b"")
    (tmp_path / frame_file_name("other", 99)).write_bytes(b"")
    (tmp_path / "clip-000050.jpg").write_bytes(b"")
    (tmp_path / "clip-notanumber.png").write_bytes(b"")
    assert find_max_frame(tmp_path, "clip") == 5


def test_find_max_frame_empty_and_missing_dirs(tmp_path):
    assert find_max_frame(tmp_path, "clip") == 0
    assert find_max_frame(tmp_path / "missing", "clip") == 0


def test_format_eta_minutes_and_seconds():
    assert format_eta(125) == "02:05"


def test_format_eta_negative_is_zero():
    assert format_eta(-3.5) == format_eta(0)
    assert format_eta(0) == "00:00"


def test_filter_complex_scaled_resolution_uses_target_size():
    graph = build_filter_complex(Resolution.K2, 1920, 1080)
    assert graph.startswith("[0:v]scale=2048:2048:")
    assert "pad=2048:2048:(ow-iw)/2:(oh-ih)/2:color=black[vid]" in graph
    assert "1920" not in graph
    assert graph.endswith("[vid][ovr]overlay=0:0:format=rgb,format=rgb48le")


def test_filter_complex_original_resolution_scales_overlay_only():
    graph = build_filter_complex(Resolution.K6, 1920, 1080)
    assert graph == (
        "[1:v]scale=1920:1080:flags=lanczos+full_chroma_inp+full_chroma_int[ovr]; "
        "[0:v][ovr]overlay=0:0:format=rgb,format=rgb48le"
    )


def test_build_command_arguments(tmp_path):
    config = _config(tmp_path)
    progress = tmp_path / "progress.txt"
    cmd = build_command(config, 42, 1.68, "FILTER", progress)
    assert cmd[0] == str(config.ffmpeg_path)
    assert cmd[cmd.index("-ss") + 1] == "1.680"
    assert cmd[cmd.index("-filter_complex") + 1] == "FILTER"
    assert cmd[cmd.index("-start_number") + 1] == "42"
    assert cmd[cmd.index("-progress") + 1] == str(progress)
    assert cmd[cmd.index("-pix_fmt") + 1] == "rgb48le"
    assert cmd[-1] == "-y"
    assert cmd[-2] == str(config.output_dir / "shot-%06d.png")


def test_run_encoding_success_reports_progress(tmp_path):
    config = _config(tmp_path)
    q = queue.Queue()
    with mock.patch("subprocess.run", _fake_run()), mock.patch(
        "subprocess.Popen", _popen_factory()
    ):
        run_encoding(config, q, threading.Event())
    updates = _drain(q)
    assert all(isinstance(u, ProgressUpdate) for u in updates)
    first, middle, last = updates[0], updates[1], updates[-1]
    assert first.progress == 0.0
    assert first.frame == 0
    assert "Start: 000000" in first.message
    assert "1920x1080" in first.message
    assert middle.frame == 10
    assert middle.progress == pytest.approx(20.0)
    assert last.progress == 100.0
    assert last.frame == 10
    assert last.message.endswith("ETA: 00:00")


def test_run_encoding_resumes_from_existing_frames(tmp_path):
    config = _config(tmp_path, resolution=Resolution.K2)
    (config.output_dir / frame_file_name("shot", 20)).write_bytes(b"")
    q = queue.Queue()
    with mock.patch("subprocess.run", _fake_run()), mock.patch(
        "subprocess.Popen", _popen_factory()
    ):
        run_encoding(config, q, threading.Event())
    args = _FakeProcess.instances[0].args
    assert args[args.index("-ss") + 1] == "0.800"
    assert args[args.index("-start_number") + 1] == "20"
    updates = _drain(q)
    assert updates[0].progress == pytest.approx(40.0)
    assert "2048x2048" in updates[0].message
    assert updates[1].frame == 30


def test_run_encoding_cancel_kills_and_pauses(tmp_path):
    config = _config(tmp_path)
    q = queue.Queue()
    cancel = threading.Event()
    cancel.set()
    with mock.patch("subprocess.run", _fake_run()), mock.patch(
        "subprocess.Popen", _popen_factory()
    ):
        run_encoding(config, q, cancel)
    assert _FakeProcess.instances[0].killed is True
    last = _drain(q)[-1]
    assert last.progress == -2.0
    assert last.message.startswith("Paused | ETA:")


def test_run_encoding_ffmpeg_failure_raises(tmp_path):
    config = _config(tmp_path)
    q = queue.Queue()
    with mock.patch("subprocess.run", _fake_run()), mock.patch(
        "subprocess.Popen", _popen_factory(returncode=1)
    ):
        with pytest.raises(EncodingError, match="at frame 10"):
            run_encoding(config, q, threading.Event())


def test_run_encoding_probe_failure_raises(tmp_path):
    config = _config(tmp_path)
    with mock.patch("subprocess.run", _fake_run(fail=True)):
        with pytest.raises(ProbeError, match="FFprobe failed"):
            run_encoding(config, queue.Queue(), threading.Event())


def test_run_encoding_missing_ffmpeg_raises(tmp_path):
    config = _config(tmp_path)

    def popen(args, **kwargs):
        raise FileNotFoundError(args[0])

    with mock.patch("subprocess.run", _fake_run()), mock.patch("subprocess.Popen", popen):
        with pytest.raises(EncodingError, match="Could not start FFmpeg"):
            run_encoding(config, queue.Queue(), threading.Event())