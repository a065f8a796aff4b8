from types import SimpleNamespace

import pytest

from deliveryencoder import gui


def _state(encoding=False, progress=0.0, sufficient_storage=True):
    return SimpleNamespace(
        encoding=encoding, progress=progress, sufficient_storage=sufficient_storage
    )


def test_status_color_encoding_takes_precedence():
    state = _state(encoding=True, progress=100.0, sufficient_storage=False)
    assert gui.status_color(state) == gui.LIGHT_GREEN


def test_status_color_done():
    state = _state(progress=100.0, sufficient_storage=False)
    assert gui.status_color(state) == gui.DARK_GREEN


def test_status_color_insufficient_storage():
    state = _state(progress=50.0, sufficient_storage=False)
    assert gui.status_color(state) == gui.LIGHT_RED


def test_status_color_idle():
    assert gui.status_color(_state()) == gui.LIGHT_BLUE


def test_progress_color_encoding():
    state = _state(encoding=True, progress=100.0)
    assert gui.progress_color(state) == gui.ENCODING_GREEN


def test_progress_color_done():
    assert gui.progress_color(_state(progress=100.0)) == gui.DARK_GREEN


def test_progress_color_ignores_storage():
    state = _state(progress=20.0, sufficient_storage=False)
    assert gui.progress_color(state) == gui.LIGHT_BLUE


@pytest.mark.parametrize("progress", [0.0, 12.34, 99.99, 100.0])
def test_progress_text_has_one_decimal_and_percent(progress):
    text = gui._progress_text(progress)
    assert text.endswith("%")
    assert float(text[:-1]) == pytest.approx(progress, abs=0.05)
    assert len(text[:-1].split(".")[1]) == 1


def test_progress_text_value():
    assert gui._progress_text(50.0) == "50.0%"


def test_rgba_to_ppm_drops_alpha():
    rgba = bytes([1, 2, 3, 255, 4, 5, 6, 0])
    ppm = gui._rgba_to_ppm(rgba, 2, 1)
    header, pixels = ppm.split(b"\n", 1)
    assert header == b"P6 2 1 255"
    assert pixels == bytes([1, 2, 3, 4, 5, 6])


def test_rgba_to_ppm_length_matches_size():
    width, height = 3, 4
    rgba = bytes(range(width * height * 4))
    pixels = gui._rgba_to_ppm(rgba, width, height).split(b"\n", 1)[1]
    assert len(pixels) == width * height * 3


def test_rgba_to_ppm_wrong_size_raises():
    with pytest.raises(ValueError):
        gui._rgba_to_ppm(bytes(7), 1, 2)


def test_main_help_exits_cleanly(capsys):
    with pytest.raises(SystemExit) as exc:
        gui.main(["--help"])
    assert exc.value.code == 0
    assert "--assets" in capsys.readouterr().out


def test_main_rejects_unknown_option():
    with pytest.raises(SystemExit) as exc:
        gui.main(["--no-such-option"])
    assert exc.value.code == 2