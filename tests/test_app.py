import wave

import numpy as np
import pytest
from PIL import Image

from spectrascope.app import App, main
from spectrascope.console import Console
from spectrascope.options import LibraryOption, OptionChangeEvent


def write_tone(path, seconds=1.0, rate=8000, amplitude=0.5, freq=440.0, silent=False):
    count = int(seconds * rate)
    if silent:
        data = np.zeros(count, dtype=np.int16)
    else:
        t = np.arange(count) / rate
        data = (amplitude * 32767 * np.sin(2 * np.pi * freq * t)).astype(np.int16)
    with wave.open(str(path), "wb") as writer:
        writer.setnchannels(1)
        writer.setsampwidth(2)
        writer.setframerate(rate)
        writer.writeframes(data.tobytes())
    return path


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


@pytest.fixture
def loaded_app(tmp_path):
    app = App(viewport_size=(640, 200), console=Console(), tests_dir=tmp_path / "tests")
    app.options.file_path = write_tone(tmp_path / "tone.wav")
    assert app.reload_audio()
    return app


def test_constructor_logs_library_and_defaults(tmp_path):
    app = App(viewport_size=(320, 200), console=Console(), tests_dir=tmp_path)
    assert app.console.messages[-1].content.startswith("Loaded asm library")
    assert app.options.library is LibraryOption.ASSEMBLY
    assert app.options.paused is True
    assert app.options.threads >= 1
    assert app.viewport_size == (320, 200)


def test_reload_without_path_does_nothing(tmp_path):
    app = App(viewport_size=(320, 200), console=Console(), tests_dir=tmp_path)
    before = len(app.console)
    assert app.reload_audio() is False
    assert len(app.console) == before


def test_reload_loads_and_analyses(loaded_app):
    assert loaded_app.sound.sample_rate == 8000
    assert loaded_app.sound.duration == pytest.approx(1.0)
    assert loaded_app.spectrogram.chunk_count > 0
    assert loaded_app.console.messages[-1].content.startswith('Loaded "tone.wav" in ')
    assert "threads:" in loaded_app.console.messages[-1].content
    assert loaded_app.options.paused is True
    assert loaded_app.offset == 0.0


def test_reload_invalid_file_logs_error(tmp_path):
    app = App(viewport_size=(320, 200), console=Console(), tests_dir=tmp_path)
    bad = tmp_path / "bad.wav"
    bad.write_bytes(b"not audio at all")
    app.options.file_path = bad
    assert app.reload_audio() is False
    assert app.console.messages[-1].content.startswith("Invalid file")
    assert app.sound.duration == 0.0


def test_toggle_pause_plays_and_advances(loaded_app):
    loaded_app.toggle_pause()
    assert loaded_app.is_playing
    assert loaded_app.options.paused is False
    loaded_app.update(0.25)
    assert loaded_app.offset == pytest.approx(0.25)
    loaded_app.toggle_pause()
    assert not loaded_app.is_playing
    assert loaded_app.options.paused is True


def test_playing_to_the_end_pauses(loaded_app):
    loaded_app.toggle_pause()
    loaded_app.update(0.1)
    loaded_app.update(5.0)
    assert not loaded_app.is_playing
    assert loaded_app.options.paused is True


def test_seek_is_clamped_to_sound(loaded_app):
    forward = loaded_app.seek(-100)
    assert forward == pytest.approx(loaded_app.sound.duration - 0.01)
    assert loaded_app.offset == forward
    back = loaded_app.seek(100000)
    assert back == 0.0


def test_seek_keeps_playing_state(loaded_app):
    loaded_app.toggle_pause()
    loaded_app.seek(-1)
    assert loaded_app.is_playing
    assert loaded_app.offset > 0.0


def test_seek_without_sound_keeps_offset(tmp_path):
    app = App(viewport_size=(320, 200), console=Console(), tests_dir=tmp_path)
    assert app.seek(-50) == 0.0


def test_edit_high_frequency_reaches_spectrogram(tmp_path):
    clock = FakeClock()
    app = App(viewport_size=(256, 128), console=Console(), tests_dir=tmp_path, clock=clock)
    app.options_view.edit(high_frequency=5000)
    clock.now = 1.0
    app.update(0.0)
    app.update(0.0)
    assert app.options.high_frequency == 5000
    assert app.spectrogram.max_frequency == 5000


def test_edit_library_switches_kernels(tmp_path):
    clock = FakeClock()
    app = App(viewport_size=(256, 128), console=Console(), tests_dir=tmp_path, clock=clock)
    app.options_view.edit(library=LibraryOption.CPP)
    clock.now = 1.0
    app.update(0.0)
    app.update(0.0)
    assert app.kernels.option is LibraryOption.CPP
    assert app.console.messages[-1].content == "Loaded C++ library (67)."


def test_begin_test_without_sound_fails(tmp_path):
    app = App(viewport_size=(256, 128), console=Console(), tests_dir=tmp_path)
    app.options_view.request(OptionChangeEvent.BEGIN_TEST)
    app.update(0.0)
    app.update(0.0)
    assert app.console.messages[-1].content == "Failed to begin the test."


def test_open_tests_directory_uses_opener(tmp_path):
    opened = []
    directory = tmp_path / "tests"
    directory.mkdir()
    app = App(viewport_size=(256, 128), console=Console(), tests_dir=directory, opener=opened.append)
    assert app.open_tests_directory() is True
    assert opened == [directory.resolve()]


def test_open_missing_tests_directory_logs(tmp_path):
    opened = []
    app = App(viewport_size=(256, 128), console=Console(), tests_dir=tmp_path / "absent", opener=opened.append)
    assert app.open_tests_directory() is False
    assert opened == []
    assert "does not exists" in app.console.messages[-1].content


def test_render_draws_playhead(loaded_app):
    loaded_app.update(0.0)
    image = loaded_app.render()
    assert image.size == (640, 200)
    assert image.getpixel((320, 0)) == (255, 0, 0, 255)


def test_render_without_sound_is_black(tmp_path):
    app = App(viewport_size=(64, 32), console=Console(), tests_dir=tmp_path)
    image = app.render()
    assert image.size == (64, 32)
    assert image.getpixel((32, 0)) == (0, 0, 0, 255)


def test_verify_passes_on_silence(tmp_path):
    app = App(viewport_size=(256, 128), console=Console(), tests_dir=tmp_path, verify=True)
    app.options.file_path = write_tone(tmp_path / "quiet.wav", silent=True)
    assert app.reload_audio()
    assert app.console.messages[-1].content == "Passed test."


def test_main_writes_image(tmp_path):
    source = write_tone(tmp_path / "tone.wav")
    output = tmp_path / "out.png"
    code = main([str(source), "-o", str(output), "--width", "320", "--height", "200", "--threads", "2"])
    assert code == 0
    with Image.open(output) as image:
        assert image.size == (320, 200)


def test_main_missing_file_fails(tmp_path):
    output = tmp_path / "out.png"
    assert main([str(tmp_path / "missing.wav"), "-o", str(output)]) == 1
    assert not output.exists()


def test_main_rejects_bad_threads(tmp_path):
    with pytest.raises(SystemExit):
        main([str(tmp_path / "x.wav"), "--threads", "0"])