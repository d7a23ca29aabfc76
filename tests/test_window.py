import numpy as np

from posesketch.app import window
from posesketch.core.config.settings import SketchSettings
from posesketch.core.video_sources.base import VideoSource


class _FakeSource(VideoSource):
    def __init__(self):
        self.closed = False

    def read(self):
        return np.zeros((480, 640, 3), dtype=np.uint8)

    def close(self):
        self.closed = True


def test_build_settings_merges_cli_over_config(monkeypatch):
    monkeypatch.setattr(window, "load_settings", lambda: SketchSettings(sketch="face", max_entities=2))
    args = window.build_parser().parse_args(
        ["--sketch", "hand", "--measure", "angle", "--no-flip", "--hide-video"]
    )
    settings = window.build_settings(args)
    assert settings.sketch == "hand"
    assert settings.measure == "angle"
    assert settings.max_entities == 2
    assert settings.flip_video is False
    assert settings.show_video is False


def test_build_settings_video_path_switches_to_file(monkeypatch):
    monkeypatch.setattr(window, "load_settings", lambda: SketchSettings())
    args = window.build_parser().parse_args(["--video-path", "clip.mp4"])
    settings = window.build_settings(args)
    assert settings.video_source == "file"
    assert settings.video_path == "clip.mp4"


def test_wait_delay_ms():
    assert window.wait_delay_ms(30) == 33
    assert window.wait_delay_ms(0) == 1
    assert window.wait_delay_ms(5000) == 1


def test_run_loop_toggles_and_quits(monkeypatch):
    source = _FakeSource()
    shown = []
    keys = iter([-1, ord("s"), ord("q")])
    monkeypatch.setattr(window, "load_settings", lambda: SketchSettings(sketch="skeleton"))
    monkeypatch.setattr(window, "open_source", lambda settings: source)
    monkeypatch.setattr(window.cv2, "imshow", lambda title, canvas: shown.append((title, canvas)))
    monkeypatch.setattr(window.cv2, "waitKey", lambda delay: next(keys))
    monkeypatch.setattr(window.cv2, "destroyAllWindows", lambda: None)

    window.run(window.build_parser().parse_args(["--no-detect"]))

    assert len(shown) == 3
    assert shown[0][0] == "posesketch - Body pose (skeleton)"
    assert int(shown[1][1][0, 0, 0]) == 0
    assert int(shown[2][1][0, 0, 0]) == 255
    assert source.closed is True


def test_failed_snapshot_keeps_the_window_running(monkeypatch, tmp_path):
    from posesketch.core import interaction

    source = _FakeSource()
    keys = iter([ord("p"), ord("q")])
    shown = []
    monkeypatch.setattr(
        window, "load_settings", lambda: SketchSettings(sketch="hand", snapshot_dir=str(tmp_path))
    )
    monkeypatch.setattr(window, "open_source", lambda settings: source)
    monkeypatch.setattr(interaction.cv2, "imwrite", lambda *_a, **_k: False)
    monkeypatch.setattr(window.cv2, "imshow", lambda title, canvas: shown.append(title))
    monkeypatch.setattr(window.cv2, "waitKey", lambda delay: next(keys))
    monkeypatch.setattr(window.cv2, "destroyAllWindows", lambda: None)

    window.run(window.build_parser().parse_args(["--no-detect"]))

    assert len(shown) == 2
    assert source.closed is True
