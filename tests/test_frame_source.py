import cv2
import numpy as np
import pytest

from conftest import wait_for
from yolo_overlay.core.types import PlaybackState
from yolo_overlay.processing.frame_source import VideoFileSource


@pytest.fixture
def video_path(tmp_path):
    path = str(tmp_path / "clip.avi")
    writer = cv2.VideoWriter(path, cv2.VideoWriter_fourcc(*"MJPG"), 30.0, (64, 48))
    if not writer.isOpened():
        pytest.skip("OpenCV build cannot write MJPG video")
    for i in range(10):
        writer.write(np.full((48, 64, 3), i * 20, dtype=np.uint8))
    writer.release()
    return path


def test_missing_file_does_not_open(tmp_path):
    source = VideoFileSource(str(tmp_path / "missing.mp4"))

    assert source.open() is False
    assert source.current_frame() is None
    assert source.playback_state() == PlaybackState.STOPPED


def test_play_pause_cycle_notifies_listeners(video_path):
    source = VideoFileSource(video_path, loop=True)
    states = []
    source.on_playback_state_changed(states.append)
    assert source.open()
    try:
        assert source.frame_size == (64, 48)
        assert source.current_frame().shape == (48, 64, 3)

        source.play()
        assert source.playback_state() == PlaybackState.PLAYING
        source.pause()
        assert source.playback_state() == PlaybackState.PAUSED
        source.toggle()
        assert source.playback_state() == PlaybackState.PLAYING
    finally:
        source.release()

    assert states == [PlaybackState.PLAYING, PlaybackState.PAUSED, PlaybackState.PLAYING, PlaybackState.STOPPED]
    assert source.current_frame() is None


def test_current_frame_is_a_copy(video_path):
    source = VideoFileSource(video_path)
    assert source.open()
    try:
        frame = source.current_frame()
        frame[:] = 255
        assert not np.array_equal(source.current_frame(), frame)
    finally:
        source.release()


def test_playback_without_loop_stops_at_end(video_path):
    source = VideoFileSource(video_path, loop=False)
    assert source.open()
    try:
        source.play()
        assert wait_for(lambda: source.playback_state() == PlaybackState.STOPPED, timeout=5.0)
    finally:
        source.release()


def test_play_before_open_is_ignored(video_path):
    source = VideoFileSource(video_path)
    source.play()

    assert source.playback_state() == PlaybackState.STOPPED


def test_replay_after_end_starts_from_first_frame(video_path):
    source = VideoFileSource(video_path, loop=False)
    states = []
    source.on_playback_state_changed(states.append)
    assert source.open()
    try:
        source.play()
        assert wait_for(lambda: source.playback_state() == PlaybackState.STOPPED, timeout=5.0)

        source.play()
        assert source.playback_state() == PlaybackState.PLAYING
        assert wait_for(lambda: source.playback_state() == PlaybackState.STOPPED, timeout=5.0)
    finally:
        source.release()

    assert states[:4] == [PlaybackState.PLAYING, PlaybackState.STOPPED, PlaybackState.PLAYING, PlaybackState.STOPPED]


def test_play_after_stop_restarts_playback(video_path):
    source = VideoFileSource(video_path, loop=False)
    assert source.open()
    try:
        source.play()
        source.stop()
        assert source.playback_state() == PlaybackState.STOPPED

        source.play()
        assert source.playback_state() == PlaybackState.PLAYING
        assert wait_for(lambda: source.current_frame() is not None)
        assert wait_for(lambda: source.playback_state() == PlaybackState.STOPPED, timeout=5.0)
    finally:
        source.release()
