"""OpenCV 视频源测试：探测元数据与限时 seek。"""

import asyncio
from pathlib import Path
import time

import cv2
import numpy as np
import pytest

from vidgray.pipeline import VideoOpenError, VideoSource, probe_video


@pytest.fixture
def tiny_video(tmp_path: Path) -> Path:
    """20 帧、10 fps、32x24 的 MJPG 视频，第 i 帧像素值为 10 * i。"""

    path = tmp_path / "tiny.avi"
    writer = cv2.VideoWriter(str(path), cv2.VideoWriter_fourcc(*"MJPG"), 10.0, (32, 24))
    if not writer.isOpened():
        pytest.skip("MJPG writer unavailable")
    try:
        for index in range(20):
            writer.write(np.full((24, 32, 3), 10 * index, dtype=np.uint8))
    finally:
        writer.release()
    return path


def test_open_non_video_raises(tmp_path: Path) -> None:
    bogus = tmp_path / "notes.txt"
    bogus.write_text("not a video")

    with pytest.raises(VideoOpenError, match="cannot open video"):
        VideoSource(bogus)


def test_probe_reports_duration_and_size(tiny_video: Path) -> None:
    media = probe_video(tiny_video)

    assert media.width == 32
    assert media.height == 24
    assert media.fps == pytest.approx(10.0)
    assert media.duration == pytest.approx(2.0, abs=0.15)


def test_seek_returns_frame(tiny_video: Path) -> None:
    with VideoSource(tiny_video) as source:
        result = asyncio.run(source.seek(0.5, timeout=2.0))

    assert not result.stale
    assert result.frame is not None
    assert result.frame.shape == (24, 32, 3)


def test_seek_timeout_reuses_presented_frame(tiny_video: Path, monkeypatch) -> None:
    with VideoSource(tiny_video) as source:
        first = asyncio.run(source.seek(0.0, timeout=2.0))
        original = source.read_at

        def slow_read(timestamp: float):
            time.sleep(0.3)
            return original(timestamp)

        monkeypatch.setattr(source, "read_at", slow_read)
        result = asyncio.run(source.seek(1.0, timeout=0.05))

    assert result.stale
    assert result.frame is first.frame


def test_seek_decode_failure_reuses_presented_frame(tiny_video: Path, monkeypatch) -> None:
    with VideoSource(tiny_video) as source:
        first = asyncio.run(source.seek(0.0, timeout=2.0))
        monkeypatch.setattr(source, "read_at", lambda timestamp: None)
        result = asyncio.run(source.seek(1.0, timeout=2.0))

    assert first.frame is not None
    assert result.stale
    assert result.frame is first.frame


def test_seek_skips_read_while_previous_read_holds_decoder(tiny_video: Path, monkeypatch) -> None:
    with VideoSource(tiny_video) as source:
        first = asyncio.run(source.seek(0.0, timeout=2.0))
        calls = []
        monkeypatch.setattr(source, "read_at", lambda timestamp: calls.append(timestamp))

        source._lock.acquire()
        try:
            result = asyncio.run(source.seek(1.0, timeout=2.0))
        finally:
            source._lock.release()

    assert calls == []
    assert result.stale
    assert result.frame is first.frame
