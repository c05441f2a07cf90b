"""源视频加载与限时 seek。"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from pathlib import Path
import threading
from typing import Optional, Protocol

import cv2
import numpy as np
from numpy.typing import NDArray

from vidgray.core import SourceMedia, get_logger

from .errors import VideoOpenError

logger = get_logger(__name__)


@dataclass(slots=True)
class SeekResult:
    """一次 seek 的结果；stale 表示超时或读取失败，沿用当前画面。"""

    timestamp: float
    frame: Optional[NDArray[np.uint8]]
    stale: bool = False


class FrameSource(Protocol):
    """流水线所需的最小视频源接口，便于测试注入。"""

    media: SourceMedia

    async def seek(self, timestamp: float, timeout: float) -> SeekResult:
        """定位到 timestamp 并返回当前呈现的帧（BGR）。"""


def probe_video(video_path: str | Path) -> SourceMedia:
    """读取时长与原始宽高，不保留解码器句柄。"""

    with VideoSource(video_path) as source:
        return source.media


class VideoSource:
    """基于 OpenCV 的视频源，seek 在工作线程中执行并受超时保护。"""

    def __init__(self, video_path: str | Path) -> None:
        self.path = Path(video_path)
        self._capture = cv2.VideoCapture(str(self.path))
        if not self._capture.isOpened():
            raise VideoOpenError(f"cannot open video: {self.path}")
        self._lock = threading.Lock()
        self._presented: Optional[NDArray[np.uint8]] = None
        self.media = self._probe()

    def _probe(self) -> SourceMedia:
        fps = float(self._capture.get(cv2.CAP_PROP_FPS) or 0.0)
        frame_count = float(self._capture.get(cv2.CAP_PROP_FRAME_COUNT) or 0.0)
        width = int(self._capture.get(cv2.CAP_PROP_FRAME_WIDTH) or 0)
        height = int(self._capture.get(cv2.CAP_PROP_FRAME_HEIGHT) or 0)
        duration = frame_count / fps if fps > 0 and frame_count > 0 else 0.0
        return SourceMedia(path=self.path, duration=duration, width=width, height=height, fps=fps)

    def read_at(self, timestamp: float) -> Optional[NDArray[np.uint8]]:
        """阻塞式 seek + 解码；失败时返回 None。"""

        with self._lock:
            self._capture.set(cv2.CAP_PROP_POS_MSEC, timestamp * 1000.0)
            success, frame = self._capture.read()
            if not success:
                return None
            self._presented = frame
            return frame

    async def seek(self, timestamp: float, timeout: float) -> SeekResult:
        # 超时的读取仍在工作线程里持有解码器，不再排队等待它
        if self._lock.locked():
            logger.warning("seek to %.3fs skipped, previous read still running, reusing presented frame", timestamp)
            return SeekResult(timestamp=timestamp, frame=self._presented, stale=True)
        try:
            frame = await asyncio.wait_for(asyncio.to_thread(self.read_at, timestamp), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning("seek to %.3fs timed out after %.0fms, reusing presented frame", timestamp, timeout * 1000)
            return SeekResult(timestamp=timestamp, frame=self._presented, stale=True)
        if frame is None:
            logger.warning("seek to %.3fs returned no frame, reusing presented frame", timestamp)
            return SeekResult(timestamp=timestamp, frame=self._presented, stale=True)
        return SeekResult(timestamp=timestamp, frame=frame)

    def close(self) -> None:
        with self._lock:
            self._capture.release()

    def __enter__(self) -> "VideoSource":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
