"""渲染目标与灰度颜色变换程序。

渲染目标持有一个纹理槽，每次迭代覆盖上传；draw 先清屏，再对全屏执行一次
颜色变换，返回 RGBA uint8 图像。默认 numpy 实现，`gl` 后端见 render_gl。
"""

from __future__ import annotations

from typing import Optional, Protocol, Tuple

import cv2
import numpy as np
from numpy.typing import NDArray

# ITU-R BT.601 亮度权重，顺序为 R, G, B
GRAYSCALE_WEIGHTS: Tuple[float, float, float] = (0.299, 0.587, 0.114)
CLEAR_COLOR: Tuple[float, float, float, float] = (0.0, 0.0, 0.0, 1.0)


class RenderTarget(Protocol):
    """流水线使用的渲染目标接口。"""

    width: int
    height: int

    def resize(self, width: int, height: int) -> None:
        ...

    def upload(self, frame: NDArray[np.uint8]) -> None:
        """把当前视频帧（OpenCV BGR/BGRA/灰度）上传到纹理槽。"""

    def draw(self) -> NDArray[np.uint8]:
        """清屏并执行一次全屏变换，返回 (height, width, 4) 的 RGBA 图像。"""

    def close(self) -> None:
        ...


def to_rgba(frame: NDArray[np.uint8]) -> NDArray[np.uint8]:
    """将 OpenCV 帧统一转换为 RGBA。"""

    if frame.ndim == 2:
        return cv2.cvtColor(frame, cv2.COLOR_GRAY2RGBA)
    channels = frame.shape[2]
    if channels == 3:
        return cv2.cvtColor(frame, cv2.COLOR_BGR2RGBA)
    if channels == 4:
        return cv2.cvtColor(frame, cv2.COLOR_BGRA2RGBA)
    raise ValueError(f"unsupported channel count: {channels}")


def grayscale_rgba(texels: NDArray[np.float32]) -> NDArray[np.float32]:
    """片元阶段：gray = 0.299R + 0.587G + 0.114B，输出 (gray, gray, gray, A)。"""

    weights = np.asarray(GRAYSCALE_WEIGHTS, dtype=np.float32)
    gray = texels[..., :3] @ weights
    out = np.empty_like(texels)
    out[..., 0] = gray
    out[..., 1] = gray
    out[..., 2] = gray
    out[..., 3] = texels[..., 3]
    return out


def encode_png(rgba: NDArray[np.uint8]) -> bytes:
    """把渲染结果压缩为无损 PNG 字节。"""

    ok, buffer = cv2.imencode(".png", cv2.cvtColor(rgba, cv2.COLOR_RGBA2BGRA))
    if not ok:
        raise ValueError("png encoding failed")
    return buffer.tobytes()


class NumpyRenderTarget:
    """CPU 渲染目标：纹理以 float32 RGBA 保存，尺寸不符时线性缩放到目标大小。"""

    def __init__(self, width: int = 640, height: int = 480) -> None:
        self.width = width
        self.height = height
        self._texture: Optional[NDArray[np.float32]] = None

    def resize(self, width: int, height: int) -> None:
        if width <= 0 or height <= 0:
            raise ValueError("render target size must be positive")
        self.width = width
        self.height = height
        self._texture = None

    def upload(self, frame: NDArray[np.uint8]) -> None:
        rgba = to_rgba(frame)
        if rgba.shape[1] != self.width or rgba.shape[0] != self.height:
            rgba = cv2.resize(rgba, (self.width, self.height), interpolation=cv2.INTER_LINEAR)
        self._texture = rgba.astype(np.float32) / 255.0

    def draw(self) -> NDArray[np.uint8]:
        target = np.empty((self.height, self.width, 4), dtype=np.float32)
        target[...] = CLEAR_COLOR
        if self._texture is not None:
            target = grayscale_rgba(self._texture)
        return np.clip(np.rint(target * 255.0), 0, 255).astype(np.uint8)

    def close(self) -> None:
        self._texture = None


def create_render_target(backend: str = "numpy", *, width: int = 640, height: int = 480) -> RenderTarget:
    """按配置创建渲染目标；gl 后端需要安装 moderngl。"""

    if backend == "numpy":
        return NumpyRenderTarget(width, height)
    if backend == "gl":
        from .render_gl import GLRenderTarget

        return GLRenderTarget(width, height)
    raise ValueError(f"unknown render backend: {backend}")
