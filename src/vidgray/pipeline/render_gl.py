"""moderngl 渲染后端：顶点 + 片元两阶段程序，离屏帧缓冲。"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import moderngl
import numpy as np
from numpy.typing import NDArray

from .render import CLEAR_COLOR, to_rgba

SHADER_DIR = Path(__file__).parent / "shaders"

# 两个三角形覆盖整个裁剪空间
_QUAD_POSITIONS = np.array(
    [-1, -1, 1, -1, -1, 1,
     -1, 1, 1, -1, 1, 1],
    dtype="f4",
)
# v 轴翻转，使第 0 行（图像顶部）出现在屏幕顶部
_QUAD_TEXCOORDS = np.array(
    [0, 1, 1, 1, 0, 0,
     0, 0, 1, 1, 1, 0],
    dtype="f4",
)


def _read_shader(name: str) -> str:
    return (SHADER_DIR / name).read_text()


class GLRenderTarget:
    """Offscreen GL render target with a single reusable texture slot."""

    def __init__(self, width: int = 640, height: int = 480, ctx: Optional[moderngl.Context] = None) -> None:
        self.ctx = ctx or moderngl.create_standalone_context()
        self._owns_ctx = ctx is None
        self.program = self.ctx.program(
            vertex_shader=_read_shader("grayscale.vert"),
            fragment_shader=_read_shader("grayscale.frag"),
        )
        self._pos_vbo = self.ctx.buffer(_QUAD_POSITIONS.tobytes())
        self._tex_vbo = self.ctx.buffer(_QUAD_TEXCOORDS.tobytes())
        self.vao = self.ctx.vertex_array(
            self.program,
            [
                (self._pos_vbo, "2f", "in_position"),
                (self._tex_vbo, "2f", "in_texcoord"),
            ],
        )
        self._texture: Optional[moderngl.Texture] = None
        self._fbo: Optional[moderngl.Framebuffer] = None
        self.width = 0
        self.height = 0
        self.resize(width, height)

    def resize(self, width: int, height: int) -> None:
        if width <= 0 or height <= 0:
            raise ValueError("render target size must be positive")
        if self._fbo is not None:
            self._fbo.release()
        self._fbo = self.ctx.simple_framebuffer((width, height), components=4)
        self.width = width
        self.height = height

    def upload(self, frame: NDArray[np.uint8]) -> None:
        rgba = np.ascontiguousarray(to_rgba(frame))
        size = (rgba.shape[1], rgba.shape[0])
        if self._texture is None or self._texture.size != size:
            if self._texture is not None:
                self._texture.release()
            self._texture = self.ctx.texture(size, 4, rgba.tobytes())
            self._texture.filter = (moderngl.LINEAR, moderngl.LINEAR)
            self._texture.repeat_x = False
            self._texture.repeat_y = False
        else:
            self._texture.write(rgba.tobytes())

    def draw(self) -> NDArray[np.uint8]:
        assert self._fbo is not None
        self._fbo.use()
        self._fbo.viewport = (0, 0, self.width, self.height)
        self._fbo.clear(*CLEAR_COLOR)
        if self._texture is not None:
            self._texture.use(location=0)
            self.program["u_image"].value = 0
            self.vao.render(moderngl.TRIANGLES, vertices=6)
        data = self._fbo.read(components=4, alignment=1)
        pixels = np.frombuffer(data, dtype=np.uint8).reshape(self.height, self.width, 4)
        # glReadPixels 从底行开始
        return np.ascontiguousarray(np.flipud(pixels))

    def close(self) -> None:
        for resource in (self._texture, self._fbo, self.vao, self._pos_vbo, self._tex_vbo, self.program):
            if resource is not None:
                resource.release()
        self._texture = None
        self._fbo = None
        if self._owns_ctx:
            self.ctx.release()
