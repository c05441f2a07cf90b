"""渲染目标与灰度变换测试。"""

import cv2
import numpy as np
import pytest

from vidgray.pipeline import NumpyRenderTarget, create_render_target, encode_png, grayscale_rgba


def _bgr(width: int, height: int, b: int, g: int, r: int) -> np.ndarray:
    frame = np.zeros((height, width, 3), dtype=np.uint8)
    frame[...] = (b, g, r)
    return frame


def test_grayscale_weights_applied_per_channel() -> None:
    target = NumpyRenderTarget(2, 2)
    target.upload(_bgr(2, 2, 0, 0, 255))

    out = target.draw()

    assert out.shape == (2, 2, 4)
    assert out[0, 0, 0] == round(0.299 * 255)
    assert np.all(out[..., 0] == out[..., 1])
    assert np.all(out[..., 1] == out[..., 2])
    assert np.all(out[..., 3] == 255)


def test_mixed_color_matches_luma_formula() -> None:
    target = NumpyRenderTarget(1, 1)
    target.upload(_bgr(1, 1, 30, 120, 200))

    out = target.draw()

    expected = 0.299 * 200 + 0.587 * 120 + 0.114 * 30
    assert int(out[0, 0, 0]) == int(np.rint(expected))


def test_grayscale_is_idempotent() -> None:
    rng = np.random.default_rng(7)
    frame = rng.integers(0, 256, size=(6, 5, 3), dtype=np.uint8)
    target = NumpyRenderTarget(5, 6)

    target.upload(frame)
    once = target.draw()
    target.upload(cv2.cvtColor(once, cv2.COLOR_RGBA2BGRA))
    twice = target.draw()

    assert np.array_equal(once, twice)


def test_grayscale_rgba_keeps_alpha() -> None:
    texels = np.array([[[0.2, 0.4, 0.6, 0.5]]], dtype=np.float32)

    out = grayscale_rgba(texels)

    gray = 0.299 * 0.2 + 0.587 * 0.4 + 0.114 * 0.6
    assert out[0, 0, :3] == pytest.approx([gray, gray, gray], abs=1e-6)
    assert out[0, 0, 3] == pytest.approx(0.5)
    assert grayscale_rgba(out) == pytest.approx(out, abs=1e-6)


def test_frame_scaled_to_render_target() -> None:
    target = NumpyRenderTarget()
    target.resize(4, 2)
    target.upload(_bgr(20, 10, 10, 10, 10))

    assert target.draw().shape == (2, 4, 4)


def test_draw_without_upload_returns_clear_color() -> None:
    target = NumpyRenderTarget(3, 2)

    out = target.draw()

    assert np.all(out[..., :3] == 0)
    assert np.all(out[..., 3] == 255)


def test_resize_rejects_empty_target() -> None:
    with pytest.raises(ValueError):
        NumpyRenderTarget().resize(0, 480)


def test_encode_png_is_lossless() -> None:
    target = NumpyRenderTarget(3, 3)
    target.upload(_bgr(3, 3, 50, 100, 150))
    rgba = target.draw()

    data = encode_png(rgba)

    assert data.startswith(b"\x89PNG")
    decoded = cv2.imdecode(np.frombuffer(data, dtype=np.uint8), cv2.IMREAD_UNCHANGED)
    assert np.array_equal(cv2.cvtColor(decoded, cv2.COLOR_BGRA2RGBA), rgba)


def test_unknown_backend_rejected() -> None:
    with pytest.raises(ValueError):
        create_render_target("vulkan")


def test_gl_backend_renders_grayscale() -> None:
    pytest.importorskip("moderngl")
    try:
        target = create_render_target("gl", width=4, height=2)
    except Exception as exc:  # 无 OpenGL 上下文的环境
        pytest.skip(f"no OpenGL context: {exc}")
    try:
        frame = _bgr(4, 2, 0, 255, 0)
        frame[0, :] = (0, 0, 255)
        target.upload(frame)
        out = target.draw()
    finally:
        target.close()

    assert out.shape == (2, 4, 4)
    assert abs(int(out[0, 0, 0]) - round(0.299 * 255)) <= 1
    assert abs(int(out[1, 0, 0]) - round(0.587 * 255)) <= 1
