"""ffmpeg 编码器封装测试；不依赖本机安装 ffmpeg。"""

import asyncio
from pathlib import Path
import subprocess

import ffmpeg
import pytest

from vidgray.core.config import EncoderConfig
from vidgray.pipeline import EncodeFailedError, EncoderUnavailableError, FFmpegEncoder


def _follows(cmd, flag, value) -> bool:
    return cmd[cmd.index(flag) + 1] == value


def test_command_matches_fixed_invocation(tmp_path: Path) -> None:
    encoder = FFmpegEncoder(EncoderConfig())

    cmd = encoder.command(tmp_path, 10.0)

    assert cmd[0] == "ffmpeg"
    assert _follows(cmd, "-framerate", "10")
    assert _follows(cmd, "-i", str(tmp_path / "frame%05d.png"))
    assert _follows(cmd, "-c:v", "libx264")
    assert _follows(cmd, "-pix_fmt", "yuv420p")
    assert "-y" in cmd
    assert str(tmp_path / "output_grayscale.mp4") in cmd
    assert cmd.index("-framerate") < cmd.index("-i")


def test_load_fails_when_binary_missing() -> None:
    encoder = FFmpegEncoder(EncoderConfig(ffmpeg_bin="vidgray-missing-ffmpeg-binary"))

    with pytest.raises(EncoderUnavailableError, match="encoder unavailable"):
        asyncio.run(encoder.load())
    assert not encoder.is_loaded()


def test_load_is_lazy_and_runs_once(monkeypatch) -> None:
    calls = []

    def fake_run(args, **kwargs):
        calls.append(args)
        return subprocess.CompletedProcess(args, 0, stdout="ffmpeg version 6.1\n", stderr="")

    monkeypatch.setattr("vidgray.pipeline.encoder.subprocess.run", fake_run)
    encoder = FFmpegEncoder(EncoderConfig())

    async def _load_twice() -> None:
        await encoder.load()
        await encoder.load()

    asyncio.run(_load_twice())

    assert encoder.is_loaded()
    assert calls == [["ffmpeg", "-version"]]


def test_load_reports_nonzero_exit(monkeypatch) -> None:
    monkeypatch.setattr(
        "vidgray.pipeline.encoder.subprocess.run",
        lambda args, **kwargs: subprocess.CompletedProcess(args, 1, stdout="", stderr="broken build"),
    )

    with pytest.raises(EncoderUnavailableError, match="broken build"):
        asyncio.run(FFmpegEncoder(EncoderConfig()).load())


def test_encode_requires_load(tmp_path: Path) -> None:
    with pytest.raises(EncoderUnavailableError):
        asyncio.run(FFmpegEncoder(EncoderConfig()).encode(tmp_path, 10.0))


def test_ffmpeg_error_becomes_encode_failure() -> None:
    class FailingStream:
        def run(self, **kwargs):
            raise ffmpeg.Error("ffmpeg", b"", b"Could not find frame00000.png")

    encoder = FFmpegEncoder(EncoderConfig())

    with pytest.raises(EncodeFailedError, match="frame00000.png"):
        encoder._run(FailingStream())  # type: ignore[arg-type]
