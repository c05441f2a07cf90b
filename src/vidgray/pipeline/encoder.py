from __future__ import annotations

# 外部编码器封装：
# 1) load() 首次调用时检查 ffmpeg 可执行文件，失败即中止整个运行
# 2) encode() 用 ffmpeg-python 构造固定命令：
#    -framerate <rate> -i frame%05d.png -c:v libx264 -pix_fmt yuv420p -y <output>

import asyncio
from pathlib import Path
import subprocess
from typing import List

import ffmpeg

from vidgray.core import get_logger
from vidgray.core.config import EncoderConfig

from .errors import EncodeFailedError, EncoderUnavailableError

logger = get_logger(__name__)


class FFmpegEncoder:
    """懒加载的 ffmpeg 引擎，一个实例可被多次运行复用。"""

    def __init__(self, config: EncoderConfig) -> None:
        self.config = config
        self._loaded = False
        self._load_lock = asyncio.Lock()

    def is_loaded(self) -> bool:
        return self._loaded

    async def load(self) -> None:
        """一次性初始化；ffmpeg 不存在或无法执行时抛出 EncoderUnavailableError。"""

        async with self._load_lock:
            if self._loaded:
                return
            version = await asyncio.to_thread(self._probe_version)
            logger.info("encoder ready: %s", version)
            self._loaded = True

    def _probe_version(self) -> str:
        try:
            result = subprocess.run(
                [self.config.ffmpeg_bin, "-version"],
                capture_output=True,
                text=True,
                timeout=10,
            )
        except (FileNotFoundError, PermissionError) as exc:
            raise EncoderUnavailableError(f"encoder unavailable: {self.config.ffmpeg_bin} not found") from exc
        except subprocess.TimeoutExpired as exc:
            raise EncoderUnavailableError(f"encoder unavailable: {self.config.ffmpeg_bin} timed out") from exc
        if result.returncode != 0:
            raise EncoderUnavailableError(f"encoder unavailable: {result.stderr.strip()}")
        lines = result.stdout.splitlines()
        return lines[0] if lines else self.config.ffmpeg_bin

    def build_stream(self, workdir: Path, rate_hz: float) -> "ffmpeg.nodes.OutputStream":
        frames = ffmpeg.input(str(workdir / self.config.frame_pattern), framerate=_format_rate(rate_hz))
        output = ffmpeg.output(
            frames,
            str(workdir / self.config.output_name),
            **{"c:v": self.config.video_codec, "pix_fmt": self.config.pix_fmt},
        )
        return ffmpeg.overwrite_output(output)

    def command(self, workdir: Path, rate_hz: float) -> List[str]:
        return self.build_stream(workdir, rate_hz).compile(cmd=self.config.ffmpeg_bin)

    async def encode(self, workdir: Path, rate_hz: float) -> None:
        if not self._loaded:
            raise EncoderUnavailableError("encoder unavailable: not loaded")
        stream = self.build_stream(workdir, rate_hz)
        logger.debug("ffmpeg command: %s", " ".join(stream.compile(cmd=self.config.ffmpeg_bin)))
        await asyncio.to_thread(self._run, stream)

    def _run(self, stream: "ffmpeg.nodes.OutputStream") -> None:
        try:
            stream.run(cmd=self.config.ffmpeg_bin, quiet=True, capture_stdout=True, capture_stderr=True)
        except ffmpeg.Error as e:
            error_msg = f"encoding failed: {e}"
            if getattr(e, "stderr", None):
                error_msg += f"\nffmpeg stderr:\n{e.stderr.decode('utf-8', errors='replace')}"
            raise EncodeFailedError(error_msg) from e
        except FileNotFoundError as exc:
            raise EncoderUnavailableError(f"encoder unavailable: {self.config.ffmpeg_bin} not found") from exc


def _format_rate(rate_hz: float) -> str:
    """10.0 -> "10"，非整数保留原值。"""

    return str(int(rate_hz)) if float(rate_hz).is_integer() else str(rate_hz)
