"""帧流水线编排：采样 -> 灰度渲染 -> PNG -> 暂存 -> ffmpeg -> 读回产物。"""

from __future__ import annotations

import asyncio
from dataclasses import replace
import threading
from typing import Callable, List, Optional, Tuple

import cv2

from vidgray.core import EncodedFrame, OutputArtifact, PipelineConfig, RunReport, get_logger, log_phase

from .encoder import FFmpegEncoder
from .errors import NoFramesError, OutputMissingError, PipelineBusyError, PipelineCancelledError
from .plan import SamplePlan
from .render import RenderTarget, create_render_target, encode_png
from .scratch import ScratchSpace
from .source import FrameSource

logger = get_logger(__name__)

ProgressCallback = Callable[[int, int], None]
StatusCallback = Callable[[str], None]


class CancelToken:
    """跨线程可用的取消标记，在每个挂起点检查。"""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise PipelineCancelledError()


class FramePipeline:
    """单次只允许一个运行；每次运行独享渲染目标与暂存目录。"""

    def __init__(
        self,
        config: PipelineConfig,
        *,
        encoder: Optional[FFmpegEncoder] = None,
        render_factory: Optional[Callable[[], RenderTarget]] = None,
    ) -> None:
        self.config = config
        self.encoder = encoder or FFmpegEncoder(config.encoder)
        self._render_factory = render_factory or self._default_render_target
        self._lock = asyncio.Lock()

    def _default_render_target(self) -> RenderTarget:
        render_cfg = self.config.render
        return create_render_target(
            render_cfg.backend,
            width=render_cfg.default_width,
            height=render_cfg.default_height,
        )

    def is_running(self) -> bool:
        return self._lock.locked()

    async def run(
        self,
        source: FrameSource,
        *,
        progress_callback: ProgressCallback | None = None,
        status_callback: StatusCallback | None = None,
        cancel_token: CancelToken | None = None,
    ) -> RunReport:
        """执行完整流水线，成功时 report.artifact 持有 MP4 字节。"""

        if self._lock.locked():
            raise PipelineBusyError()
        async with self._lock:
            return await self._run(
                source,
                progress=progress_callback or _noop_progress,
                status=status_callback or _noop_status,
                cancel=cancel_token or CancelToken(),
            )

    async def _run(
        self,
        source: FrameSource,
        *,
        progress: ProgressCallback,
        status: StatusCallback,
        cancel: CancelToken,
    ) -> RunReport:
        sampling = self.config.sampling
        status("Initializing encoder (first load may be slow)...")
        await self.encoder.load()
        cancel.raise_if_cancelled()

        media = source.media
        plan = SamplePlan.for_duration(media.duration, sampling)
        total = plan.total_samples
        report = RunReport(planned=total)
        status(f"Processing {total} frames ({plan.duration:.1f}s)...")

        scratch = ScratchSpace.create(self.config.scratch_root)
        target: Optional[RenderTarget] = None
        pending: List[Tuple[EncodedFrame, asyncio.Task]] = []
        try:
            target = self._render_factory()
            target.resize(
                media.width or self.config.render.default_width,
                media.height or self.config.render.default_height,
            )
            with log_phase(logger, "sampling"):
                await self._sample_frames(source, plan, target, scratch, report, pending, progress, cancel)

            # 以每次写入自身的完成信号作为屏障，而不是固定等待
            results = await asyncio.gather(*(task for _, task in pending), return_exceptions=True)
            for (frame, _), result in zip(pending, results):
                if isinstance(result, BaseException):
                    logger.warning("failed to write %s: %s", frame.filename, result)
                    report.dropped.append(frame.index)
                else:
                    report.frames.append(frame)
            report.dropped.sort()
            cancel.raise_if_cancelled()

            if report.dropped:
                scratch.compact_frames()
                report.frames = [replace(frame, index=idx) for idx, frame in enumerate(report.frames)]
            frame_count = len(scratch.frame_files())
            logger.info("found %d frame files, expected %d", frame_count, total)
            if frame_count == 0:
                raise NoFramesError()

            status("All frames processed, encoding...")
            with log_phase(logger, "encoding"):
                await self.encoder.encode(scratch.root, plan.rate_hz)
            cancel.raise_if_cancelled()

            output_name = self.config.encoder.output_name
            if output_name not in scratch.list_files():
                raise OutputMissingError()
            report.artifact = OutputArtifact(name=output_name, data=scratch.read_file(output_name))
            status("Encoding complete.")
            return report
        finally:
            # 写入在工作线程中无法中断，清理前等它们全部落盘
            if pending:
                await asyncio.gather(*(task for _, task in pending), return_exceptions=True)
            if target is not None:
                target.close()
            if self.config.keep_scratch:
                logger.info("scratch kept at %s", scratch.root)
            else:
                scratch.cleanup()

    async def _sample_frames(
        self,
        source: FrameSource,
        plan: SamplePlan,
        target: RenderTarget,
        scratch: ScratchSpace,
        report: RunReport,
        pending: List[Tuple[EncodedFrame, asyncio.Task]],
        progress: ProgressCallback,
        cancel: CancelToken,
    ) -> None:
        sampling = self.config.sampling
        timeout = sampling.seek_timeout_ms / 1000.0
        pacing = sampling.pacing_ms / 1000.0
        total = plan.total_samples
        index = 0
        for timestamp in plan.timestamps():
            cancel.raise_if_cancelled()
            seek = await source.seek(timestamp, timeout)
            if seek.stale:
                report.stale.append(index)
            if seek.frame is not None:
                target.upload(seek.frame)
            rendered = target.draw()

            try:
                png = await asyncio.to_thread(encode_png, rendered)
            except (ValueError, cv2.error) as exc:
                logger.warning("failed to encode frame %d: %s", index, exc)
                report.dropped.append(index)
            else:
                frame = EncodedFrame(index=index, timestamp=timestamp, size_bytes=len(png), stale=seek.stale)
                pending.append((frame, asyncio.create_task(scratch.write_frame(index, png))))
                logger.debug("queued %s (t=%.3fs)", frame.filename, timestamp)

            index += 1
            progress(index, total)
            if pacing > 0:
                await asyncio.sleep(pacing)


def _noop_progress(_current: int, _total: int) -> None:
    return None


def _noop_status(_message: str) -> None:
    return None
