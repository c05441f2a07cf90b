"""vidgray Typer CLI：加载视频、灰度处理并重新编码为 MP4。"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Optional

from pydantic import ValidationError
import typer

from vidgray.core import PipelineConfig, RunReport, get_logger, load_config, setup_logging
from vidgray.pipeline import (
    FramePipeline,
    OutputMissingError,
    PipelineError,
    SamplePlan,
    VideoOpenError,
    VideoSource,
    probe_video,
)

app = typer.Typer(help="vidgray 灰度视频处理 CLI")
logger = get_logger(__name__)


@app.callback()
def main() -> None:
    """vidgray 顶层 CLI。"""

    return None


def _resolve_config(config_path: Optional[Path]) -> PipelineConfig:
    return load_config(config_path) if config_path else load_config()


def _apply_overrides(
    cfg: PipelineConfig,
    *,
    backend: Optional[str] = None,
    cap_seconds: Optional[float] = None,
    rate: Optional[float] = None,
    keep_scratch: bool = False,
) -> PipelineConfig:
    sampling_updates = {}
    if cap_seconds is not None:
        sampling_updates["cap_seconds"] = cap_seconds
    if rate is not None:
        sampling_updates["rate_hz"] = rate
    updates = {}
    if sampling_updates:
        updates["sampling"] = cfg.sampling.model_validate({**cfg.sampling.model_dump(), **sampling_updates})
    if backend:
        updates["render"] = cfg.render.model_validate({**cfg.render.model_dump(), "backend": backend})
    if keep_scratch:
        updates["keep_scratch"] = True
    if not updates:
        return cfg
    return cfg.model_copy(update=updates)


def _build_config(config_path: Optional[Path], **overrides) -> PipelineConfig:
    try:
        return _apply_overrides(_resolve_config(config_path), **overrides)
    except ValidationError as exc:
        error = exc.errors()[0]
        field = ".".join(str(part) for part in error["loc"]) or "config"
        typer.echo(f"Invalid option {field}: {error['msg']}", err=True)
        raise typer.Exit(code=1) from exc


def _echo_progress(current: int, total: int) -> None:
    typer.echo(f"Processing frame {current} / {total}")


@app.command("process")
def process_cmd(
    video: Path = typer.Argument(..., exists=True, resolve_path=True, help="待处理视频路径"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="输出 MP4 路径，默认 output_grayscale.mp4"),
    config_path: Optional[Path] = typer.Option(None, "--config", help="自定义配置文件"),
    backend: Optional[str] = typer.Option(None, "--backend", help="渲染后端：numpy 或 gl"),
    cap_seconds: Optional[float] = typer.Option(None, "--cap-seconds", help="覆盖最长处理时长（秒）"),
    rate: Optional[float] = typer.Option(None, "--rate", help="覆盖采样率（Hz）"),
    keep_scratch: bool = typer.Option(False, "--keep-scratch", help="保留帧暂存目录便于排查"),
    log_level: str = typer.Option("INFO", "--log-level", help="日志级别"),
) -> None:
    """采样、灰度渲染并用 ffmpeg 合成 MP4。"""

    setup_logging(log_level)
    cfg = _build_config(
        config_path,
        backend=backend,
        cap_seconds=cap_seconds,
        rate=rate,
        keep_scratch=keep_scratch,
    )
    try:
        source = VideoSource(video)
    except VideoOpenError as exc:
        typer.echo(f"无法打开视频：{exc}", err=True)
        raise typer.Exit(code=1) from exc

    with source:
        typer.echo(f"Video loaded. Duration: {source.media.duration:.2f}s.")
        pipeline = FramePipeline(cfg)
        try:
            report: RunReport = asyncio.run(
                pipeline.run(source, progress_callback=_echo_progress, status_callback=typer.echo)
            )
        except PipelineError as exc:
            typer.echo(f"Processing failed: {exc}", err=True)
            raise typer.Exit(code=1) from exc
        except Exception as exc:
            logger.debug("unexpected pipeline failure", exc_info=True)
            typer.echo(f"Processing failed: {exc}", err=True)
            raise typer.Exit(code=1) from exc

    if report.artifact is None:
        typer.echo(f"Processing failed: {OutputMissingError()}", err=True)
        raise typer.Exit(code=1)
    target = output or Path(report.artifact.name)
    report.artifact.save(target)
    if report.dropped or report.stale:
        typer.echo(f"dropped frames: {report.dropped}, stale frames: {report.stale}", err=True)
    typer.echo(f"Done: {report.written} / {report.planned} frames -> {target}")


@app.command("probe")
def probe_cmd(
    video: Path = typer.Argument(..., exists=True, resolve_path=True, help="视频路径"),
) -> None:
    """输出时长与原始宽高（JSON）。"""

    try:
        media = probe_video(video)
    except VideoOpenError as exc:
        typer.echo(f"无法打开视频：{exc}", err=True)
        raise typer.Exit(code=1) from exc
    typer.echo(json.dumps(media.to_dict(), ensure_ascii=False, indent=2))


@app.command("plan")
def plan_cmd(
    video: Path = typer.Argument(..., exists=True, resolve_path=True, help="视频路径"),
    config_path: Optional[Path] = typer.Option(None, "--config", help="自定义配置文件"),
    cap_seconds: Optional[float] = typer.Option(None, "--cap-seconds", help="覆盖最长处理时长（秒）"),
    rate: Optional[float] = typer.Option(None, "--rate", help="覆盖采样率（Hz）"),
) -> None:
    """打印采样计划：帧数与时间戳。"""

    cfg = _build_config(config_path, cap_seconds=cap_seconds, rate=rate)
    try:
        media = probe_video(video)
    except VideoOpenError as exc:
        typer.echo(f"无法打开视频：{exc}", err=True)
        raise typer.Exit(code=1) from exc
    plan = SamplePlan.for_duration(media.duration, cfg.sampling)
    payload = {
        "duration": plan.duration,
        "rate_hz": plan.rate_hz,
        "total_samples": plan.total_samples,
        "timestamps": [round(ts, 6) for ts in plan.timestamps()],
    }
    typer.echo(json.dumps(payload, ensure_ascii=False, indent=2))


if __name__ == "__main__":  # pragma: no cover
    app()
