"""配置加载工具，集中管理仓内/环境参数。"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Callable, Dict, Literal, Mapping, MutableMapping, Sequence, Tuple

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

from .paths import SCRATCH_ENV_KEY, resolve_scratch_root

CONFIG_ENV_KEY = "VIDGRAY_CONFIG_PATH"


class SamplingConfig(BaseModel):
    """采样相关参数：时长上限 10 秒、采样率 10 Hz。"""

    cap_seconds: float = 10.0
    rate_hz: float = 10.0
    seek_timeout_ms: int = 1000
    pacing_ms: int = 100

    @field_validator("cap_seconds", "rate_hz")
    @classmethod
    def _positive(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("must be positive")
        return value

    @field_validator("seek_timeout_ms", "pacing_ms")
    @classmethod
    def _non_negative(cls, value: int) -> int:
        if value < 0:
            raise ValueError("must not be negative")
        return value


class RenderConfig(BaseModel):
    """渲染目标参数；源视频尺寸未知时回退到 640x480。"""

    backend: Literal["numpy", "gl"] = "numpy"
    default_width: int = 640
    default_height: int = 480


class EncoderConfig(BaseModel):
    """外部编码器参数，对应 ffmpeg 的固定命令。"""

    ffmpeg_bin: str = "ffmpeg"
    video_codec: str = "libx264"
    pix_fmt: str = "yuv420p"
    output_name: str = "output_grayscale.mp4"
    frame_pattern: str = "frame%05d.png"


class PipelineConfig(BaseModel):
    """聚合各阶段配置，并包含暂存目录。"""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    sampling: SamplingConfig = Field(default_factory=SamplingConfig)
    render: RenderConfig = Field(default_factory=RenderConfig)
    encoder: EncoderConfig = Field(default_factory=EncoderConfig)
    scratch_root: Path = Field(default_factory=resolve_scratch_root)
    keep_scratch: bool = False
    raw: Dict[str, Any] = Field(default_factory=dict, description="原始配置字典，便于调试。")

    def model_post_init(self, __context: Any) -> None:  # type: ignore[override]
        if not self.raw:
            self.raw = self.to_raw_dict()

    def to_raw_dict(self) -> Dict[str, Any]:
        """导出基础 dict，供日志输出使用。"""

        return {
            "sampling": self.sampling.model_dump(),
            "render": self.render.model_dump(),
            "encoder": self.encoder.model_dump(),
            "scratch_root": str(self.scratch_root),
            "keep_scratch": self.keep_scratch,
        }


def _default_config_path() -> Path:
    return Path(__file__).resolve().parents[3] / "configs" / "baseline.yaml"


def _load_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
        if not isinstance(data, dict):
            raise ValueError(f"配置文件 {path} 内容需为字典")
        return data


ENV_OVERRIDE_MAP: Dict[str, Tuple[Sequence[str], Callable[[str], Any]]] = {
    "VIDGRAY_CAP_SECONDS": (("sampling", "cap_seconds"), float),
    "VIDGRAY_SAMPLE_RATE": (("sampling", "rate_hz"), float),
    "VIDGRAY_SEEK_TIMEOUT_MS": (("sampling", "seek_timeout_ms"), int),
    "VIDGRAY_RENDER_BACKEND": (("render", "backend"), str),
    "VIDGRAY_FFMPEG_BIN": (("encoder", "ffmpeg_bin"), str),
}


def _apply_env_overrides(data: MutableMapping[str, Any], env: Mapping[str, str]) -> None:
    for env_key, (path, caster) in ENV_OVERRIDE_MAP.items():
        if env_key in env:
            _set_nested_value(data, path, caster(env[env_key]))


def _set_nested_value(target: MutableMapping[str, Any], path: Sequence[str], value: Any) -> None:
    cursor: MutableMapping[str, Any] = target
    *parents, last = path
    for key in parents:
        if key not in cursor or not isinstance(cursor[key], MutableMapping):
            cursor[key] = {}
        cursor = cursor[key]  # type: ignore[assignment]
    cursor[last] = value


def load_config(path: str | Path | None = None, *, env: Mapping[str, str] | None = None) -> PipelineConfig:
    """加载配置：优先显式路径，其次环境变量，最后回退默认 baseline。"""

    env_map = env if env is not None else os.environ
    config_path = path or env_map.get(CONFIG_ENV_KEY)
    target_path = Path(config_path).expanduser() if config_path else _default_config_path()
    data = _load_yaml(target_path)
    _apply_env_overrides(data, env_map)

    scratch_override = env_map.get(SCRATCH_ENV_KEY)
    if scratch_override:
        data["scratch_root"] = str(Path(scratch_override).expanduser().resolve())

    return PipelineConfig.model_validate({**data, "raw": data})
