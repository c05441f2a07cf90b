"""核心模块入口，聚合数据模型与配置加载工具供流水线复用。"""

from .datamodels import EncodedFrame, OutputArtifact, RunReport, SourceMedia, frame_filename
from .config import PipelineConfig, load_config
from .logging_utils import get_logger, log_phase, setup_logging
from .paths import resolve_scratch_root

__all__ = [
    "EncodedFrame",
    "OutputArtifact",
    "RunReport",
    "SourceMedia",
    "frame_filename",
    "PipelineConfig",
    "load_config",
    "get_logger",
    "log_phase",
    "setup_logging",
    "resolve_scratch_root",
]
