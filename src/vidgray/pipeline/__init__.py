"""帧流水线：采样计划、视频源、渲染目标、暂存目录与编码器。"""

from .encoder import FFmpegEncoder
from .errors import (
    EncodeFailedError,
    EncoderUnavailableError,
    NoFramesError,
    OutputMissingError,
    PipelineBusyError,
    PipelineCancelledError,
    PipelineError,
    VideoOpenError,
)
from .plan import SamplePlan
from .render import NumpyRenderTarget, RenderTarget, create_render_target, encode_png, grayscale_rgba
from .runner import CancelToken, FramePipeline
from .scratch import ScratchSpace
from .source import FrameSource, SeekResult, VideoSource, probe_video

__all__ = [
    "CancelToken",
    "EncodeFailedError",
    "EncoderUnavailableError",
    "FFmpegEncoder",
    "FramePipeline",
    "FrameSource",
    "NoFramesError",
    "NumpyRenderTarget",
    "OutputMissingError",
    "PipelineBusyError",
    "PipelineCancelledError",
    "PipelineError",
    "RenderTarget",
    "SamplePlan",
    "ScratchSpace",
    "SeekResult",
    "VideoOpenError",
    "VideoSource",
    "create_render_target",
    "encode_png",
    "grayscale_rgba",
    "probe_video",
]
