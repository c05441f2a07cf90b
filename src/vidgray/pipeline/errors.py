"""流水线异常层级；CLI 入口统一捕获 PipelineError 并输出简短原因。"""

from __future__ import annotations


class PipelineError(RuntimeError):
    """所有致命流水线错误的基类。"""


class VideoOpenError(PipelineError):
    """视频无法打开时抛出的异常。"""


class EncoderUnavailableError(PipelineError):
    """编码器初始化失败（ffmpeg 不可用），在采样开始前中止。"""


class NoFramesError(PipelineError):
    def __init__(self, message: str = "no frames produced") -> None:
        super().__init__(message)


class OutputMissingError(PipelineError):
    def __init__(self, message: str = "output not generated") -> None:
        super().__init__(message)


class EncodeFailedError(PipelineError):
    """ffmpeg 返回非零状态。"""


class PipelineBusyError(PipelineError):
    def __init__(self, message: str = "pipeline is already running") -> None:
        super().__init__(message)


class PipelineCancelledError(PipelineError):
    def __init__(self, message: str = "run cancelled") -> None:
        super().__init__(message)
