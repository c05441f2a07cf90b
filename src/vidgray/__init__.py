"""vidgray：视频按固定频率采样、逐帧灰度处理后用 ffmpeg 重新编码。"""

__version__ = "0.1.0"
