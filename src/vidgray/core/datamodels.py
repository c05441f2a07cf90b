"""核心数据结构定义，覆盖源视频、编码帧与输出产物。"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional


@dataclass(frozen=True, slots=True)
class SourceMedia:
    """已加载的源视频句柄；宽高未知时为 0，重新加载时整体替换。"""

    path: Path
    duration: float
    width: int = 0
    height: int = 0
    fps: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "path": str(self.path),
            "duration": self.duration,
            "width": self.width,
            "height": self.height,
            "fps": self.fps,
        }


@dataclass(frozen=True, slots=True)
class EncodedFrame:
    """写入暂存区的单帧 PNG，按零填充序号命名，写入后不再修改。"""

    index: int
    timestamp: float
    size_bytes: int
    stale: bool = False

    @property
    def filename(self) -> str:
        return frame_filename(self.index)


@dataclass(frozen=True, slots=True)
class OutputArtifact:
    """编码器产出的 MP4，读取一次后交给调用方保存。"""

    name: str
    data: bytes = field(repr=False)

    @property
    def size_bytes(self) -> int:
        return len(self.data)

    def save(self, target: Path) -> Path:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(self.data)
        return target


@dataclass(slots=True)
class RunReport:
    """单次运行的统计：计划帧数、成功写入、丢弃与过期帧。"""

    planned: int
    frames: List[EncodedFrame] = field(default_factory=list)
    dropped: List[int] = field(default_factory=list)
    stale: List[int] = field(default_factory=list)
    artifact: Optional[OutputArtifact] = None

    @property
    def written(self) -> int:
        return len(self.frames)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "planned": self.planned,
            "written": self.written,
            "dropped": list(self.dropped),
            "stale": list(self.stale),
            "output": self.artifact.name if self.artifact else None,
            "output_bytes": self.artifact.size_bytes if self.artifact else 0,
        }


def frame_filename(index: int) -> str:
    """帧文件命名规则：frame00000.png 起始，五位零填充。"""

    if index < 0:
        raise ValueError("frame index must not be negative")
    return f"frame{index:05d}.png"
