"""单次运行独享的帧暂存目录，充当编码器的输入/输出文件空间。"""

from __future__ import annotations

import asyncio
from pathlib import Path
import re
import shutil
from typing import List
import uuid

from vidgray.core import frame_filename, get_logger

logger = get_logger(__name__)

FRAME_NAME_RE = re.compile(r"^frame\d{5}\.png$")


class ScratchSpace:
    """每次运行创建 run-<uuid> 子目录，运行之间互不干扰。"""

    def __init__(self, root: Path) -> None:
        self.root = root

    @classmethod
    def create(cls, scratch_root: Path) -> "ScratchSpace":
        path = scratch_root / f"run-{uuid.uuid4().hex}"
        path.mkdir(parents=True, exist_ok=False)
        logger.debug("created scratch space %s", path)
        return cls(path)

    def path_for(self, name: str) -> Path:
        return self.root / name

    def write_file(self, name: str, data: bytes) -> Path:
        """先写临时文件再替换，保证文件名出现时内容完整。"""

        target = self.path_for(name)
        tmp_path = target.with_name(f".{target.name}.tmp")
        tmp_path.write_bytes(data)
        tmp_path.replace(target)
        return target

    async def write_frame(self, index: int, data: bytes) -> Path:
        return await asyncio.to_thread(self.write_file, frame_filename(index), data)

    def list_files(self) -> List[str]:
        if not self.root.exists():
            return []
        return sorted(path.name for path in self.root.iterdir() if path.is_file())

    def frame_files(self) -> List[str]:
        return [name for name in self.list_files() if FRAME_NAME_RE.match(name)]

    def compact_frames(self) -> int:
        """把帧文件重排为从 0 开始的连续序号，返回帧数。"""

        frames = self.frame_files()
        for new_index, name in enumerate(frames):
            target = frame_filename(new_index)
            if name != target:
                # 已排序且 new_index 不大于原序号，重命名不会覆盖未处理文件
                self.path_for(name).rename(self.path_for(target))
        return len(frames)

    def read_file(self, name: str) -> bytes:
        return self.path_for(name).read_bytes()

    def cleanup(self) -> None:
        shutil.rmtree(self.root, ignore_errors=True)
