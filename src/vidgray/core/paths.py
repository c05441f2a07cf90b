"""路径工具：集中处理临时工作区目录，方便未来迁移。"""

from __future__ import annotations

import os
from pathlib import Path


SCRATCH_ENV_KEY = "VIDGRAY_SCRATCH_ROOT"


def resolve_scratch_root(default: Path | None = None) -> Path:
    """根据环境变量或默认值确定帧暂存根目录。"""

    env_value = os.getenv(SCRATCH_ENV_KEY)
    if env_value:
        return Path(env_value).expanduser().resolve()
    if default is not None:
        return default.expanduser().resolve()
    # 默认回退到仓库内的 workspace/scratch 目录
    return Path(__file__).resolve().parents[3] / "workspace" / "scratch"
