"""日志初始化。"""

from __future__ import annotations

import logging
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler


def setup_logging(level: int = logging.INFO, console: Optional[Console] = None) -> None:
    """初始化项目日志配置。

    传入 rich Console 时使用 RichHandler，使日志与进度条共享同一输出。
    """

    if console is None:
        logging.basicConfig(
            level=level,
            format="%(asctime)s [%(processName)s] %(levelname)s %(name)s: %(message)s",
        )
        return

    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )
