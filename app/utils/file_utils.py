"""
文件处理工具函数
"""

import time
from pathlib import Path
from typing import Optional


def generate_unique_filename(original_filename: str, timestamp_ms: Optional[int] = None) -> str:
    """
    生成带时间戳的唯一文件名

    保留原始文件名主体和扩展名，在两者之间插入毫秒级时间戳，
    例如 ``session.mp3`` -> ``session_1718000000000.mp3``。

    Args:
        original_filename: 原始文件名
        timestamp_ms: 毫秒时间戳，默认取当前时间

    Returns:
        str: 唯一文件名
    """
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)

    # 只保留文件名部分，丢弃客户端传来的目录
    name = Path(original_filename.replace("\\", "/")).name or "recording"
    path = Path(name)
    stem = path.stem or "recording"
    suffix = path.suffix

    return f"{stem}_{timestamp_ms}{suffix}"


def get_file_extension(filename: str) -> str:
    """获取小写扩展名(含点号)"""
    return Path(filename or "").suffix.lower()
