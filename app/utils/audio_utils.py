"""
音频处理工具函数
"""

import io
import os
import asyncio
import tempfile
import mimetypes
import wave
from typing import Optional

from app.core.exceptions import ValidationException
from app.core.logging import audio_logger
from app.utils.file_utils import get_file_extension


# MIME类型到扩展名的映射，用于为临时文件选择后缀
MIME_EXTENSIONS = {
    "audio/mpeg": ".mp3",
    "audio/mp3": ".mp3",
    "audio/wav": ".wav",
    "audio/x-wav": ".wav",
    "audio/wave": ".wav",
    "audio/m4a": ".m4a",
    "audio/x-m4a": ".m4a",
    "audio/mp4": ".m4a",
    "audio/ogg": ".ogg",
    "audio/webm": ".webm",
}


def format_megabytes(size: int) -> str:
    """字节数格式化为MB"""
    return f"{size / (1024 * 1024):.2f}MB"


def validate_audio_upload(
    file_content: bytes,
    filename: str,
    mime_type: Optional[str],
    max_size: int,
    allowed_types: list,
    allowed_extensions: list
) -> None:
    """
    验证上传的音频文件

    只做本地检查，不发起任何远程调用。

    Raises:
        ValidationException: 文件为空、过大或类型不支持
    """
    if not file_content:
        raise ValidationException("Uploaded file is empty")

    if len(file_content) > max_size:
        raise ValidationException(
            f"File size exceeds the maximum limit of {max_size // (1024 * 1024)}MB. "
            f"Your file is {format_megabytes(len(file_content))}"
        )

    extension = get_file_extension(filename)
    normalized_type = (mime_type or "").split(";")[0].strip().lower()

    if normalized_type not in allowed_types and extension not in allowed_extensions:
        raise ValidationException(
            "Unsupported audio file. Please upload a valid audio file "
            f"({', '.join(ext.lstrip('.').upper() for ext in allowed_extensions)})"
        )


def _guess_suffix(filename: str, mime_type: Optional[str]) -> str:
    """为临时文件挑选扩展名"""
    extension = get_file_extension(filename)
    if extension:
        return extension
    normalized_type = (mime_type or "").split(";")[0].strip().lower()
    return MIME_EXTENSIONS.get(normalized_type) or mimetypes.guess_extension(normalized_type) or ""


def _wav_duration(file_content: bytes) -> Optional[float]:
    """使用wave库读取WAV时长"""
    try:
        with wave.open(io.BytesIO(file_content), "rb") as wav_file:
            frames = wav_file.getnframes()
            rate = wav_file.getframerate()
            if rate <= 0:
                return None
            return frames / float(rate)
    except (wave.Error, EOFError):
        return None


async def _ffprobe_duration(file_path: str) -> Optional[float]:
    """使用ffprobe获取音频时长"""
    cmd = [
        "ffprobe",
        "-v", "quiet",
        "-show_entries", "format=duration",
        "-of", "csv=p=0",
        file_path
    ]

    try:
        process = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE
        )
    except FileNotFoundError:
        audio_logger.warning("未找到ffprobe，跳过时长探测")
        return None

    stdout, _ = await process.communicate()
    if process.returncode != 0:
        return None

    try:
        return float(stdout.decode().strip())
    except ValueError:
        return None


async def get_audio_duration(file_content: bytes, mime_type: Optional[str] = None, filename: str = "") -> float:
    """
    获取音频时长(秒)

    先把内容写入临时文件交给ffprobe，失败时对WAV回退到wave库。
    任何失败都返回 0.0，不会中断上传流程。

    Args:
        file_content: 音频字节
        mime_type: MIME类型
        filename: 原始文件名，用于推断格式

    Returns:
        float: 音频时长(秒)
    """
    suffix = _guess_suffix(filename, mime_type)
    tmp_path = None

    try:
        with tempfile.NamedTemporaryFile(suffix=suffix, delete=False) as tmp:
            tmp.write(file_content)
            tmp_path = tmp.name

        duration = await _ffprobe_duration(tmp_path)
        if duration is None and suffix == ".wav":
            duration = _wav_duration(file_content)

        if duration is None:
            audio_logger.warning(f"无法获取音频时长: {filename or mime_type}")
            return 0.0

        return round(duration, 2)

    except OSError as e:
        audio_logger.warning(f"获取音频时长失败: {e}")
        return 0.0
    finally:
        if tmp_path and os.path.exists(tmp_path):
            os.unlink(tmp_path)
