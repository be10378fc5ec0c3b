"""
工具函数包
"""

from .audio_utils import (
    get_audio_duration,
    validate_audio_upload,
    format_megabytes
)

from .file_utils import (
    generate_unique_filename,
    get_file_extension
)

__all__ = [
    "get_audio_duration",
    "validate_audio_upload",
    "format_megabytes",
    "generate_unique_filename",
    "get_file_extension"
]
