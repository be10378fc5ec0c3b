"""
数据模型包
"""

from .session import TherapySession, Sentiment

__all__ = [
    "TherapySession",
    "Sentiment"
]
