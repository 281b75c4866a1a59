"""
数据模型模块
导出存储表模型与 JSON 记录模型
"""

# 存储表
from .kv import KeyValueEntry

# 记录模型
from .user import User, AuthResult
from .post import Post, PublishResult
from .profile import UserProfile, ProfileUpdateResult, DEFAULT_NICKNAME, DEFAULT_BIO

# 基础模型
from .base import TimestampModel, JSON_DUMP_KWARGS

# 定义导出的内容
__all__ = [
    # 存储表
    "KeyValueEntry",
    # 记录
    "User", "AuthResult",
    "Post", "PublishResult",
    "UserProfile", "ProfileUpdateResult", "DEFAULT_NICKNAME", "DEFAULT_BIO",
    # 基础模型
    "TimestampModel", "JSON_DUMP_KWARGS"
]
