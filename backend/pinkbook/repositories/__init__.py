"""
Repository (DAO) 模块
提供键值存储之上的数据访问抽象，封装整块读取-修改-写回逻辑
"""

from .image_repository import ImageRepository
from .post_repository import PostRepository
from .profile_repository import ProfileStore
from .user_repository import UserDirectory

__all__ = [
    "ImageRepository",
    "PostRepository",
    "ProfileStore",
    "UserDirectory"
]
