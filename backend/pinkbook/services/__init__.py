"""
服务层模块
提供界面控制层调用的业务流程，封装 Repository 组合
"""

from .context import StorageContext
from .feed_service import FeedService, search, shuffle
from .profile_service import ProfileService

__all__ = [
    "StorageContext",
    "FeedService", "search", "shuffle",
    "ProfileService"
]
