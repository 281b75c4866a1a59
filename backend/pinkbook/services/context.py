"""
存储上下文

按配置一次性组装键值存储、各 Repository 和服务，
供界面控制层使用，避免模块级的全局状态。
"""

from typing import Optional

from pinkbook.config import StorageConfig, load_config
from pinkbook.db.init_db import create_tables, get_engine
from pinkbook.repositories import ImageRepository, PostRepository, ProfileStore, UserDirectory
from pinkbook.storage import KeyValueStore

from .feed_service import FeedService
from .profile_service import ProfileService


class StorageContext:
    """
    存储上下文

    使用示例：
        ctx = StorageContext.open()
        result = await ctx.users.register(User(email="a@x.com", phone="1", password="pw"))
        feed = await ctx.feed.load_feed()
    """

    def __init__(self, engine, config: StorageConfig):
        """
        组装所有组件

        Args:
            engine: 表已创建的数据库引擎
            config: 存储配置
        """
        self.engine = engine
        self.config = config
        self.store = KeyValueStore(engine, timeout=config.effective_timeout())

        self.images = ImageRepository(self.store, config)
        self.posts = PostRepository(self.store)
        self.users = UserDirectory(self.store)
        self.profiles = ProfileStore(self.store, self.images, self.posts)

        self.feed = FeedService(self.posts, self.images)
        self.profile_page = ProfileService(self.profiles, self.images)

    @classmethod
    def open(
        cls,
        config: Optional[StorageConfig] = None,
        database_url: Optional[str] = None
    ) -> "StorageContext":
        """
        按配置创建引擎和表结构，返回上下文

        Args:
            config: 存储配置，为 None 时通过 load_config() 加载
            database_url: 数据库 URL，为 None 时使用 DATABASE_PATH
        """
        config = config or load_config()
        engine = get_engine(database_url)
        create_tables(engine)
        print(f"[StorageContext] 存储就绪: platform={config.platform}")
        return cls(engine, config)
