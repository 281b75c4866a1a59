"""
个人资料 Repository
提供 user_profile 单例记录的读取与保存
"""

from typing import List

from pydantic import TypeAdapter

from pinkbook.models.post import Post
from pinkbook.models.profile import UserProfile
from pinkbook.storage import KeyValueStore, StorageError, dumps, parse

from .image_repository import ImageRepository
from .post_repository import PostRepository

PROFILE_KEY = "user_profile"

_PROFILE_ADAPTER = TypeAdapter(UserProfile)


class ProfileStore:
    """
    个人资料数据访问对象

    整个安装只有一份资料，不按登录用户区分；
    “我的帖子”目前就是全部帖子，没有按作者过滤
    """

    def __init__(
        self,
        store: KeyValueStore,
        images: ImageRepository,
        posts: PostRepository
    ):
        """
        初始化 Repository

        Args:
            store: 键值存储
            images: 用于解析头像引用
            posts: 用于读取“我的帖子”
        """
        self.store = store
        self.images = images
        self.posts = posts

    async def get(self) -> UserProfile:
        """
        获取个人资料

        存在时把 avatar 解析为可渲染的 URI 后返回；
        不存在、损坏或读取失败时返回默认资料

        Returns:
            UserProfile 对象
        """
        try:
            raw = await self.store.get_item(PROFILE_KEY)
        except StorageError as e:
            print(f"[ProfileStore Error] 获取用户资料失败: {e}")
            return UserProfile.default()

        result = parse(raw, _PROFILE_ADAPTER)
        if not result.ok:
            if result.error:
                print(f"[ProfileStore Error] 用户资料损坏，使用默认资料: {result.error}")
            return UserProfile.default()

        profile = result.value
        if profile.avatar:
            profile.avatar = await self.images.resolve(profile.avatar) or None
        return profile

    async def save(self, profile: UserProfile) -> bool:
        """
        整体覆盖个人资料

        不会自动持久化头像；调用方需要先用 ImageRepository.persist 处理新头像

        Args:
            profile: 新的资料

        Returns:
            写入成功返回 True
        """
        try:
            print(f"[ProfileStore] 保存用户资料: {profile.nickname}")
            await self.store.set_item(PROFILE_KEY, dumps(profile.to_record()))
            return True
        except StorageError as e:
            print(f"[ProfileStore Error] 保存用户资料失败: {e}")
            return False

    async def list_owned_posts(self) -> List[Post]:
        """
        获取“我的帖子”

        Returns:
            与 PostRepository.list_all() 相同的列表
        """
        return await self.posts.list_all()
