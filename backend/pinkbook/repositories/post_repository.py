"""
帖子 Repository
提供 posts 集合的读取、整体覆盖和新增操作
"""

import time
from typing import List, Optional

from pydantic import TypeAdapter

from pinkbook.models.post import Post
from pinkbook.storage import KeyValueStore, StorageError, dumps, parse

POSTS_KEY = "posts"

_POSTS_ADAPTER = TypeAdapter(List[Post])


def next_post_id(posts: List[Post]) -> int:
    """毫秒时间戳；同一毫秒内连续发布时保证比当前最新帖子大"""
    now = int(time.time() * 1000)
    if posts:
        return max(now, posts[0].id + 1)
    return now


class PostRepository:
    """
    帖子数据访问对象
    posts 以最新在前的顺序整体保存，这个顺序本身就是持久化约定
    """

    def __init__(self, store: KeyValueStore):
        """
        初始化 Repository

        Args:
            store: 键值存储
        """
        self.store = store

    async def _read(self) -> List[Post]:
        """
        读取并解析帖子集合

        Raises:
            StorageError: 存储读取失败
        """
        raw = await self.store.get_item(POSTS_KEY)
        result = parse(raw, _POSTS_ADAPTER)
        if result.error:
            print(f"[PostRepository Error] posts 数据损坏，按空列表处理: {result.error}")
        return result.unwrap_or([])

    async def list_all(self) -> List[Post]:
        """
        获取全部帖子（最新在前）

        Returns:
            帖子列表，数据缺失、损坏或读取失败时返回空列表
        """
        try:
            return await self._read()
        except StorageError as e:
            print(f"[PostRepository Error] 读取帖子失败: {e}")
            return []

    async def save_all(self, posts: List[Post]) -> bool:
        """
        整体覆盖帖子集合

        Args:
            posts: 完整的帖子列表

        Returns:
            写入成功返回 True
        """
        try:
            await self.store.set_item(POSTS_KEY, dumps([post.to_record() for post in posts]))
            return True
        except StorageError as e:
            print(f"[PostRepository Error] 保存帖子失败: {e}")
            return False

    async def add(self, post: Post, assign_id: bool = False) -> bool:
        """
        新增帖子，插入到集合头部

        在 posts 键锁内完成读取-插入-写回，同一进程内的并发发布不会互相覆盖

        Args:
            post: 新帖子
            assign_id: 为 True 时在锁内根据当前最新帖子生成 id 并写回 post.id

        Returns:
            写入成功返回 True
        """
        try:
            async with self.store.locked(POSTS_KEY):
                posts = await self._read()
                if assign_id:
                    post.id = next_post_id(posts)
                posts.insert(0, post)
                return await self.save_all(posts)
        except StorageError as e:
            print(f"[PostRepository Error] 读取帖子失败，放弃新增: {e}")
            return False

    async def get_by_id(self, post_id: int) -> Optional[Post]:
        """
        根据 ID 获取帖子

        Args:
            post_id: 帖子 ID（发布时间戳）

        Returns:
            Post 对象，不存在则返回 None
        """
        for post in await self.list_all():
            if post.id == post_id:
                return post
        return None
