"""
首页信息流服务层

封装首页、发布页和详情页用到的业务流程：
1. 发布：表单校验 -> 图片永久化 -> 生成帖子 -> 写入集合头部
2. 加载信息流：读取全部帖子并解析图片引用
3. 搜索与刷新：标题子串过滤、随机重排
"""

import random
from typing import List, Optional, Sequence

from pinkbook.models.post import Post, PublishResult
from pinkbook.repositories.image_repository import ImageRepository
from pinkbook.repositories.post_repository import PostRepository

DEFAULT_TITLE = "新发布"

MSG_EMPTY_POST = "请输入标题、内容或添加图片"
MSG_PUBLISH_FAILED = "发布失败，请重试"


def search(posts: Sequence[Post], query: str) -> List[Post]:
    """
    按标题过滤帖子（不区分大小写的子串匹配）

    Args:
        posts: 待过滤的帖子
        query: 搜索词，空白时返回全部

    Returns:
        匹配的帖子，保持原顺序
    """
    needle = (query or "").strip().lower()
    if not needle:
        return list(posts)
    return [post for post in posts if needle in post.title.lower()]


def shuffle(posts: Sequence[Post], rng: Optional[random.Random] = None) -> List[Post]:
    """下拉刷新时的随机重排，返回新列表"""
    shuffled = list(posts)
    (rng or random).shuffle(shuffled)
    return shuffled


class FeedService:
    """
    信息流服务类

    使用示例：
        service = FeedService(posts=post_repo, images=image_repo)
        result = await service.publish("标题", "正文", ["/tmp/picked.jpg"])
        feed = await service.load_feed()
    """

    def __init__(self, posts: PostRepository, images: ImageRepository):
        self.posts = posts
        self.images = images

    async def _render(self, post: Post) -> Post:
        """返回图片引用已解析的副本，存储中的引用保持不变"""
        if not post.images:
            return post
        return post.model_copy(update={"images": await self.images.resolve_all(post.images)})

    async def publish(
        self,
        title: str,
        text: str,
        images: Optional[List[str]] = None
    ) -> PublishResult:
        """
        发布新帖子

        流程：
        1. 标题、正文、图片至少有一项
        2. 图片先写入永久存储
        3. 在 posts 锁内生成 id 并插入集合头部
        4. 返回图片已解析、可直接渲染的帖子

        Args:
            title: 标题（为空时使用默认标题）
            text: 正文
            images: 图片选择器给出的临时 URI 列表

        Returns:
            PublishResult
        """
        images = images or []
        if not (title or "").strip() and not (text or "").strip() and not images:
            return PublishResult(accepted=False, reason=MSG_EMPTY_POST)

        permanent_images = await self.images.persist_all(images) if images else []
        print(f"[FeedService] 永久存储后的图片: {permanent_images}")

        post = Post(
            id=0,  # 写入时在锁内分配
            title=title or DEFAULT_TITLE,
            summary=text or "",
            images=permanent_images
        )
        if not await self.posts.add(post, assign_id=True):
            return PublishResult(accepted=False, reason=MSG_PUBLISH_FAILED)

        return PublishResult(accepted=True, post=await self._render(post))

    async def load_feed(self) -> List[Post]:
        """读取全部帖子（最新在前），图片引用已解析"""
        return [await self._render(post) for post in await self.posts.list_all()]

    async def get_post(self, post_id: int) -> Optional[Post]:
        """详情页：按 id 获取帖子，图片引用已解析"""
        post = await self.posts.get_by_id(post_id)
        if post is None:
            return None
        return await self._render(post)

    async def search_feed(self, query: str) -> List[Post]:
        """加载信息流并按标题过滤"""
        return search(await self.load_feed(), query)
