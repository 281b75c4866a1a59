"""
个人主页服务层

封装个人主页与资料编辑页的流程：
1. 加载资料和“我的帖子”，图片引用已解析
2. 编辑资料：昵称校验 -> 新头像永久化 -> 整体保存
"""

from typing import List, Optional, Tuple

from pinkbook.models.post import Post
from pinkbook.models.profile import ProfileUpdateResult, UserProfile
from pinkbook.repositories.image_repository import ImageRepository
from pinkbook.repositories.profile_repository import ProfileStore

MSG_EMPTY_NICKNAME = "昵称不能为空"
MSG_SAVE_FAILED = "保存失败，请重试"


class ProfileService:
    """个人主页服务类"""

    def __init__(self, profiles: ProfileStore, images: ImageRepository):
        self.profiles = profiles
        self.images = images

    async def load_profile_page(self) -> Tuple[UserProfile, List[Post]]:
        """
        加载个人主页数据

        Returns:
            (资料, 我的帖子)，帖子中的图片引用已解析
        """
        profile = await self.profiles.get()
        posts = []
        for post in await self.profiles.list_owned_posts():
            if post.images:
                post = post.model_copy(update={"images": await self.images.resolve_all(post.images)})
            posts.append(post)
        return profile, posts

    async def update_profile(
        self,
        nickname: str,
        bio: str,
        avatar: Optional[str] = None
    ) -> ProfileUpdateResult:
        """
        保存编辑后的资料

        Args:
            nickname: 昵称（去除首尾空白后不能为空）
            bio: 个性签名
            avatar: 新头像的图片引用（临时 URI 或已有的永久引用）

        Returns:
            ProfileUpdateResult
        """
        if not (nickname or "").strip():
            return ProfileUpdateResult(accepted=False, reason=MSG_EMPTY_NICKNAME)

        permanent_avatar = await self.images.persist(avatar) if avatar else None

        profile = UserProfile(
            avatar=permanent_avatar or None,
            nickname=nickname.strip(),
            bio=(bio or "").strip()
        )
        if not await self.profiles.save(profile):
            return ProfileUpdateResult(accepted=False, reason=MSG_SAVE_FAILED)
        return ProfileUpdateResult(accepted=True, profile=profile)
