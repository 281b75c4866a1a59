"""
个人资料模型
对应存储键 user_profile，全局单例，不按用户区分
"""

from typing import Optional

from pydantic import BaseModel

DEFAULT_NICKNAME = "小粉书用户"
DEFAULT_BIO = "这个人很懒，还没有写个性签名"


class UserProfile(BaseModel):
    """
    本机唯一的个人资料

    avatar 为图片引用（可能是临时 URI、永久路径或 web 图片键），
    读取时由 ImageRepository.resolve 转换为可渲染的 URI
    """
    avatar: Optional[str] = None
    nickname: str = DEFAULT_NICKNAME
    bio: str = DEFAULT_BIO

    def to_record(self) -> dict:
        """转换为写入存储的字典（没有头像时省略 avatar）"""
        return self.model_dump(exclude_none=True)

    @classmethod
    def default(cls) -> "UserProfile":
        """首次读取时使用的默认资料"""
        return cls()


class ProfileUpdateResult(BaseModel):
    """资料编辑结果"""
    accepted: bool
    reason: str = ""
    profile: Optional[UserProfile] = None
