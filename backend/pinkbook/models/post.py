"""
帖子模型
对应存储键 posts 中数组的单个元素
"""

from typing import List, Optional

from pydantic import BaseModel, Field


class Post(BaseModel):
    """
    帖子记录

    id 为发布时刻的毫秒时间戳，作为列表操作（去重、渲染 key）的主键；
    images 为图片引用列表，没有图片时序列化会省略该字段
    """
    id: int
    title: str = ""
    summary: str = Field(default="", description="正文")
    images: Optional[List[str]] = None

    def to_record(self) -> dict:
        """转换为写入存储的字典（省略空的 images）"""
        return self.model_dump(exclude_none=True)


class PublishResult(BaseModel):
    """发布结果"""
    accepted: bool
    reason: str = ""
    post: Optional[Post] = None
