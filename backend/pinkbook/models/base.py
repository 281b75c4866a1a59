"""
基础模型模块
提供存储表共用的时间戳基类，以及 JSON 记录的序列化约定
"""

from datetime import datetime, timezone
from typing import Optional

from sqlmodel import SQLModel, Field

# 与原应用 JSON.stringify 输出保持一致：紧凑、不转义中文
JSON_DUMP_KWARGS = {"ensure_ascii": False, "separators": (",", ":")}


class TimestampModel(SQLModel):
    """时间戳基类，为存储表提供 created_at 和 updated_at 字段

    使用 timezone-aware datetime 替代已弃用的 utcnow()
    """
    created_at: Optional[datetime] = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        nullable=False
    )
    updated_at: Optional[datetime] = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        nullable=False,
        sa_column_kwargs={"onupdate": lambda: datetime.now(timezone.utc)}
    )
