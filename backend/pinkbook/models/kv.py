"""
键值存储表模型
KeyValueStore 的唯一物理表，所有集合都以整块 JSON 字符串存放于此
"""

from sqlmodel import Field, Column
from sqlalchemy import Text

from .base import TimestampModel


class KeyValueEntry(TimestampModel, table=True):
    """
    键值对表
    key 为稳定的存储键（users / posts / user_profile / image_mapping / 生成的图片键），
    value 为原样字符串（JSON 或 data URI）
    """
    __tablename__ = "kv_store"

    # 主键即存储键，值需逐字节保持以兼容旧数据
    key: str = Field(primary_key=True)

    # data URI 可能很大，使用 Text 列
    value: str = Field(sa_column=Column(Text, nullable=False))
