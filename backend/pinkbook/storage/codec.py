"""
JSON 编解码

解析结果以 ParseResult 返回而不是直接抛异常，
“解析失败视为空数据”的策略由各仓储显式决定。
"""

import json
from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel, TypeAdapter, ValidationError

from pinkbook.models.base import JSON_DUMP_KWARGS

from .errors import ParseError

T = TypeVar("T")

_MAPPING_ADAPTER = TypeAdapter(dict[str, str])


class ParseResult(BaseModel, Generic[T]):
    """
    解析结果

    - ok=True 时 value 有效
    - ok=False 时 error 说明失败原因
    - missing=True 表示存储中根本没有该键（与“数据损坏”区分）
    """
    model_config = {"arbitrary_types_allowed": True}

    ok: bool
    value: Optional[T] = None
    error: Optional[ParseError] = None
    missing: bool = False

    def unwrap_or(self, default: T) -> T:
        """成功返回 value，否则返回 default"""
        return self.value if self.ok else default


def parse(raw: Optional[str], adapter: TypeAdapter) -> ParseResult:
    """
    将存储中的原始字符串解析为目标类型

    Args:
        raw: 存储中读出的字符串，None 或空串表示不存在
        adapter: 目标类型的 TypeAdapter，例如 TypeAdapter(List[Post])

    Returns:
        ParseResult
    """
    if not raw:
        return ParseResult(ok=False, missing=True)
    try:
        value = adapter.validate_json(raw)
    except ValidationError as e:
        return ParseResult(ok=False, error=ParseError(f"结构不符: {e.error_count()} 处错误"))
    return ParseResult(ok=True, value=value)


def dumps(data: Any) -> str:
    """按原应用的格式序列化（紧凑、保留中文）"""
    return json.dumps(data, **JSON_DUMP_KWARGS)


def load_mapping(raw: Optional[str]) -> ParseResult:
    """解析 image_mapping 表（字符串 -> 字符串）"""
    return parse(raw, _MAPPING_ADAPTER)

