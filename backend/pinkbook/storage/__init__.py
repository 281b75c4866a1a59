"""
存储模块
提供键值存储、JSON 编解码和存储层异常
"""

from .kv_store import KeyValueStore
from .codec import ParseResult, parse, dumps, load_mapping
from .errors import StorageError, ParseError, ImageSourceError

__all__ = [
    "KeyValueStore",
    "ParseResult", "parse", "dumps", "load_mapping",
    "StorageError", "ParseError", "ImageSourceError"
]
