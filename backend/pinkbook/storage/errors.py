"""
存储层异常
这些异常只在存储层内部流动，仓储层捕获后降级处理，不会抛给调用方
"""


class StorageError(Exception):
    """键值存储读写失败或超时"""


class ParseError(Exception):
    """存储的 JSON 无法解析，或结构与预期不符"""


class ImageSourceError(Exception):
    """图片源不存在、不可读或无法解码"""
