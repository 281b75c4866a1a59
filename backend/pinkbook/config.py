"""存储配置模块

从可选的 JSON 配置文件和系统环境变量加载存储层配置。
配置错误在加载时直接抛出；只有运行期的存储错误才会被降级处理。
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, Field, ValidationError

# backend/ 目录，相对路径都从这里解析
BACKEND_ROOT = Path(__file__).parent.parent

DEFAULT_CONFIG_PATH = BACKEND_ROOT / "storage_config.json"

# 环境变量 -> 配置字段
ENV_OVERRIDES = {
    "PINKBOOK_PLATFORM": "platform",
    "PINKBOOK_IMAGE_DIR": "image_dir",
    "PINKBOOK_IO_TIMEOUT": "io_timeout",
    "PINKBOOK_JPEG_QUALITY": "jpeg_quality",
}

PLATFORM_NATIVE = "native"
PLATFORM_WEB = "web"


class StorageConfig(BaseModel):
    """
    存储层配置

    - platform: native 表示有可寻址的文件系统，web 表示浏览器环境（图片转为 data URI 存入键值存储）
    - image_dir: native 平台保存图片副本的目录
    - io_timeout: 单次存储调用的超时秒数，None 表示不限制
    - jpeg_quality: web 平台重新编码 JPEG 时的质量
    """
    platform: Literal["native", "web"] = PLATFORM_NATIVE
    image_dir: Path = Field(default_factory=lambda: BACKEND_ROOT / "images")
    io_timeout: Optional[float] = Field(default=10.0, ge=0)
    jpeg_quality: int = Field(default=80, ge=1, le=95)

    @property
    def is_web(self) -> bool:
        return self.platform == PLATFORM_WEB

    def resolved_image_dir(self) -> Path:
        """返回绝对路径形式的图片目录"""
        if self.image_dir.is_absolute():
            return self.image_dir
        return BACKEND_ROOT / self.image_dir

    def effective_timeout(self) -> Optional[float]:
        """0 与 None 都视为不限制"""
        return self.io_timeout or None


def _load_file(config_path: Path) -> Dict[str, Any]:
    """加载 JSON 配置文件，文件不存在时返回空配置

    Raises:
        ValueError: JSON 格式错误或顶层不是对象
    """
    if not config_path.exists():
        return {}
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ValueError(f"配置文件 JSON 格式错误: {config_path}: {e}") from e
    if not isinstance(data, dict):
        raise ValueError(f"配置文件顶层必须是对象: {config_path}")
    return data


def load_config(config_path: Optional[str] = None) -> StorageConfig:
    """加载存储配置

    优先级：环境变量 > 配置文件 > 默认值

    Args:
        config_path: 配置文件路径，为 None 时使用 backend/storage_config.json

    Returns:
        StorageConfig 实例

    Raises:
        ValueError: 配置文件或环境变量的值不合法
    """
    path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH
    values = _load_file(path)

    for env_key, field_name in ENV_OVERRIDES.items():
        raw = os.getenv(env_key)
        if raw is None or raw == "":
            continue
        values[field_name] = raw

    try:
        return StorageConfig(**values)
    except ValidationError as e:
        raise ValueError(f"存储配置不合法: {e}") from e
