"""
数据库初始化脚本
负责创建键值存储表以及本地图片目录
"""

import os
from typing import Optional

from sqlmodel import SQLModel, create_engine

from pinkbook.config import BACKEND_ROOT, StorageConfig, load_config
from pinkbook.models.kv import KeyValueEntry  # noqa: F401  注册表结构到 metadata


def get_database_url() -> str:
    """
    获取数据库连接 URL
    优先使用环境变量，否则使用默认的 SQLite 文件
    """
    db_path = os.environ.get("DATABASE_PATH", "pinkbook.db")
    # 确保路径是绝对路径
    if not os.path.isabs(db_path):
        # 从 backend 目录解析
        db_path = str(BACKEND_ROOT / db_path)
    return f"sqlite:///{db_path}"


def get_engine(database_url: Optional[str] = None):
    """
    创建并返回数据库引擎
    """
    engine = create_engine(
        database_url or get_database_url(),
        echo=False,  # 设置为 True 可查看 SQL 语句
        connect_args={"check_same_thread": False}  # 存储调用在工作线程中执行
    )
    return engine


def create_tables(engine) -> None:
    """
    创建所有数据库表
    SQLModel 会自动根据模型创建表结构
    """
    SQLModel.metadata.create_all(engine)
    print(f"Database tables created successfully at {engine.url}")


def ensure_image_dir(config: StorageConfig) -> None:
    """
    native 平台下创建图片目录，已存在视为成功
    web 平台没有文件系统，直接跳过
    """
    if config.is_web:
        print("Platform 'web': image directory not needed")
        return
    image_dir = config.resolved_image_dir()
    image_dir.mkdir(parents=True, exist_ok=True)
    print(f"Image directory ready at {image_dir}")


def init_db(config: Optional[StorageConfig] = None):
    """
    完整的初始化流程
    1. 创建数据库引擎
    2. 创建表结构
    3. 准备图片目录

    Returns:
        创建好的引擎
    """
    print("\n=== Initializing storage ===")

    config = config or load_config()

    # 创建引擎
    engine = get_engine()

    # 创建表结构
    create_tables(engine)

    # 准备图片目录
    ensure_image_dir(config)

    print("=== Storage initialization completed ===\n")
    return engine


if __name__ == "__main__":
    # 直接运行此脚本时，执行初始化
    init_db()
