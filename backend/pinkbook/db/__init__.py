"""
数据库模块
提供键值存储所用数据库的连接、初始化和管理功能
"""

from .init_db import init_db, get_engine, get_database_url, create_tables

__all__ = [
    "init_db",
    "get_engine",
    "get_database_url",
    "create_tables"
]
