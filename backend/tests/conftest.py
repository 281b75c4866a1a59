"""
Pytest 测试配置
提供测试数据库、键值存储、图片样本等测试基础设施
"""

import sys
from pathlib import Path

import pytest
from PIL import Image
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, create_engine, select

# 添加项目根目录到 sys.path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from pinkbook.config import StorageConfig
from pinkbook.db.init_db import create_tables
from pinkbook.models.kv import KeyValueEntry
from pinkbook.repositories import ImageRepository, PostRepository, ProfileStore, UserDirectory
from pinkbook.services import FeedService, ProfileService
from pinkbook.storage import KeyValueStore


# ==================== 数据库 Fixtures ====================

@pytest.fixture(scope="function")
def test_db_engine():
    """
    创建测试用的内存数据库引擎
    每个测试函数都会获得一个全新的数据库；
    存储调用在工作线程执行，StaticPool 保证所有线程共用同一个内存库
    """
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )

    # 创建所有表
    create_tables(engine)

    yield engine

    engine.dispose()


@pytest.fixture(scope="function")
def store(test_db_engine) -> KeyValueStore:
    """
    创建测试用的键值存储
    """
    return KeyValueStore(test_db_engine, timeout=5.0)


@pytest.fixture(scope="function")
def stored_keys(test_db_engine):
    """
    返回一个函数，列出 kv_store 表中当前所有的键（已排序）
    """
    def _keys():
        with Session(test_db_engine) as session:
            return sorted(session.exec(select(KeyValueEntry.key)).all())

    return _keys


# ==================== 配置 Fixtures ====================

@pytest.fixture(scope="function")
def native_config(tmp_path) -> StorageConfig:
    """
    有文件系统的平台配置，图片目录位于临时目录
    """
    return StorageConfig(platform="native", image_dir=tmp_path / "images")


@pytest.fixture(scope="function")
def web_config(tmp_path) -> StorageConfig:
    """
    浏览器平台配置
    """
    return StorageConfig(platform="web", image_dir=tmp_path / "unused")


# ==================== 图片样本 Fixtures ====================

def _write_sample(path: Path, color=(255, 80, 120)) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.new("RGB", (8, 8), color).save(path, format="PNG")
    return path


@pytest.fixture(scope="function")
def sample_image(tmp_path) -> Path:
    """
    模拟图片选择器返回的临时文件
    """
    return _write_sample(tmp_path / "picker" / "photo.png")


@pytest.fixture(scope="function")
def sample_images(tmp_path) -> list[Path]:
    """
    多张临时图片
    """
    return [
        _write_sample(tmp_path / "picker" / f"photo_{i}.png", color=(i * 40, 100, 200))
        for i in range(5)
    ]


@pytest.fixture(scope="function")
def broken_image(tmp_path) -> Path:
    """
    无法解码的“图片”
    """
    path = tmp_path / "picker" / "broken.png"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"definitely not an image")
    return path


# ==================== Repository Fixtures ====================

@pytest.fixture(scope="function")
def image_repository(store, native_config) -> ImageRepository:
    """
    创建 native 平台的 ImageRepository 实例
    """
    return ImageRepository(store, native_config)


@pytest.fixture(scope="function")
def web_image_repository(store, web_config) -> ImageRepository:
    """
    创建 web 平台的 ImageRepository 实例
    """
    return ImageRepository(store, web_config)


@pytest.fixture(scope="function")
def post_repository(store) -> PostRepository:
    """
    创建 PostRepository 实例
    """
    return PostRepository(store)


@pytest.fixture(scope="function")
def user_directory(store) -> UserDirectory:
    """
    创建 UserDirectory 实例
    """
    return UserDirectory(store)


@pytest.fixture(scope="function")
def profile_store(store, image_repository, post_repository) -> ProfileStore:
    """
    创建 native 平台的 ProfileStore 实例
    """
    return ProfileStore(store, image_repository, post_repository)


# ==================== Service Fixtures ====================

@pytest.fixture(scope="function")
def feed_service(post_repository, image_repository) -> FeedService:
    """
    创建 native 平台的 FeedService 实例
    """
    return FeedService(post_repository, image_repository)


@pytest.fixture(scope="function")
def web_feed_service(post_repository, web_image_repository) -> FeedService:
    """
    创建 web 平台的 FeedService 实例
    """
    return FeedService(post_repository, web_image_repository)


@pytest.fixture(scope="function")
def profile_service(profile_store, image_repository) -> ProfileService:
    """
    创建 ProfileService 实例
    """
    return ProfileService(profile_store, image_repository)


# ==================== Pytest 配置 ====================

def pytest_configure(config):
    """
    Pytest 初始化配置
    """
    # 标记测试分类
    config.addinivalue_line(
        "markers", "unit: Unit tests"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests"
    )
    config.addinivalue_line(
        "markers", "slow: Slow running tests"
    )
