"""
图片 Repository
把图片选择器给出的临时 URI 转换为重启后仍然可用的永久引用，并在读取时反向解析

两条存储路径：
1. native：复制到本地图片目录，并在 image_mapping 表中记录 临时 URI -> 永久路径
2. web：没有文件系统，解码后重新编码为 JPEG data URI，存入键值存储的生成键下

任何失败都降级为“返回目前已知最好的引用”，不会向调用方抛出异常。
"""

import asyncio
import base64
import io
import random
import re
import shutil
import time
from pathlib import Path
from typing import Dict, Iterable, List, Optional
from urllib.parse import urlparse
from urllib.request import url2pathname

from PIL import Image

from pinkbook.config import StorageConfig
from pinkbook.storage import KeyValueStore, StorageError, ImageSourceError, dumps, load_mapping

IMAGE_MAPPING_KEY = "image_mapping"

# 永久文件名：image_<毫秒时间戳>_<0-9999>.jpg
PERMANENT_NAME_PATTERN = re.compile(r"(?:^|[\\/])image_\d+_\d{1,4}\.jpg$")

# web 平台的图片键：web_image_<毫秒时间戳>_<0-9999>
WEB_KEY_PREFIX = "web_image_"
WEB_KEY_PATTERN = re.compile(r"^web_image_\d+_\d{1,4}$")

DATA_URI_PREFIX = "data:"


def _timestamp_ms() -> int:
    return int(time.time() * 1000)


def generate_image_filename() -> str:
    """生成永久图片文件名，碰撞概率可忽略但并未消除"""
    return f"image_{_timestamp_ms()}_{random.randint(0, 9999)}.jpg"


def generate_web_key() -> str:
    """生成 web 平台存放 data URI 的键"""
    return f"{WEB_KEY_PREFIX}{_timestamp_ms()}_{random.randint(0, 9999)}"


def is_permanent_ref(ref: str) -> bool:
    """是否为 persist 生成过的永久路径"""
    return bool(PERMANENT_NAME_PATTERN.search(ref))


def is_web_key(ref: str) -> bool:
    """是否为 web 平台生成的图片键"""
    return bool(WEB_KEY_PATTERN.match(ref))


def is_data_uri(ref: str) -> bool:
    return ref.startswith(DATA_URI_PREFIX)


def source_path(ref: str) -> Path:
    """
    把选择器给出的 URI 转换为本地文件路径

    支持 file:// URI 和普通路径；blob:、http: 等无法在本地读取的来源视为失败

    Raises:
        ImageSourceError: 不支持的 URI 协议
    """
    if ref.startswith("file://"):
        parsed = urlparse(ref)
        return Path(url2pathname(parsed.path))
    if "://" in ref or ref.startswith(("blob:", DATA_URI_PREFIX)):
        raise ImageSourceError(f"不支持的图片来源: {ref[:64]}")
    return Path(ref)


class ImageRepository:
    """
    图片数据访问对象
    负责图片引用的持久化（persist）与解析（resolve）
    """

    def __init__(self, store: KeyValueStore, config: StorageConfig):
        """
        初始化 Repository

        Args:
            store: 键值存储
            config: 存储配置（决定平台路径、图片目录和 JPEG 质量）
        """
        self.store = store
        self.config = config

    # ==================== 持久化 ====================

    async def persist(self, ref: str) -> str:
        """
        将临时图片引用转换为永久引用

        已经是永久引用时原样返回（幂等）；失败时记录日志并返回原引用

        Args:
            ref: 图片选择器给出的临时 URI

        Returns:
            永久引用（native 为文件路径，web 为图片键），失败时为 ref 本身
        """
        if not isinstance(ref, str) or not ref.strip():
            print(f"[ImageRepository Error] 无效的图片引用: {ref!r}")
            return ref
        try:
            if self.config.is_web:
                return await self._persist_to_web_storage(ref)
            return await self._persist_to_filesystem(ref)
        except Exception as e:
            print(f"[ImageRepository Error] 保存图片失败: {ref[:64]}: {e}")
            return ref

    async def persist_all(self, refs: Optional[Iterable[str]]) -> List[str]:
        """
        并发持久化多张图片

        空引用和非字符串在分发前被过滤，空结果在汇总后被过滤，
        因此返回列表可能比输入短。同一批次中重复的引用只持久化一次，
        各个位置得到同一个永久引用

        Args:
            refs: 临时 URI 列表

        Returns:
            永久引用列表，保持输入顺序
        """
        refs = list(refs or [])
        candidates = [ref for ref in refs if isinstance(ref, str) and ref.strip()]
        if len(candidates) < len(refs):
            print(f"[ImageRepository] 跳过 {len(refs) - len(candidates)} 个无效图片引用")

        unique = list(dict.fromkeys(candidates))
        persisted = dict(zip(unique, await asyncio.gather(*(self.persist(ref) for ref in unique))))
        results = [persisted[ref] for ref in candidates]
        return [result for result in results if result]

    async def _persist_to_filesystem(self, ref: str) -> str:
        if is_permanent_ref(ref):
            return ref

        # 同一个临时 URI 只保留一份副本
        known = (await self._load_mapping()).get(ref)
        if known and Path(known).exists():
            return known

        try:
            src = source_path(ref)
            image_dir = await self._ensure_image_dir()
            destination = image_dir / generate_image_filename()
            await asyncio.to_thread(shutil.copyfile, src, destination)
        except (OSError, ImageSourceError) as e:
            print(f"[ImageRepository Error] 复制图片失败，保留原始 URI: {ref}: {e}")
            return ref

        permanent = await self._record_mapping(ref, str(destination))
        print(f"[ImageRepository] 图片已保存: {ref} -> {permanent}")
        return permanent

    async def _persist_to_web_storage(self, ref: str) -> str:
        if is_data_uri(ref) or is_web_key(ref):
            return ref

        try:
            data_uri = await asyncio.to_thread(self._encode_data_uri, ref)
            key = generate_web_key()
            await self.store.set_item(key, data_uri)
        except (ImageSourceError, StorageError) as e:
            print(f"[ImageRepository Error] 图片编码失败，保留原始 URI: {ref[:64]}: {e}")
            return ref

        print(f"[ImageRepository] 图片已编码保存: {ref[:64]} -> {key}")
        return key

    def _encode_data_uri(self, ref: str) -> str:
        """
        解码图片并重新编码为 JPEG data URI

        Raises:
            ImageSourceError: 来源不可读或无法解码
        """
        path = source_path(ref)
        try:
            with Image.open(path) as image:
                rgb = image.convert("RGB")
            buffer = io.BytesIO()
            rgb.save(buffer, format="JPEG", quality=self.config.jpeg_quality)
        except (OSError, ValueError, Image.DecompressionBombError) as e:
            raise ImageSourceError(f"无法解码图片: {e}") from e

        encoded = base64.b64encode(buffer.getvalue()).decode("ascii")
        return f"data:image/jpeg;base64,{encoded}"

    async def _ensure_image_dir(self) -> Path:
        """创建图片目录，已存在视为成功"""
        image_dir = self.config.resolved_image_dir()
        await asyncio.to_thread(image_dir.mkdir, parents=True, exist_ok=True)
        return image_dir

    # ==================== 映射表 ====================

    async def _load_mapping(self) -> Dict[str, str]:
        """读取 image_mapping，读取失败或数据损坏都按空表处理"""
        try:
            raw = await self.store.get_item(IMAGE_MAPPING_KEY)
        except StorageError as e:
            print(f"[ImageRepository Error] 读取映射表失败: {e}")
            return {}

        result = load_mapping(raw)
        if result.error:
            print(f"[ImageRepository Error] 映射表损坏，按空表处理: {result.error}")
        return result.unwrap_or({})

    async def _record_mapping(self, ref: str, permanent: str) -> str:
        """
        在键锁内读取-修改-写回映射表

        锁内发现同一引用已有可用副本时，删除刚复制的文件并返回已有副本；
        写入失败只记录日志

        Returns:
            该引用最终对应的永久路径
        """
        try:
            async with self.store.locked(IMAGE_MAPPING_KEY):
                raw = await self.store.get_item(IMAGE_MAPPING_KEY)
                mapping = load_mapping(raw).unwrap_or({})
                known = mapping.get(ref)
                if known and known != permanent and Path(known).exists():
                    await self._discard_copy(permanent)
                    return known
                mapping[ref] = permanent
                await self.store.set_item(IMAGE_MAPPING_KEY, dumps(mapping))
        except StorageError as e:
            print(f"[ImageRepository Error] 写入映射表失败: {ref}: {e}")
        return permanent

    async def _discard_copy(self, path: str) -> None:
        try:
            await asyncio.to_thread(Path(path).unlink, missing_ok=True)
        except OSError as e:
            print(f"[ImageRepository Error] 删除重复副本失败: {path}: {e}")

    # ==================== 解析 ====================

    async def resolve(self, ref: str) -> str:
        """
        把存储的图片引用解析为渲染层可加载的 URI

        - web：图片键 -> 存储的 data URI（缺失时返回空串）；其他引用原样返回
        - native：永久路径原样返回；否则查映射表，查不到时原样返回

        Args:
            ref: Post 或 UserProfile 中保存的图片引用

        Returns:
            可渲染的 URI，无效引用返回空串
        """
        if not isinstance(ref, str) or not ref:
            return ""
        try:
            if self.config.is_web:
                return await self._resolve_web(ref)
            return await self._resolve_native(ref)
        except Exception as e:
            print(f"[ImageRepository Error] 解析图片失败: {ref[:64]}: {e}")
            return ref

    async def resolve_all(self, refs: Optional[Iterable[str]]) -> List[str]:
        """
        解析多张图片，保持顺序，丢弃解析为空的结果

        web 平台的图片键通过一次批量读取取回
        """
        refs = list(refs or [])
        if self.config.is_web:
            results = await self._resolve_all_web(refs)
        else:
            results = await asyncio.gather(*(self.resolve(ref) for ref in refs))
        return [result for result in results if result]

    async def _resolve_all_web(self, refs: List[str]) -> List[str]:
        keys = list(dict.fromkeys(ref for ref in refs if isinstance(ref, str) and is_web_key(ref)))
        blobs: Dict[str, Optional[str]] = {}
        if keys:
            try:
                blobs = await self.store.multi_get(keys)
            except StorageError as e:
                print(f"[ImageRepository Error] 批量读取图片数据失败: {e}")

        results = []
        for ref in refs:
            if not isinstance(ref, str) or not ref:
                results.append("")
            elif not is_web_key(ref):
                results.append(ref)
            elif blobs.get(ref):
                results.append(blobs[ref])
            else:
                print(f"[ImageRepository Error] 找不到图片数据: {ref}")
                results.append("")
        return results

    async def _resolve_web(self, ref: str) -> str:
        if not is_web_key(ref):
            return ref
        try:
            blob = await self.store.get_item(ref)
        except StorageError as e:
            print(f"[ImageRepository Error] 读取图片数据失败: {ref}: {e}")
            return ""
        if not blob:
            print(f"[ImageRepository Error] 找不到图片数据: {ref}")
            return ""
        return blob

    async def _resolve_native(self, ref: str) -> str:
        if is_permanent_ref(ref):
            return ref
        return (await self._load_mapping()).get(ref, ref)
