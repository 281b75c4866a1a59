"""
键值存储

异步、字符串键、字符串值的持久化字典，底层为 SQLite 中的 kv_store 表。
阻塞的数据库操作放到工作线程执行；同一时刻只有一个线程访问连接。
"""

import asyncio
import threading
import weakref
from contextlib import asynccontextmanager
from typing import Dict, Iterable, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, col, select

from pinkbook.models.kv import KeyValueEntry

from .errors import StorageError


class KeyValueStore:
    """
    键值存储访问对象

    所有方法都是协程；失败统一抛出 StorageError，由仓储层决定如何降级。

    超时只对读取生效：写入超时后会等待工作线程真正结束再返回，
    保证调用方看到的结果与已提交的数据一致。

    使用示例：
        store = KeyValueStore(get_engine(), timeout=10.0)
        await store.set_item("posts", "[]")
        raw = await store.get_item("posts")
    """

    def __init__(self, engine, timeout: Optional[float] = None):
        """
        初始化存储

        Args:
            engine: SQLModel 数据库引擎（表需已创建）
            timeout: 单次读取的超时秒数，None 表示不限制
        """
        self.engine = engine
        self.timeout = timeout
        self._io_lock = threading.Lock()
        # asyncio.Lock 只能在一个事件循环中使用，按事件循环分别缓存
        self._key_locks = weakref.WeakKeyDictionary()

    # ==================== 串行化 ====================

    def lock(self, key: str) -> asyncio.Lock:
        """
        返回当前事件循环中某个键专用的锁

        仓储对同一集合做“读取-修改-写回”时必须持有该锁，
        否则并发写入会以整块覆盖的方式互相吞掉更新。
        """
        locks = self._key_locks.setdefault(asyncio.get_running_loop(), {})
        if key not in locks:
            locks[key] = asyncio.Lock()
        return locks[key]

    @asynccontextmanager
    async def locked(self, key: str):
        """
        持有某个键的锁执行一段读取-修改-写回

        获取锁失败时抛出 StorageError，与其他存储失败一样由仓储降级处理

        使用示例：
            async with store.locked("posts"):
                ...
        """
        lock = self.lock(key)
        try:
            await lock.acquire()
        except RuntimeError as e:
            raise StorageError(f"获取键锁失败: {key}: {e}") from e
        try:
            yield
        finally:
            lock.release()

    async def _run(self, func, *args, write: bool = False):
        """
        在工作线程执行阻塞操作

        读取超时抛出 StorageError；写入超时则继续等待线程结束，
        写入成功即返回，写入失败照常抛出
        """
        task = asyncio.ensure_future(asyncio.to_thread(self._guarded, func, *args))
        if not self.timeout:
            return await task
        try:
            return await asyncio.wait_for(asyncio.shield(task), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            if not write:
                # 放弃等待的读取仍在线程中完成，这里只回收它的结果
                task.add_done_callback(lambda t: t.cancelled() or t.exception())
                raise StorageError(f"存储读取超时 ({self.timeout}s)") from e
        print(f"[KeyValueStore] 写入超过 {self.timeout}s，等待写入完成")
        return await task

    def _guarded(self, func, *args):
        with self._io_lock:
            try:
                return func(*args)
            except SQLAlchemyError as e:
                raise StorageError(f"存储读写失败: {e}") from e

    # ==================== 同步实现 ====================

    def _get(self, key: str) -> Optional[str]:
        with Session(self.engine) as session:
            entry = session.get(KeyValueEntry, key)
            return entry.value if entry else None

    def _multi_get(self, keys: List[str]) -> Dict[str, Optional[str]]:
        with Session(self.engine) as session:
            statement = select(KeyValueEntry).where(col(KeyValueEntry.key).in_(keys))
            found = {entry.key: entry.value for entry in session.exec(statement).all()}
        return {key: found.get(key) for key in keys}

    def _set(self, key: str, value: str) -> None:
        with Session(self.engine) as session:
            entry = session.get(KeyValueEntry, key)
            if entry:
                entry.value = value
            else:
                entry = KeyValueEntry(key=key, value=value)
            session.add(entry)
            session.commit()

    # ==================== 异步接口 ====================

    async def get_item(self, key: str) -> Optional[str]:
        """读取键对应的字符串，不存在返回 None"""
        return await self._run(self._get, key)

    async def multi_get(self, keys: Iterable[str]) -> Dict[str, Optional[str]]:
        """批量读取，返回的字典包含所有请求的键（不存在的值为 None）"""
        return await self._run(self._multi_get, list(keys))

    async def set_item(self, key: str, value: str) -> None:
        """写入（覆盖）键对应的字符串"""
        if not isinstance(value, str):
            raise StorageError(f"值必须是字符串: {key}")
        await self._run(self._set, key, value, write=True)
