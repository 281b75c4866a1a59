"""
用户 Repository
提供账号注册与登录校验
"""

from typing import List, Optional

from pydantic import TypeAdapter

from pinkbook.models.user import AuthResult, User
from pinkbook.storage import KeyValueStore, StorageError, dumps, parse

USERS_KEY = "users"

MSG_MISSING_FIELDS = "请填写所有信息"
MSG_PASSWORD_MISMATCH = "两次密码不一致"
MSG_DUPLICATE = "邮箱或手机号已注册"
MSG_REGISTERED = "注册成功"
MSG_STORAGE_FAILED = "存储失败，请重试"
MSG_LOGGED_IN = "登录成功"
MSG_BAD_CREDENTIALS = "用户名或密码错误"

_USERS_ADAPTER = TypeAdapter(List[User])


class UserDirectory:
    """
    用户数据访问对象
    users 是一个扁平的凭据列表，每次变更都整体读取并写回
    """

    def __init__(self, store: KeyValueStore):
        """
        初始化 Repository

        Args:
            store: 键值存储
        """
        self.store = store

    async def _read(self) -> List[User]:
        raw = await self.store.get_item(USERS_KEY)
        result = parse(raw, _USERS_ADAPTER)
        if result.error:
            print(f"[UserDirectory Error] users 数据损坏，按空列表处理: {result.error}")
        return result.unwrap_or([])

    async def list_all(self) -> List[User]:
        """
        获取所有用户

        Returns:
            User 列表，数据缺失、损坏或读取失败时返回空列表
        """
        try:
            return await self._read()
        except StorageError as e:
            print(f"[UserDirectory Error] 读取用户失败: {e}")
            return []

    async def register(
        self,
        candidate: User,
        confirm_password: Optional[str] = None
    ) -> AuthResult:
        """
        注册用户

        邮箱与手机号分别检查唯一性，任一重复即拒绝

        Args:
            candidate: 待注册的凭据
            confirm_password: 注册表单的确认密码（可选）

        Returns:
            AuthResult，accepted=False 时 reason 说明原因
        """
        if not candidate.email or not candidate.phone or not candidate.password:
            return AuthResult(accepted=False, reason=MSG_MISSING_FIELDS)
        if confirm_password is not None and confirm_password != candidate.password:
            return AuthResult(accepted=False, reason=MSG_PASSWORD_MISMATCH)

        try:
            async with self.store.locked(USERS_KEY):
                users = await self._read()
                if any(u.email == candidate.email or u.phone == candidate.phone for u in users):
                    return AuthResult(accepted=False, reason=MSG_DUPLICATE)

                users.append(candidate)
                await self.store.set_item(USERS_KEY, dumps([u.model_dump() for u in users]))
        except StorageError as e:
            print(f"[UserDirectory Error] 注册失败: {e}")
            return AuthResult(accepted=False, reason=MSG_STORAGE_FAILED)

        print(f"[UserDirectory] 新用户注册成功: {candidate.email}")
        return AuthResult(accepted=True, reason=MSG_REGISTERED, user=candidate)

    async def authenticate(self, identifier: str, password: str) -> AuthResult:
        """
        登录校验

        identifier 可以是邮箱或手机号；密码逐字比较（明文，未做任何加固）

        Args:
            identifier: 邮箱或手机号
            password: 密码

        Returns:
            AuthResult，成功时 user 为匹配的记录
        """
        users = await self.list_all()
        user = next(
            (
                u for u in users
                if (u.email == identifier or u.phone == identifier) and u.password == password
            ),
            None
        )
        if user:
            return AuthResult(accepted=True, reason=MSG_LOGGED_IN, user=user)
        return AuthResult(accepted=False, reason=MSG_BAD_CREDENTIALS)
