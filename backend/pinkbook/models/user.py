"""
用户域模型 - 账号凭据记录
对应存储键 users 中数组的单个元素
"""

from typing import Optional

from pydantic import BaseModel, Field


class User(BaseModel):
    """
    账号凭据记录

    注意：密码以明文保存与比较，这是本地单用户应用的已知缺陷，
    任何真实部署都必须改为哈希存储。
    """
    email: str = Field(description="邮箱，全局唯一")
    phone: str = Field(description="手机号，全局唯一")
    password: str = Field(description="明文密码")


class AuthResult(BaseModel):
    """注册 / 登录结果，失败通过 accepted=False 表达而不是抛异常"""
    accepted: bool
    reason: str = ""
    user: Optional[User] = None
