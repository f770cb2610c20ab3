"""随机凭证生成

生成的字符串直接作为服务的登录密码使用。
默认 10 位 [A-Za-z0-9]，每位约 5.95 bit，整串约 59.5 bit 熵。
"""

from __future__ import annotations

import secrets
import string

PASSWORD_LENGTH = 10
ALPHABET = string.ascii_letters + string.digits


def random_string(length: int = PASSWORD_LENGTH) -> str:
    """生成大小写敏感的字母数字随机串"""
    if length <= 0:
        raise ValueError("length 必须为正数")
    return "".join(secrets.choice(ALPHABET) for _ in range(length))
