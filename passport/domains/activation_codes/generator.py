"""
File: passport/domains/activation_codes/generator.py
Description: 激活码生成器

生成固定长度的随机字母数字串 (secrets 密码学随机源)。
本函数不保证唯一性：唯一性由 Service 层的存在性检查 + 数据库 UNIQUE 约束共同保证。

Author: jinmozhe
Created: 2026-03-02
"""

import secrets

from passport.core.config import settings


def generate_code(
    length: int = settings.ACTIVATION_CODE_LENGTH,
    alphabet: str = settings.ACTIVATION_CODE_ALPHABET,
) -> str:
    """生成随机激活码，例如 "a8Kd02Zq" """
    if length <= 0:
        raise ValueError("length must be positive")
    if not alphabet:
        raise ValueError("alphabet must not be empty")
    return "".join(secrets.choice(alphabet) for _ in range(length))
