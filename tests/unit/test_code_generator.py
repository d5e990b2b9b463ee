"""
File: tests/unit/test_code_generator.py
Description: 激活码生成器单元测试

Author: jinmozhe
Created: 2026-03-02
"""

import pytest

from passport.core.config import settings
from passport.domains.activation_codes.generator import generate_code


def test_generate_code_default_length_and_alphabet() -> None:
    code = generate_code()

    assert len(code) == settings.ACTIVATION_CODE_LENGTH
    assert set(code) <= set(settings.ACTIVATION_CODE_ALPHABET)


def test_generate_code_custom_alphabet() -> None:
    assert generate_code(length=4, alphabet="A") == "AAAA"


def test_generate_code_is_random() -> None:
    codes = {generate_code() for _ in range(50)}
    # 62^8 的空间内 50 个样本几乎不可能重复
    assert len(codes) == 50


@pytest.mark.parametrize(
    ("length", "alphabet"),
    [(0, "abc"), (-1, "abc"), (8, "")],
)
def test_generate_code_rejects_invalid_config(length: int, alphabet: str) -> None:
    with pytest.raises(ValueError):
        generate_code(length=length, alphabet=alphabet)
