from __future__ import annotations

from tbsim.errors import ConfigurationError


def check_width(width: int) -> int:
    if isinstance(width, bool) or not isinstance(width, int) or width < 1:
        raise ConfigurationError(f"位宽必须是正整数，但收到了 {width!r}")
    return width


def bit_mask(width: int) -> int:
    return (1 << check_width(width)) - 1


# --- 辅助函数：补码转换 ---
def fit_width(value, width: int) -> int:
    """
    将任意整数折算为 width 位的无符号编码（模 2**width）。

    负数得到其补码表示，例如 fit_width(-1, 8) == 0xFF。
    """
    if isinstance(value, bool):
        value = int(value)
    try:
        value = int(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"信号值必须是整数，但收到了 {type(value)}") from None
    return value & bit_mask(width)


def to_signed(value: int, width: int) -> int:
    """把 width 位的无符号编码解释为补码有符号数。"""
    value = fit_width(value, width)
    if value >> (width - 1):
        return value - (1 << width)
    return value
