"""
激励/期望记录文件的数值格式。

记录文件是以空白或换行分隔的 token 序列，一个 token 对应一个值；
`//` 或 `#` 之后到行尾为注释。
"""
from __future__ import annotations

import re
from enum import Enum
from pathlib import Path
from typing import IO, Iterable, Iterator, Tuple, Union

from tbsim.errors import ConfigurationError
from tbsim.utils.bits import check_width, fit_width, to_signed


class NumberFormat(Enum):
    DEC = "dec"
    UDEC = "udec"
    HEX_LOWER = "hex"
    HEX_UPPER = "HEX"
    BIN = "bin"
    OCT = "oct"

    @classmethod
    def parse(cls, spec: Union[str, "NumberFormat"]) -> "NumberFormat":
        """把 "hex" / "%h" / "H" / "HEX_UPPER" 之类的描述解析为 NumberFormat。"""
        if isinstance(spec, NumberFormat):
            return spec
        if isinstance(spec, str) and spec in _ALIASES:
            return _ALIASES[spec]
        raise ConfigurationError(f"无法识别的数值格式: {spec!r}")


# 大小写敏感：h/x 是小写十六进制，H/X 是大写十六进制
_ALIASES = {}
for _fmt, _names in {
    NumberFormat.DEC: ("DEC", "dec", "d", "%d"),
    NumberFormat.UDEC: ("UDEC", "udec", "u", "%u"),
    NumberFormat.HEX_LOWER: ("HEX_LOWER", "hex", "h", "x", "%h", "%x"),
    NumberFormat.HEX_UPPER: ("HEX_UPPER", "HEX", "H", "X", "%H", "%X"),
    NumberFormat.BIN: ("BIN", "bin", "b", "%b"),
    NumberFormat.OCT: ("OCT", "oct", "o", "%o"),
}.items():
    for _name in _names:
        _ALIASES[_name] = _fmt

_PATTERNS = {
    NumberFormat.DEC: (re.compile(r"-?[0-9][0-9_]*"), 10),
    NumberFormat.UDEC: (re.compile(r"[0-9][0-9_]*"), 10),
    NumberFormat.HEX_LOWER: (re.compile(r"[0-9a-f][0-9a-f_]*"), 16),
    NumberFormat.HEX_UPPER: (re.compile(r"[0-9A-F][0-9A-F_]*"), 16),
    NumberFormat.BIN: (re.compile(r"[01][01_]*"), 2),
    NumberFormat.OCT: (re.compile(r"[0-7][0-7_]*"), 8),
}

_COMMENT = re.compile(r"(//|#).*$")


def parse_token(token: str, fmt: Union[str, NumberFormat]) -> int:
    """按格式解析一个 token；格式不符时抛出 ValueError。"""
    fmt = NumberFormat.parse(fmt)
    pattern, base = _PATTERNS[fmt]
    if not pattern.fullmatch(token):
        raise ValueError(f"记录 {token!r} 不符合 {fmt.name} 格式")
    return int(token.replace("_", ""), base)


def format_value(value: int, fmt: Union[str, NumberFormat], width: int) -> str:
    fmt = NumberFormat.parse(fmt)
    check_width(width)
    value = fit_width(value, width)
    if fmt is NumberFormat.DEC:
        return str(to_signed(value, width))
    if fmt is NumberFormat.UDEC:
        return str(value)
    if fmt is NumberFormat.HEX_LOWER:
        return format(value, f"0{(width + 3) // 4}x")
    if fmt is NumberFormat.HEX_UPPER:
        return format(value, f"0{(width + 3) // 4}X")
    if fmt is NumberFormat.BIN:
        return format(value, f"0{width}b")
    return format(value, f"0{(width + 2) // 3}o")


def iter_tokens(stream: IO[str]) -> Iterator[Tuple[int, str]]:
    """逐行读取，产出 (行号, token)，不会把整个文件读入内存。"""
    for lineno, line in enumerate(stream, start=1):
        for token in _COMMENT.sub("", line).split():
            yield lineno, token


def write_records(path: Union[str, Path], values: Iterable[int],
                  fmt: Union[str, NumberFormat], width: int) -> Path:
    """把一组值写成记录文件（每行一个），常用于生成期望文件。"""
    path = Path(path)
    with open(path, "w", encoding="utf-8") as f:
        for value in values:
            f.write(format_value(value, fmt, width))
            f.write("\n")
    return path
