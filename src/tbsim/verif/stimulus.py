"""
激励源与驱动进程。

四种激励源（以及时钟翻转模式）互相独立，不共享基类，
只遵守同一个结构化协议：exhausted 属性 + next_value() 方法。
"""
from __future__ import annotations

from pathlib import Path
from typing import Iterable, Iterator, Optional, Protocol, Union

import numpy as np
from loguru import logger

from tbsim.core import Signal, Simulator
from tbsim.errors import ConfigurationError, StimulusExhaustion
from tbsim.utils.bits import check_width, fit_width
from tbsim.utils.distribution import ProbabilityDistribution
from tbsim.utils.record_format import NumberFormat, iter_tokens, parse_token


class StimulusSource(Protocol):
    @property
    def exhausted(self) -> bool: ...

    def next_value(self) -> int: ...


class Static:
    """每次都产出同一个值。"""

    def __init__(self, value: int):
        self.value = int(value)

    @property
    def exhausted(self) -> bool:
        return False

    def next_value(self) -> int:
        return self.value

    def __iter__(self) -> Iterator[int]:
        while True:
            yield self.value

    def __repr__(self) -> str:
        return f"Static({self.value:#x})"


class Sequential:
    """按顺序每个值产出一次，之后耗尽。"""

    def __init__(self, values: Iterable[int]):
        self._values = [int(v) for v in values]
        self._index = 0

    @property
    def exhausted(self) -> bool:
        return self._index >= len(self._values)

    def next_value(self) -> int:
        if self.exhausted:
            raise StimulusExhaustion(f"Sequential 激励已耗尽（共 {len(self._values)} 个值）")
        value = self._values[self._index]
        self._index += 1
        return value

    def __iter__(self) -> Iterator[int]:
        while not self.exhausted:
            yield self.next_value()

    def __repr__(self) -> str:
        return f"Sequential({self._index}/{len(self._values)})"


class RandomSeeded:
    """
    由种子确定的无限伪随机序列。

    使用 numpy 的 PCG64 (default_rng)：同一种子、同一位宽必然得到逐位相同的序列。
    给出 dist 时按权重从离散值集合中抽取（类似 SystemVerilog 的 dist）。
    """

    def __init__(self, seed: int, width: int = 32,
                 dist: Optional[ProbabilityDistribution] = None):
        if isinstance(seed, bool) or not isinstance(seed, (int, np.integer)) or seed < 0:
            raise ConfigurationError(f"随机种子必须是非负整数，但收到了 {seed!r}")
        self.seed = int(seed)
        self.width = check_width(width)
        self.dist = dist
        self._rng = np.random.default_rng(self.seed)
        # 每次抽取若干个 32 位块再拼接，任意位宽都可复现
        self._chunks = (self.width + 31) // 32

    @property
    def exhausted(self) -> bool:
        return False

    def next_value(self) -> int:
        if self.dist is not None:
            return fit_width(self.dist.sample(self._rng), self.width)
        chunks = self._rng.integers(0, 1 << 32, size=self._chunks, dtype=np.uint64)
        value = 0
        for chunk in chunks:
            value = (value << 32) | int(chunk)
        return fit_width(value, self.width)

    def __iter__(self) -> Iterator[int]:
        while True:
            yield self.next_value()

    def __repr__(self) -> str:
        return f"RandomSeeded(seed={self.seed}, width={self.width})"


class Toggle:
    """时钟翻转模式：start, 1-start, start, ... 无限产出。"""

    def __init__(self, start: int = 0):
        self._next = int(start) & 1

    @property
    def exhausted(self) -> bool:
        return False

    def next_value(self) -> int:
        value = self._next
        self._next ^= 1
        return value

    def __iter__(self) -> Iterator[int]:
        while True:
            yield self.next_value()


_NOTHING = object()


class FileDriven:
    """
    从记录文件中逐个读取激励值。

    文件在首次取值（或进入 with 块）时打开，在读完、close() 或离开 with 块时关闭；
    驱动它的 drive / Checker.watch 进程结束或被终止时也会关闭文件。
    格式错误的记录（包括无法按 UTF-8 解码的字节）会被跳过并告警。
    """

    def __init__(self, path: Union[str, Path], fmt: Union[str, NumberFormat],
                 width: Optional[int] = None, log=None):
        self.path = Path(path)
        self.fmt = NumberFormat.parse(fmt)
        self.width = check_width(width) if width is not None else None
        self.log = log
        self.valid = 0
        self.skipped = 0

        self._file = None
        self._tokens = None
        self._lookahead = _NOTHING
        self._done = False

    @property
    def closed(self) -> bool:
        return self._file is None

    def open(self) -> "FileDriven":
        if self._file is None and not self._done:
            try:
                self._file = open(self.path, "r", encoding="utf-8", errors="replace")
            except OSError as e:
                raise ConfigurationError(f"无法打开激励文件 {self.path}: {e}") from e
            self._tokens = iter_tokens(self._file)
        return self

    def close(self) -> None:
        # 关闭后视为耗尽，不会从头重新读取
        if self._file is not None:
            self._file.close()
            self._file = None
            self._tokens = None
            self._done = True
            logger.debug(f"激励文件 {self.path.name} 已关闭: 读取 {self.valid} 条, 跳过 {self.skipped} 条")

    def __enter__(self) -> "FileDriven":
        return self.open()

    def __exit__(self, *exc) -> None:
        self.close()

    def _warn(self, message: str) -> None:
        logger.warning(message)
        if self.log is not None:
            self.log.warning(message)

    def _fill(self) -> bool:
        if self._lookahead is not _NOTHING:
            return True
        if self._done:
            return False
        self.open()
        for lineno, token in self._tokens:
            try:
                value = parse_token(token, self.fmt)
            except ValueError:
                self.skipped += 1
                self._warn(f"{self.path.name}:{lineno} 跳过格式错误的记录 {token!r}")
                continue
            if self.width is not None:
                value = fit_width(value, self.width)
            self._lookahead = value
            return True
        self.close()
        return False

    @property
    def exhausted(self) -> bool:
        return not self._fill()

    def next_value(self) -> int:
        if not self._fill():
            raise StimulusExhaustion(f"激励文件 {self.path} 已无有效记录")
        value, self._lookahead = self._lookahead, _NOTHING
        self.valid += 1
        return value

    def __iter__(self) -> Iterator[int]:
        while self._fill():
            yield self.next_value()

    def __repr__(self) -> str:
        return f"FileDriven({self.path.name}, {self.fmt.name})"


# ==============================================================================
# 驱动进程
# ==============================================================================

def release_source(source) -> None:
    """关闭持有文件等外部资源的激励源；没有 close() 的激励源不受影响。"""
    close = getattr(source, "close", None)
    if close is not None:
        close()


def clock(sim: Simulator, clk: Signal, half_period: int, cycles: Optional[int] = None):
    """
    时钟发生器进程体：每 half_period 翻转一次 clk（阻塞赋值）。

    cycles 为 None 时无限运行，直到场景结束。
    """
    if half_period < 1:
        raise ConfigurationError("时钟半周期至少为 1")
    pattern = Toggle(start=(clk.value & 1) ^ 1)
    edges = 0
    while cycles is None or edges < 2 * cycles:
        yield sim.delay(half_period)
        clk.write(pattern.next_value())
        edges += 1


def drive(sim: Simulator, signal: Signal, source: StimulusSource,
          clk: Optional[Signal] = None, period: Optional[int] = None,
          nonblocking: bool = True):
    """
    把激励源的值逐个写到信号上，激励耗尽后进程正常结束并返回写入次数。

    - 给出 clk：每个上升沿写一个值
    - 给出 period：写一个值，然后等待 period

    进程无论正常结束还是被终止，都会关闭文件类激励源。
    """
    if (clk is None) == (period is None):
        raise ConfigurationError("drive 需要 clk 或 period 二者之一")
    write = signal.write_nb if nonblocking else signal.write
    count = 0
    try:
        while not source.exhausted:
            if clk is not None:
                yield from sim.posedge(clk)
                write(source.next_value())
            else:
                write(source.next_value())
                yield sim.delay(period)
            count += 1
    finally:
        release_source(source)
    return count
