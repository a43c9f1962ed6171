# core/signal.py

from __future__ import annotations
from typing import TYPE_CHECKING, Dict, Optional

from tbsim.utils.bits import bit_mask, check_width, fit_width

if TYPE_CHECKING:
    from .simulator import Process, Simulator


class Signal:
    """
    固定位宽的信号单元。

    - value:   当前可见值，只会被阻塞赋值或 NBA 提交修改
    - pending: 本 delta 内尚未提交的非阻塞赋值（后写覆盖先写）
    - 敏感进程表按插入顺序保存，保证唤醒顺序确定
    """

    def __init__(self, sim: "Simulator", name: str, width: int = 1, init: int = 0):
        self.sim = sim
        self.name = name
        self.width = check_width(width)
        self.mask = bit_mask(width)
        self._value = fit_width(init, width)
        self._previous = self._value
        self._pending: Optional[int] = None
        self._sensitive: Dict["Process", None] = {}

    @property
    def id(self) -> str:
        return self.name

    @property
    def value(self) -> int:
        return self._value

    @property
    def previous(self) -> int:
        """最近一次变化之前的值，用于边沿判断。"""
        return self._previous

    @property
    def pending(self) -> Optional[int]:
        return self._pending

    def write(self, value) -> None:
        """阻塞赋值 (=)。"""
        self.sim.write(self, value)

    def write_nb(self, value) -> None:
        """非阻塞赋值 (<=)。"""
        self.sim.write_nb(self, value)

    # --- 调度器内部使用 ---

    def _set(self, value) -> bool:
        value = fit_width(value, self.width)
        if value == self._value:
            return False
        self._previous = self._value
        self._value = value
        return True

    def _stage(self, value) -> bool:
        """登记待提交的值；返回 True 表示本 delta 第一次登记，需要排一个提交事件。"""
        first = self._pending is None
        self._pending = fit_width(value, self.width)
        return first

    def _commit(self) -> bool:
        if self._pending is None:
            return False
        value, self._pending = self._pending, None
        return self._set(value)

    def _sensitize(self, process: "Process") -> None:
        self._sensitive[process] = None

    def _desensitize(self, process: "Process") -> None:
        self._sensitive.pop(process, None)

    def _sensitized(self):
        return list(self._sensitive)

    def __int__(self) -> int:
        return self._value

    def __index__(self) -> int:
        return self._value

    def __repr__(self) -> str:
        return f"Signal({self.name}, width={self.width}, value={self._value:#x})"
