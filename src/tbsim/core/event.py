# core/event.py

from __future__ import annotations
import functools
from dataclasses import dataclass
from enum import IntEnum
from typing import TYPE_CHECKING, Any, Callable, Union

if TYPE_CHECKING:
    from .signal import Signal
    from .simulator import Process


class Region(IntEnum):
    """
    同一仿真时刻内的执行区域，数值越小越先执行。

    - ACTIVE:    运行/恢复进程，阻塞赋值立即生效
    - NBA:       统一提交本时刻所有非阻塞赋值，并唤醒敏感进程
    - POSTPONED: 时刻末尾的只读钩子（$strobe / $monitor / 日志刷新）
    """
    ACTIVE = 0
    NBA = 1
    POSTPONED = 2


@dataclass(frozen=True)
class ResumeProcess:
    process: "Process"
    value: Any = None
    # 进程每次挂起都会换一个 token，过期的唤醒事件据此被丢弃
    token: int = 0


@dataclass(frozen=True)
class CommitSignalUpdate:
    # 待提交的值保存在 signal.pending 中（后写覆盖先写）
    signal: "Signal"


@dataclass(frozen=True)
class RunHook:
    callback: Callable[[], Any]


Payload = Union[ResumeProcess, CommitSignalUpdate, RunHook]


@functools.total_ordering
class Event:
    """
    一个【内部】事件，驱动协程调度器。

    排序键为 (time, region, seq)：时间优先，其次是区域，
    最后按插入顺序，保证同一区域内的执行顺序完全确定。
    """
    __slots__ = ("time", "region", "seq", "payload")

    def __init__(self, time: int, region: Region, seq: int, payload: Payload):
        self.time = time
        self.region = region
        self.seq = seq
        self.payload = payload

    def _key(self):
        return (self.time, self.region, self.seq)

    def __lt__(self, other: Event) -> bool:
        """为最小堆提供排序功能。"""
        if not isinstance(other, Event):
            return NotImplemented
        return self._key() < other._key()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Event):
            return NotImplemented
        return self._key() == other._key()

    def __hash__(self) -> int:
        return hash(self._key())

    def __repr__(self) -> str:
        return (f"Event(t={self.time}, region={self.region.name}, "
                f"seq={self.seq}, payload={type(self.payload).__name__})")
