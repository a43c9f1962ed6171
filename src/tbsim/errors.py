# errors.py

from __future__ import annotations
from typing import Any, Optional, Sequence


class SimulationError(Exception):
    """
    仿真内核所有错误的基类。

    fatal 为 True 的错误一旦从进程中抛出，调度器立即终止当前场景。
    """
    fatal: bool = True


class ConfigurationError(SimulationError, ValueError):
    """未注册的信号/ForkGroup、非法 yield、非法位宽或格式描述等配置错误。"""


class StimulusExhaustion(SimulationError):
    """激励源已耗尽，但仍有进程向它索取数值。"""


class CheckMismatch(SimulationError):
    """
    可恢复的比对失败汇总。

    检查器本身只记录 MISMATCH，不抛出；只有在调用方显式要求
    (ScenarioResult.raise_for_verdict) 时才以异常形式出现。
    """
    fatal = False

    def __init__(self, message: str, outcomes: Sequence[Any] = ()):
        super().__init__(message)
        self.outcomes = tuple(outcomes)


class FatalAssertion(SimulationError):
    """致命断言：终止当前场景的调度器。"""

    def __init__(self, message: str, outcome: Optional[Any] = None):
        super().__init__(message)
        self.outcome = outcome


class SchedulingDeadlock(SimulationError):
    """零时间死循环，或者等待一个永远不会完成的 join。"""
