from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Union

from tbsim.core import Signal, Simulator
from tbsim.errors import ConfigurationError, FatalAssertion
from tbsim.utils.bits import bit_mask, check_width, fit_width
from .stimulus import release_source


class Verdict(Enum):
    PASS = "pass"
    MISMATCH = "mismatch"
    FATAL = "fatal"


class MismatchPolicy(Enum):
    CONTINUE = "continue"   # 记录 MISMATCH，仿真继续
    FATAL = "fatal"         # 记录 FATAL 并终止场景


@dataclass(frozen=True)
class CheckOutcome:
    time: int
    signal_id: str
    observed: int
    expected: int
    verdict: Verdict

    @property
    def passed(self) -> bool:
        return self.verdict is Verdict.PASS


class Checker:
    """
    比较观测值与期望值的检查器。

    两边都先按位宽截断再比较；每次比较都会产生一条 CheckOutcome，
    按时间顺序保存，同时登记到调度器的 sim.outcomes（场景判定以此为准），
    并（如果给了 log）写入场景日志。
    """

    def __init__(self, sim: Simulator, signal: Union[Signal, str, None] = None, *,
                 width: Optional[int] = None,
                 policy: Union[MismatchPolicy, str] = MismatchPolicy.CONTINUE,
                 log=None,
                 name: Optional[str] = None):
        if isinstance(signal, str):
            signal = sim.get_signal(signal)
        if signal is None and width is None:
            raise ConfigurationError("未绑定信号的检查器必须给出 width")

        self.sim = sim
        self.signal = signal
        self.width = check_width(width if width is not None else signal.width)
        self.mask = bit_mask(self.width)
        self.policy = MismatchPolicy(policy)
        self.log = log
        self.name = name or (signal.id if signal is not None else "checker")
        self._outcomes: List[CheckOutcome] = []

    @property
    def outcomes(self) -> tuple:
        return tuple(self._outcomes)

    @property
    def mismatches(self) -> List[CheckOutcome]:
        return [o for o in self._outcomes if not o.passed]

    @property
    def passed(self) -> bool:
        return all(o.passed for o in self._outcomes)

    def check(self, observed: int, expected: int) -> CheckOutcome:
        observed = fit_width(observed, self.width)
        expected = fit_width(expected, self.width)
        if observed == expected:
            verdict = Verdict.PASS
        elif self.policy is MismatchPolicy.FATAL:
            verdict = Verdict.FATAL
        else:
            verdict = Verdict.MISMATCH

        outcome = CheckOutcome(self.sim.now, self.name, observed, expected, verdict)
        self._outcomes.append(outcome)
        self.sim.outcomes.append(outcome)
        if self.log is not None:
            self.log.record_outcome(outcome)

        if verdict is Verdict.FATAL:
            raise FatalAssertion(
                f"{self.name} 在 t={outcome.time}: 观测值 {observed:#x} != 期望值 {expected:#x}",
                outcome)
        return outcome

    def sample(self, expected: int) -> CheckOutcome:
        """读取绑定信号的当前值并与 expected 比较。"""
        if self.signal is None:
            raise ConfigurationError(f"检查器 {self.name} 没有绑定信号，不能 sample")
        return self.check(self.signal.value, expected)

    def watch(self, expected, clk: Signal, negedge: bool = False):
        """
        进程体：每个时钟沿采样一次绑定信号，期望值取自激励源，
        期望值耗尽后结束并返回比较次数。

        在上升沿（ACTIVE 区域）采样时，读到的是该沿 NBA 提交之前的值。
        进程结束或被终止时关闭文件类期望源。
        """
        if self.signal is None:
            raise ConfigurationError(f"检查器 {self.name} 没有绑定信号，不能 watch")
        count = 0
        try:
            while not expected.exhausted:
                if negedge:
                    yield from self.sim.negedge(clk)
                else:
                    yield from self.sim.posedge(clk)
                self.sample(expected.next_value())
                count += 1
        finally:
            release_source(expected)
        return count

    def __repr__(self) -> str:
        return f"Checker({self.name}, {len(self._outcomes)} checks, {len(self.mismatches)} failed)"
