"""
回归运行器。

每个场景都在全新的 ScenarioContext 中运行（独立的调度器、日志器和检查器），
场景之间不共享任何仿真状态；一个场景抛出异常不会影响后续场景。
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Iterable, List, Optional, Tuple, Union

from loguru import logger

from tbsim.config import RegressionConfig, SimulatorConfig
from tbsim.core import RunResult, RunStatus, Signal, Simulator
from tbsim.errors import CheckMismatch, SimulationError, ConfigurationError
from tbsim.utils.distribution import ProbabilityDistribution
from tbsim.utils.record_format import NumberFormat
from .checker import Checker, CheckOutcome
from .stimulus import FileDriven, RandomSeeded
from .tb_logger import LogRecord, SimLogger


class ExpectedEnd(Enum):
    ANY = "any"
    EXHAUSTED = "exhausted"   # 事件自然耗尽
    STOPPED = "stopped"       # 显式 stop()，且不是致命错误


class ScenarioVerdict(Enum):
    PASS = "pass"
    FAIL = "fail"


class ScenarioContext:
    """一个场景运行期间的全部状态：调度器、日志器、检查器和它打开的文件激励。"""

    def __init__(self, name: str, seed: int = 0, sim_config: Optional[SimulatorConfig] = None):
        self.name = name
        self.seed = seed
        self.sim = Simulator(sim_config)
        self.log = SimLogger(self.sim, name)
        self.checkers: List[Checker] = []
        self._sources: List[FileDriven] = []
        self._closed = False

    @property
    def outcomes(self) -> tuple:
        """本场景调度器上所有检查器的比对结果，包括没有挂日志的检查器。"""
        return tuple(self.sim.outcomes)

    def checker(self, signal: Union[Signal, str, None] = None, **kwargs: Any) -> Checker:
        kwargs.setdefault("log", self.log)
        chk = Checker(self.sim, signal, **kwargs)
        self.checkers.append(chk)
        return chk

    def random(self, width: int = 32, dist: Optional[ProbabilityDistribution] = None,
               offset: int = 0) -> RandomSeeded:
        """由场景种子派生的随机源；同一场景内的多个随机源用 offset 区分。"""
        return RandomSeeded(self.seed + offset, width, dist)

    def file_source(self, path: Union[str, Path], fmt: Union[str, NumberFormat],
                    width: Optional[int] = None) -> FileDriven:
        source = FileDriven(path, fmt, width, log=self.log)
        self._sources.append(source)
        return source

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        # 先关闭进程（其 finally 中可能还会写日志），再关闭文件和日志 sink
        self.sim.shutdown()
        for source in self._sources:
            source.close()
        self.log.close()

    def __enter__(self) -> "ScenarioContext":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


@dataclass(frozen=True)
class Scenario:
    name: str
    build: Callable[[ScenarioContext], Any]
    until: Optional[int] = None
    seed: int = 0
    expected_end: ExpectedEnd = ExpectedEnd.ANY
    description: str = ""


def scenario(name: Optional[str] = None, *, until: Optional[int] = None, seed: int = 0,
             expected_end: ExpectedEnd = ExpectedEnd.ANY) -> Callable[[Callable], Scenario]:
    """
    把一个 build(ctx) 函数包装成 Scenario：

        @scenario("counter_basic", expected_end=ExpectedEnd.STOPPED)
        def counter_basic(ctx):
            ...
    """
    def decorator(build: Callable[[ScenarioContext], Any]) -> Scenario:
        return Scenario(
            name=name or build.__name__,
            build=build,
            until=until,
            seed=seed,
            expected_end=ExpectedEnd(expected_end),
            description=(build.__doc__ or "").strip(),
        )
    return decorator


@dataclass(frozen=True)
class ScenarioResult:
    name: str
    verdict: ScenarioVerdict
    outcomes: Tuple[CheckOutcome, ...]
    records: Tuple[LogRecord, ...]
    status: Optional[RunStatus]
    end_time: int
    reason: Optional[str] = None

    @property
    def passed(self) -> bool:
        return self.verdict is ScenarioVerdict.PASS

    @property
    def mismatches(self) -> List[CheckOutcome]:
        return [o for o in self.outcomes if not o.passed]

    def raise_for_verdict(self) -> None:
        if not self.passed:
            raise CheckMismatch(f"场景 {self.name} 失败: {self.reason}", self.mismatches)


@dataclass(frozen=True)
class SuiteResult:
    results: Tuple[ScenarioResult, ...]

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def failed(self) -> List[str]:
        return [r.name for r in self.results if not r.passed]

    @property
    def passed(self) -> int:
        return self.total - len(self.failed)

    @property
    def exit_code(self) -> int:
        return 0 if not self.failed else 1

    def __getitem__(self, name: str) -> ScenarioResult:
        for result in self.results:
            if result.name == name:
                return result
        raise KeyError(name)

    def summary(self) -> str:
        text = f"回归结果: {self.passed}/{self.total} 通过"
        if self.failed:
            text += f"，失败: {', '.join(self.failed)}"
        return text


class RegressionRunner:
    def __init__(self, config: Optional[RegressionConfig] = None):
        self.config = config or RegressionConfig()

    def run_scenario(self, scenario: Scenario) -> ScenarioResult:
        seed = self.config.seed if self.config.seed is not None else scenario.seed
        ctx = ScenarioContext(scenario.name, seed, self.config.sim)
        if self.config.log.dir:
            ctx.log.add_file(Path(self.config.log.dir) / f"{scenario.name}.log",
                             level=self.config.log.level)

        logger.info(f"=== 场景 {scenario.name} 开始 (seed={seed}) ===")
        run: Optional[RunResult] = None
        reason: Optional[str] = None
        try:
            scenario.build(ctx)
            run = ctx.sim.run(until=scenario.until)
        except SimulationError as err:
            # build 阶段的配置错误，调度器还没有机会捕获
            logger.error(f"场景 {scenario.name} 构建失败: {err}")
            reason = f"{type(err).__name__}: {err}"
        except Exception as err:
            logger.exception(f"场景 {scenario.name} 抛出未预期的异常")
            reason = f"{type(err).__name__}: {err}"
        finally:
            ctx.close()

        if reason is None:
            reason = self._judge(scenario, run, ctx)

        result = ScenarioResult(
            name=scenario.name,
            verdict=ScenarioVerdict.PASS if reason is None else ScenarioVerdict.FAIL,
            outcomes=ctx.outcomes,
            records=ctx.log.records,
            status=run.status if run is not None else None,
            end_time=run.time if run is not None else ctx.sim.now,
            reason=reason,
        )
        if result.passed:
            logger.info(f"=== 场景 {scenario.name} PASS (t={result.end_time}, "
                        f"{len(result.outcomes)} 次检查) ===")
        else:
            logger.error(f"=== 场景 {scenario.name} FAIL (t={result.end_time}): {reason} ===")
        return result

    def run_suite(self, scenarios: Iterable[Scenario]) -> SuiteResult:
        scenarios = list(scenarios)
        names = [s.name for s in scenarios]
        duplicated = sorted({n for n in names if names.count(n) > 1})
        if duplicated:
            raise ConfigurationError(f"场景名重复: {', '.join(duplicated)}")

        results: List[ScenarioResult] = []
        for sc in scenarios:
            result = self.run_scenario(sc)
            results.append(result)
            if self.config.fail_fast and not result.passed:
                logger.warning(f"fail_fast: 场景 {sc.name} 失败，停止回归")
                break

        suite = SuiteResult(tuple(results))
        logger.info(suite.summary())
        return suite

    @staticmethod
    def _judge(scenario: Scenario, run: RunResult, ctx: ScenarioContext) -> Optional[str]:
        """返回失败原因；None 表示通过。"""
        if run.fatal:
            return run.reason

        bad = [o for o in ctx.outcomes if not o.passed]
        if bad:
            first = bad[0]
            return (f"{len(bad)} 次比对失败，首个: {first.signal_id} t={first.time} "
                    f"observed={first.observed:#x} expected={first.expected:#x}")

        if ctx.sim.errors:
            err = ctx.sim.errors[0]
            return f"{len(ctx.sim.errors)} 个进程因错误结束，首个: {type(err).__name__}: {err}"

        if scenario.expected_end is ExpectedEnd.EXHAUSTED and run.status is not RunStatus.EXHAUSTED:
            return f"期望事件耗尽结束，实际结束方式为 {run.status.value}"
        if scenario.expected_end is ExpectedEnd.STOPPED and run.status is not RunStatus.TERMINATED:
            return f"期望被 stop() 结束，实际结束方式为 {run.status.value}"
        return None
