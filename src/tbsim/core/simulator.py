# core/simulator.py

from __future__ import annotations
import collections
import heapq
import itertools
import operator
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Deque, Dict, Generator, List, Optional, Union

from loguru import logger

from tbsim.config import SimulatorConfig
from tbsim.errors import ConfigurationError, SchedulingDeadlock, SimulationError, FatalAssertion
from .event import CommitSignalUpdate, Event, Region, ResumeProcess, RunHook
from .signal import Signal

# ==============================================================================
# “指令”类：进程 yield 这些对象，调度器据此挂起进程
# ==============================================================================
class Delay:
    """一个“指令”对象，当协程 'yield' 它时，进程挂起到 now + cycles"""
    __slots__ = ("cycles",)

    def __init__(self, cycles: int):
        try:
            cycles = operator.index(cycles)
        except TypeError:
            raise ConfigurationError(f"延迟必须是整数，但收到了 {cycles!r}") from None
        if cycles < 0:
            raise ConfigurationError("延迟不能为负数")
        self.cycles = cycles

    def __repr__(self) -> str:
        return f"Delay({self.cycles})"


class WaitOn:
    """挂起直到集合中任意一个信号的值发生变化"""
    __slots__ = ("signals",)

    def __init__(self, signals):
        self.signals = tuple(signals)

    def __repr__(self) -> str:
        names = ", ".join(getattr(s, "name", repr(s)) for s in self.signals)
        return f"WaitOn({names})"


class Join:
    """挂起直到 ForkGroup 的所有分支（或单个进程）结束"""
    __slots__ = ("target",)

    def __init__(self, target):
        self.target = target

    def __repr__(self) -> str:
        return f"Join({self.target!r})"


class JoinAny:
    """挂起直到 ForkGroup 的第一个分支结束"""
    __slots__ = ("target",)

    def __init__(self, target):
        self.target = target

    def __repr__(self) -> str:
        return f"JoinAny({self.target!r})"


class ProcessState(Enum):
    READY = "ready"
    SUSPENDED = "suspended"
    FINISHED = "finished"


# ==============================================================================
# “进程”包装器：Simulator 内部管理的核心对象
# ==============================================================================
class Process:
    """
    包装一个协程（生成器），记录它的挂起状态和返回值。

    进程在两个挂起点之间不会被打断；只有 Delay / WaitOn / Join / JoinAny
    会把控制权交还给调度器。
    """

    def __init__(self, sim: "Simulator", pid: int, coroutine: Generator,
                 name: str, owner: Optional["ForkGroup"] = None):
        self.sim = sim
        self.pid = pid
        self.coro = coroutine
        self.name = name
        self.owner = owner
        self.state = ProcessState.READY
        self.waiting: Any = None
        self.result: Any = None
        self.killed = False

        self._token = 0
        self._signals: tuple = ()
        self._joiners: List[Process] = []

    @property
    def is_done(self) -> bool:
        return self.state is ProcessState.FINISHED

    def run(self, value_to_send: Any = None):
        """
        “唤醒”或“恢复”这个进程
        """
        self.state = ProcessState.READY
        self.waiting = None
        try:
            yielded_command = self.coro.send(value_to_send)
        except StopIteration as e:
            self._finish(e.value)
            return
        except BaseException:
            self.state = ProcessState.FINISHED
            self.sim._live.pop(self.pid, None)
            raise
        self.sim._handle_yield(self, yielded_command)

    def kill(self) -> None:
        """终止进程 (disable fork)；被终止的分支对 join 而言视为已结束。"""
        if self.is_done:
            return
        if self.sim._current is self:
            raise ConfigurationError(f"进程 {self.name} 不能在运行中终止自身")
        self._release()
        self._token += 1
        self.killed = True
        self.coro.close()
        self._finish(None)

    def _release(self) -> None:
        for signal in self._signals:
            signal._desensitize(self)
        self._signals = ()

    def _finish(self, result: Any) -> None:
        self.state = ProcessState.FINISHED
        self.waiting = None
        self.result = result
        self.sim._live.pop(self.pid, None)

        joiners, self._joiners = self._joiners, []
        for task in joiners:
            self.sim._resume_now(task, result)

        if self.owner is not None:
            self.owner._branch_done(self)

    def __repr__(self) -> str:
        return f"Process({self.name}, pid={self.pid}, state={self.state.value})"


# ==============================================================================
# “屏障”：fork/join 的计数器
# ==============================================================================
class ForkGroup:
    """
    fork 产生的一组并行分支。

    pending 只减不增；join 的等待者在 pending 归零时按登记顺序被唤醒，且只唤醒一次。
    """

    def __init__(self, sim: "Simulator", gid: int, name: str):
        self.sim = sim
        self.gid = gid
        self.name = name
        self.branches: List[Process] = []
        self.results: List[Any] = []
        self.pending = 0

        self._first: Optional[Process] = None
        self._joiners: List[Process] = []
        self._any_joiners: List[Process] = []

    @property
    def done(self) -> bool:
        return self.pending == 0

    @property
    def first(self) -> Optional[Process]:
        return self._first

    def _add(self, process: Process) -> None:
        self.branches.append(process)
        self.results.append(None)
        self.pending += 1

    def _branch_done(self, process: Process) -> None:
        index = self.branches.index(process)
        self.results[index] = process.result
        self.pending -= 1

        if self._first is None:
            self._first = process
            any_joiners, self._any_joiners = self._any_joiners, []
            for task in any_joiners:
                self.sim._resume_now(task, process.result)

        if self.pending == 0:
            joiners, self._joiners = self._joiners, []
            for task in joiners:
                self.sim._resume_now(task, list(self.results))

    def kill(self) -> None:
        """终止所有未结束的分支；正在运行的分支自身不受影响。"""
        for branch in list(self.branches):
            if branch is not self.sim._current:
                branch.kill()

    def __repr__(self) -> str:
        return f"ForkGroup({self.name}, gid={self.gid}, pending={self.pending})"


class RunStatus(Enum):
    EXHAUSTED = "exhausted"
    TERMINATED = "terminated"
    UNTIL = "until"


@dataclass(frozen=True)
class RunResult:
    status: RunStatus
    time: int
    reason: Optional[str] = None
    error: Optional[SimulationError] = None

    @property
    def fatal(self) -> bool:
        return self.error is not None


SignalRef = Union[Signal, str]
GroupRef = Union[ForkGroup, int]


# ==============================================================================
# 模拟器引擎 (协程调度器)
# ==============================================================================
class Simulator:
    """
    一个基于【协程】的离散事件模拟器（调度器）。

    每个时刻分三个区域执行：ACTIVE -> NBA -> POSTPONED。
    ACTIVE 按轮次排空，NBA 一次性提交全部非阻塞赋值并唤醒敏感进程，
    这会在同一时刻产生新的 delta 轮次；全部排空后才推进时间。
    """

    def __init__(self, config: Optional[SimulatorConfig] = None):
        self.config = config or SimulatorConfig()
        self.event_heap: List[Event] = []
        self.current_time: int = 0
        self.errors: List[SimulationError] = []
        # 绑定到本调度器的所有检查器产生的比对结果，按产生顺序
        self.outcomes: List[Any] = []

        self._regions: Dict[Region, Deque[Event]] = {r: collections.deque() for r in Region}
        self._seq = itertools.count()
        self._pids = itertools.count()
        self._gids = itertools.count()

        self._signals: Dict[str, Signal] = {}
        self._groups: Dict[int, ForkGroup] = {}
        self._live: Dict[int, Process] = {}
        self._step_hooks: List[Callable[[], Any]] = []

        self._current: Optional[Process] = None
        self._region: Optional[Region] = None
        self._in_step = False
        self._delta = 0
        self._stop_reason: Optional[str] = None
        self._result: Optional[RunResult] = None
        self._terminated = False
        self._closing = False

    # --- 状态查询 ---

    @property
    def now(self) -> int:
        return self.current_time

    @property
    def region(self) -> Optional[Region]:
        return self._region

    @property
    def delta(self) -> int:
        """当前时刻已经执行的 ACTIVE 轮次数。"""
        return self._delta

    @property
    def current(self) -> Optional[Process]:
        return self._current

    @property
    def processes(self) -> tuple:
        """所有尚未结束的进程，按创建顺序。"""
        return tuple(self._live.values())

    @property
    def signals(self) -> tuple:
        return tuple(self._signals.values())

    @property
    def result(self) -> Optional[RunResult]:
        return self._result

    @property
    def terminated(self) -> bool:
        return self._terminated

    # --- 信号 ---

    def signal(self, name: str, width: int = 1, init: int = 0) -> Signal:
        if name in self._signals:
            raise ConfigurationError(f"信号 {name} 重复注册")
        sig = Signal(self, name, width, init)
        self._signals[name] = sig
        return sig

    def get_signal(self, name: str) -> Signal:
        try:
            return self._signals[name]
        except KeyError:
            raise ConfigurationError(f"信号 {name} 未注册到当前调度器") from None

    def write(self, signal: SignalRef, value) -> None:
        """阻塞赋值：立即生效，敏感进程在同一时刻的下一轮 ACTIVE 中恢复。"""
        sig = self._check_writable(signal)
        if sig is not None and sig._set(value):
            self._wake(sig)

    def write_nb(self, signal: SignalRef, value) -> None:
        """非阻塞赋值：登记 pending，本时刻的 NBA 区域统一提交。"""
        sig = self._check_writable(signal)
        if sig is not None and sig._stage(value):
            self._schedule(self.current_time, Region.NBA, CommitSignalUpdate(sig))

    # --- 公共API (供 HwModule 和 Testbench 使用) ---

    def spawn(self, coroutine_or_func: Any, *args: Any, name: Optional[str] = None,
              **kwargs: Any) -> Process:
        """
        启动一个新进程 (initial 块)。

        可以接受两种调用方式：
        1. spawn(func, arg1, kwarg='a')
        2. spawn(generator_object)
        """
        coro_to_run = self._as_generator(coroutine_or_func, args, kwargs)
        return self._make_process(coro_to_run, name or getattr(coro_to_run, "__name__", "proc"))

    def fork(self, *branches: Any, name: Optional[str] = None) -> ForkGroup:
        """
        为每个分支创建一个进程，它们在当前时刻的 ACTIVE 区域中运行。

        分支可以是生成器对象，也可以是返回生成器的无参可调用对象。
        fork 不是挂起点，立即返回 ForkGroup 句柄。
        """
        self._check_alive()
        gid = next(self._gids)
        group = ForkGroup(self, gid, name or f"fork{gid}")
        self._groups[gid] = group
        for i, branch in enumerate(branches):
            coro = self._as_generator(branch, (), {})
            group._add(self._make_process(coro, f"{group.name}[{i}]", owner=group))
        return group

    def delay(self, cycles: int) -> Delay:
        """“原子等待”指令"""
        return Delay(cycles)

    def wait_on(self, *signals: SignalRef) -> WaitOn:
        return WaitOn(signals)

    def join(self, group: Union[GroupRef, Process]) -> Join:
        return Join(group)

    def join_any(self, group: GroupRef) -> JoinAny:
        return JoinAny(group)

    def posedge(self, signal: SignalRef):
        """等待 bit0 从 0 变为 1：`yield from sim.posedge(clk)`"""
        sig = self._resolve_signal(signal)
        while True:
            yield WaitOn((sig,))
            if not (sig.previous & 1) and (sig.value & 1):
                return sig

    def negedge(self, signal: SignalRef):
        """等待 bit0 从 1 变为 0"""
        sig = self._resolve_signal(signal)
        while True:
            yield WaitOn((sig,))
            if (sig.previous & 1) and not (sig.value & 1):
                return sig

    def forever(self, body: Any, *args: Any, **kwargs: Any):
        """
        重复执行 body，直到场景结束或进程被终止。

        每一轮必须至少挂起一次，否则视为零时间死循环。
        """
        while True:
            coro = self._as_generator(body, args, kwargs)
            suspended = False
            value = None
            try:
                while True:
                    try:
                        command = coro.send(value)
                    except StopIteration:
                        break
                    suspended = True
                    value = yield command
            finally:
                coro.close()
            if not suspended:
                raise SchedulingDeadlock(
                    f"forever 循环体 {getattr(body, '__name__', body)} 在一轮中没有任何挂起点")

    def always_comb(self, body: Callable[[], Any], *signals: SignalRef,
                    name: Optional[str] = None) -> Process:
        """组合逻辑进程：time 0 执行一次，之后任一输入变化时再次执行 body。"""
        if not signals:
            raise ConfigurationError("always_comb 至少需要一个敏感信号")

        def _always():
            body()
            while True:
                yield WaitOn(signals)
                body()

        return self.spawn(_always(), name=name or getattr(body, "__name__", "always_comb"))

    def schedule_postponed(self, callback: Callable[[], Any]) -> None:
        """在当前时刻的 POSTPONED 区域执行一次 callback。"""
        self._check_alive()
        self._schedule(self.current_time, Region.POSTPONED, RunHook(callback))

    def add_step_hook(self, callback: Callable[[], Any]) -> None:
        """每个时刻的 POSTPONED 区域都会执行的钩子。"""
        self._step_hooks.append(callback)

    def stop(self, reason: str = "stop") -> None:
        """
        请求结束仿真 ($finish)：当前进程挂起后，丢弃所有剩余事件。

        在 run() 之前调用时，run() 不执行任何时刻，直接在当前时间终止。
        """
        if self._stop_reason is None:
            self._stop_reason = reason

    def fatal(self, message: str) -> None:
        raise FatalAssertion(message)

    # --- 主循环 ---

    def run(self, until: Optional[int] = None) -> RunResult:
        if self._terminated:
            return self._result
        if until is not None and until < self.current_time:
            raise ConfigurationError(f"until={until} 早于当前时间 t={self.current_time}")

        logger.debug(f"--- 协程仿真在 t={self.current_time} 开始 ---")
        try:
            result = self._run_loop(until)
        except SimulationError as err:
            logger.error(f"仿真在 t={self.current_time} 因 {type(err).__name__} 终止: {err}")
            self._terminate()
            result = RunResult(RunStatus.TERMINATED, self.current_time,
                               reason=f"{type(err).__name__}: {err}", error=err)
        except BaseException:
            self._terminate()
            raise
        self._result = result
        return result

    def shutdown(self) -> None:
        """场景结束时调用：关闭所有尚未结束的进程，释放它们持有的资源。"""
        if not self._terminated:
            self._terminate()

    def _run_loop(self, until: Optional[int]) -> RunResult:
        while True:
            # 0. 构建阶段或上一时刻请求的 stop，在推进时间之前生效
            if self._stop_reason is not None:
                reason = self._stop_reason
                self._terminate()
                logger.debug(f"--- 仿真在 t={self.current_time} 被终止 ({reason}) ---")
                return RunResult(RunStatus.TERMINATED, self.current_time, reason=reason)

            # 1. 检查是否结束
            if not self.event_heap:
                self._check_idle()
                logger.debug(f"--- 仿真在 t={self.current_time} 结束 (无更多事件) ---")
                return RunResult(RunStatus.EXHAUSTED, self.current_time)

            # 2. 检查 'until'
            next_time = self.event_heap[0].time
            if until is not None and next_time > until:
                self.current_time = until
                logger.debug(f"--- 仿真在 t={self.current_time} 暂停 (已达到 until={until}) ---")
                return RunResult(RunStatus.UNTIL, self.current_time)

            # 3. 推进时间，把这一时刻的全部事件分到各区域
            self._advance(next_time)
            self._run_time_step()

    def _advance(self, time: int) -> None:
        self.current_time = time
        self._delta = 0
        while self.event_heap and self.event_heap[0].time == time:
            event = heapq.heappop(self.event_heap)
            self._regions[event.region].append(event)

    def _run_time_step(self) -> None:
        self._in_step = True
        try:
            # 内部 Δ-Cycle 循环
            while True:
                self._run_active()
                if self._stop_reason is not None:
                    return
                if self._regions[Region.NBA]:
                    self._commit_nba()
                    continue
                break
            self._run_postponed()
        finally:
            self._in_step = False
            self._region = None

    def _run_active(self) -> None:
        active = self._regions[Region.ACTIVE]
        while active:
            self._delta += 1
            if self._delta > self.config.max_delta_cycles:
                raise SchedulingDeadlock(
                    f"t={self.current_time} 超过 {self.config.max_delta_cycles} 次 delta 迭代，"
                    f"疑似零时间死循环")
            self._region = Region.ACTIVE
            batch = list(active)
            active.clear()
            for event in batch:
                self._dispatch(event)
                if self._stop_reason is not None:
                    return

    def _commit_nba(self) -> None:
        # 所有提交作为一个原子批次完成之后，才开始唤醒敏感进程
        self._region = Region.NBA
        queue = self._regions[Region.NBA]
        batch = list(queue)
        queue.clear()
        changed = [event.payload.signal for event in batch if event.payload.signal._commit()]
        for sig in changed:
            self._wake(sig)

    def _run_postponed(self) -> None:
        self._region = Region.POSTPONED
        queue = self._regions[Region.POSTPONED]
        while queue:
            self._dispatch(queue.popleft())
        for hook in list(self._step_hooks):
            hook()

    def _dispatch(self, event: Event) -> None:
        payload = event.payload
        if isinstance(payload, RunHook):
            payload.callback()
            return

        task = payload.process
        if task.is_done or payload.token != task._token:
            return
        self._current = task
        try:
            task.run(payload.value)
        except SimulationError as err:
            if err.fatal:
                raise
            logger.warning(f"进程 {task.name} 在 t={self.current_time} 因可恢复错误结束: {err}")
            self.errors.append(err)
            task._finish(None)
        finally:
            self._current = None

    def _terminate(self) -> None:
        """
        丢弃所有事件并关闭每个存活进程。

        关闭期间信号写入被忽略；某个进程关闭时出错不影响其余进程的关闭，
        非仿真异常在全部关闭之后再抛出。
        """
        self._terminated = True
        self._closing = True
        unexpected: List[BaseException] = []
        try:
            self.event_heap.clear()
            for queue in self._regions.values():
                queue.clear()
            for sig in self._signals.values():
                sig._pending = None
            for task in list(self._live.values()):
                task._release()
                task._token += 1
                task.state = ProcessState.FINISHED
                try:
                    task.coro.close()
                except SimulationError as err:
                    logger.warning(f"关闭进程 {task.name} 时出错: {type(err).__name__}: {err}")
                except Exception as err:
                    logger.exception(f"关闭进程 {task.name} 时出现异常")
                    unexpected.append(err)
            self._live.clear()
        finally:
            self._closing = False
        if unexpected:
            raise unexpected[0]

    def _check_idle(self) -> None:
        joining = [t for t in self._live.values() if isinstance(t.waiting, (Join, JoinAny))]
        if joining:
            names = ", ".join(t.name for t in joining)
            raise SchedulingDeadlock(f"进程 {names} 等待的 join 永远不会完成")
        waiting = [t for t in self._live.values() if isinstance(t.waiting, WaitOn)]
        if waiting and self.config.strict_wait_on:
            names = ", ".join(t.name for t in waiting)
            raise SchedulingDeadlock(f"进程 {names} 等待的信号永远不会变化")
        if waiting:
            logger.debug(f"仍有 {len(waiting)} 个进程挂起在 wait_on 上")

    # --- 调度器核心逻辑 ---

    def _schedule(self, time: int, region: Region, payload) -> None:
        event = Event(time, region, next(self._seq), payload)
        if self._in_step and time == self.current_time:
            self._regions[region].append(event)
        else:
            heapq.heappush(self.event_heap, event)

    def _resume_now(self, task: Process, value: Any = None) -> None:
        if task.is_done:
            return
        self._schedule(self.current_time, Region.ACTIVE, ResumeProcess(task, value, task._token))

    def _wake(self, sig: Signal) -> None:
        for task in sig._sensitized():
            task._release()
            self._resume_now(task, sig)

    def _make_process(self, coro: Generator, name: str,
                      owner: Optional[ForkGroup] = None) -> Process:
        self._check_alive()
        task = Process(self, next(self._pids), coro, name, owner)
        self._live[task.pid] = task
        self._schedule(self.current_time, Region.ACTIVE, ResumeProcess(task, None, task._token))
        return task

    def _handle_yield(self, task: Process, yielded_value: Any) -> None:
        """【关键】: 解释一个协程 'yield' 出来的“指令”"""
        if isinstance(yielded_value, (ForkGroup, Process)):
            # "results = yield group" 等价于 "yield sim.join(group)"
            yielded_value = Join(yielded_value)

        task.state = ProcessState.SUSPENDED
        task.waiting = yielded_value
        task._token += 1

        if isinstance(yielded_value, Delay):
            self._schedule(self.current_time + yielded_value.cycles, Region.ACTIVE,
                           ResumeProcess(task, None, task._token))

        elif isinstance(yielded_value, WaitOn):
            if not yielded_value.signals:
                raise ConfigurationError(f"进程 {task.name} 的 wait_on 信号集合为空")
            signals = tuple(self._resolve_signal(s) for s in yielded_value.signals)
            task._signals = signals
            for sig in signals:
                sig._sensitize(task)

        elif isinstance(yielded_value, Join):
            target = yielded_value.target
            if isinstance(target, Process):
                if target.sim is not self:
                    raise ConfigurationError(f"进程 {target.name} 不属于当前调度器")
                if target.is_done:
                    self._resume_now(task, target.result)
                else:
                    target._joiners.append(task)
            else:
                group = self._resolve_group(target)
                if group.done:
                    self._resume_now(task, list(group.results))
                else:
                    group._joiners.append(task)

        elif isinstance(yielded_value, JoinAny):
            group = self._resolve_group(yielded_value.target)
            if group.first is not None:
                self._resume_now(task, group.first.result)
            elif not group.branches:
                self._resume_now(task, None)
            else:
                group._any_joiners.append(task)

        else:
            raise ConfigurationError(
                f"未知的 yield 类型: {type(yielded_value).__name__} (来自进程 {task.name})")

    # --- 辅助函数 ---

    def _as_generator(self, coroutine_or_func: Any, args: tuple, kwargs: dict) -> Generator:
        if isinstance(coroutine_or_func, Generator):
            # --- 传入的是一个【已创建】的生成器对象 ---
            if args or kwargs:
                raise ConfigurationError("当传入生成器对象时，不能再传递 *args 或 **kwargs")
            return coroutine_or_func
        if callable(coroutine_or_func):
            # --- 传入的是一个【函数】和它的参数 ---
            coro_to_run = coroutine_or_func(*args, **kwargs)
            if not isinstance(coro_to_run, Generator):
                raise ConfigurationError(
                    f"{getattr(coroutine_or_func, '__name__', 'coro')} 没有返回一个生成器 "
                    f"(generator)。您是否忘记了 'yield'?")
            return coro_to_run
        raise ConfigurationError(f"进程体必须是可调用对象或生成器，但收到了 {type(coroutine_or_func)}")

    def _resolve_signal(self, signal: SignalRef) -> Signal:
        if isinstance(signal, Signal):
            if signal.sim is not self or self._signals.get(signal.name) is not signal:
                raise ConfigurationError(f"信号 {signal.name} 未注册到当前调度器")
            return signal
        if isinstance(signal, str):
            return self.get_signal(signal)
        raise ConfigurationError(f"无法识别的信号引用: {signal!r}")

    def _resolve_group(self, group: GroupRef) -> ForkGroup:
        if isinstance(group, ForkGroup):
            if group.sim is not self:
                raise ConfigurationError(f"ForkGroup {group.name} 不属于当前调度器")
            return group
        if isinstance(group, int) and not isinstance(group, bool) and group in self._groups:
            return self._groups[group]
        raise ConfigurationError(f"未知的 ForkGroup: {group!r}")

    def _check_writable(self, signal: SignalRef) -> Optional[Signal]:
        """返回可写的信号；终止过程中进程 finally 里的清理写入被丢弃，返回 None。"""
        sig = self._resolve_signal(signal)
        if self._closing:
            logger.debug(f"调度器正在终止，丢弃对信号 {sig.name} 的写入")
            return None
        if self._region is Region.POSTPONED:
            raise ConfigurationError(f"POSTPONED 区域只读，不能写信号 {sig.name}")
        if self._terminated:
            raise ConfigurationError("调度器已终止")
        return sig

    def _check_alive(self) -> None:
        if self._terminated:
            raise ConfigurationError("调度器已终止")
        if self._region is Region.POSTPONED:
            raise ConfigurationError("POSTPONED 区域不能创建进程")
