#!filepath: tests/test_simulator.py
import pytest

from tbsim.core import (
    CheckMismatch,
    ConfigurationError,
    FatalAssertion,
    Region,
    RunStatus,
    SchedulingDeadlock,
    Simulator,
)
from tbsim.verif import clock


def test_spawn_order_is_execution_order(sim):
    """同一时刻的进程按创建顺序运行"""
    trace = []

    def proc(tag):
        trace.append(tag)
        yield sim.delay(1)

    for tag in "abc":
        sim.spawn(proc, tag, name=tag)
    sim.run()

    assert trace == ["a", "b", "c"]


def test_delay_zero_runs_in_next_round(sim):
    """delay(0) 在同一时刻的下一轮 ACTIVE 中恢复"""
    trace = []

    def first():
        trace.append(("a1", sim.now, sim.delta))
        yield sim.delay(0)
        trace.append(("a2", sim.now, sim.delta))

    def second():
        trace.append(("b1", sim.now, sim.delta))
        yield sim.delay(3)
        trace.append(("b2", sim.now, sim.delta))

    sim.spawn(first)
    sim.spawn(second)
    result = sim.run()

    assert trace == [("a1", 0, 1), ("b1", 0, 1), ("a2", 0, 2), ("b2", 3, 1)]
    assert result.status is RunStatus.EXHAUSTED
    assert result.time == 3


def test_blocking_write_visible_immediately(sim):
    """阻塞赋值在同一个进程里立刻可见"""
    a = sim.signal("a", width=8)
    seen = []

    def proc():
        a.write(0x5A)
        seen.append(a.value)
        yield sim.delay(1)

    sim.spawn(proc)
    sim.run()
    assert seen == [0x5A]


def test_nonblocking_write_reads_old_value_until_commit(sim):
    """非阻塞赋值在 NBA 提交前读到旧值"""
    a = sim.signal("a", width=8, init=3)
    seen = []

    def proc():
        a.write_nb(7)
        seen.append((a.value, a.pending))
        yield sim.delay(0)
        # 下一轮 ACTIVE 仍在 NBA 之前
        seen.append((a.value, a.pending))
        yield sim.delay(1)
        seen.append((a.value, a.pending))

    sim.spawn(proc)
    sim.run()
    assert seen == [(3, 7), (3, 7), (7, None)]


def test_last_nonblocking_write_wins(sim):
    """同一 delta 内的多次非阻塞赋值只提交最后一次，只唤醒一次"""
    x = sim.signal("x", width=8)
    wakes = []

    def waiter():
        while True:
            yield sim.wait_on(x)
            wakes.append((sim.now, x.value))

    def writer(value):
        x.write_nb(value)
        yield sim.delay(1)

    sim.spawn(waiter)
    sim.spawn(writer, 1)
    sim.spawn(writer, 2)
    result = sim.run()

    assert wakes == [(0, 2)]
    assert result.status is RunStatus.EXHAUSTED


def test_nonblocking_swap_is_race_free(sim):
    """两个进程互相非阻塞赋值，结果与执行顺序无关"""
    a = sim.signal("a", width=4, init=1)
    b = sim.signal("b", width=4, init=2)

    def copy(dst, src):
        dst.write_nb(src.value)
        yield sim.delay(1)

    sim.spawn(copy, a, b)
    sim.spawn(copy, b, a)
    sim.run()

    assert (a.value, b.value) == (2, 1)


def test_scenario_c_reader_sees_old_value_waiter_sees_new(sim):
    """t=10 非阻塞写 0->1：提交前的读者看到 0，被提交唤醒的进程看到 1"""
    s = sim.signal("s")
    observed = {}

    def writer():
        yield sim.delay(10)
        s.write_nb(1)

    def reader():
        yield sim.delay(10)
        observed["reader"] = (sim.now, s.value)

    def sensitized():
        yield sim.wait_on(s)
        observed["woken"] = (sim.now, s.value)

    sim.spawn(writer)
    sim.spawn(reader)
    sim.spawn(sensitized)
    sim.run()

    assert observed == {"reader": (10, 0), "woken": (10, 1)}


def test_wait_on_resumes_with_triggering_signal(sim):
    a = sim.signal("a")
    b = sim.signal("b")
    got = []

    def waiter():
        sig = yield sim.wait_on(a, "b")
        got.append((sim.now, sig.name))

    def poke():
        yield sim.delay(3)
        b.write(1)

    sim.spawn(waiter)
    sim.spawn(poke)
    sim.run()
    assert got == [(3, "b")]


def test_write_same_value_does_not_wake(sim):
    a = sim.signal("a", init=1)
    wakes = []

    def waiter():
        yield sim.wait_on(a)
        wakes.append(sim.now)

    def poke():
        yield sim.delay(1)
        a.write(1)
        yield sim.delay(1)
        a.write(0)

    sim.spawn(waiter)
    sim.spawn(poke)
    sim.run()
    assert wakes == [2]


def test_combinational_chain_settles_in_same_instant(sim):
    """组合逻辑链在同一时刻内通过多个 delta 稳定"""
    a = sim.signal("a", width=8)
    b = sim.signal("b", width=8)
    c = sim.signal("c", width=8)
    sim.always_comb(lambda: b.write(a.value + 1), a, name="inc1")
    sim.always_comb(lambda: c.write(b.value * 2), b, name="dbl")
    settled = []

    def stim():
        yield sim.delay(5)
        a.write(10)
        yield sim.delay(1)
        settled.append(c.value)

    def watch():
        yield sim.delay(5)
        while c.value != 22:
            yield sim.wait_on(c)
        settled.append(sim.now)

    sim.spawn(stim)
    sim.spawn(watch)
    sim.run()
    assert settled == [5, 22]


def test_posedge_negedge_counts(sim):
    clk = sim.signal("clk")
    edges = {"pos": 0, "neg": 0}

    def count(kind, helper):
        while True:
            yield from helper(clk)
            edges[kind] += 1

    sim.spawn(clock, sim, clk, 5, name="clock")
    sim.spawn(count, "pos", sim.posedge)
    sim.spawn(count, "neg", sim.negedge)
    result = sim.run(until=50)

    assert result.status is RunStatus.UNTIL
    assert sim.now == 50
    assert edges == {"pos": 5, "neg": 5}


def test_run_until_can_be_resumed(sim):
    ticks = []

    def ticker():
        for _ in range(4):
            yield sim.delay(10)
            ticks.append(sim.now)

    sim.spawn(ticker)
    first = sim.run(until=25)
    assert first.status is RunStatus.UNTIL
    assert ticks == [10, 20]
    assert sim.now == 25

    second = sim.run()
    assert second.status is RunStatus.EXHAUSTED
    assert ticks == [10, 20, 30, 40]


def test_run_until_in_the_past_rejected(sim):
    def ticker():
        yield sim.delay(10)

    sim.spawn(ticker)
    sim.run(until=5)
    with pytest.raises(ConfigurationError):
        sim.run(until=1)


def test_stop_discards_pending_events(sim):
    trace = []

    def stopper():
        yield sim.delay(5)
        sim.stop("enough")
        trace.append("after-stop")

    def late():
        yield sim.delay(6)
        trace.append("late")

    sim.spawn(stopper)
    sim.spawn(late)
    result = sim.run()

    assert result.status is RunStatus.TERMINATED
    assert result.reason == "enough"
    assert result.time == 5
    assert not result.fatal
    assert trace == ["after-stop"]
    assert sim.terminated
    assert sim.processes == ()
    # 已终止的调度器直接返回保存的结果
    assert sim.run() is result


def test_cleanup_writes_during_stop_are_ignored(sim):
    """进程 finally 中的清理写入不会把正常 stop 变成致命终止"""
    bus = sim.signal("bus", width=8)
    cleaned = []

    def holder():
        try:
            bus.write(0xAA)
            while True:
                yield sim.delay(1)
        finally:
            bus.write(0)
            bus.write_nb(0)
            cleaned.append("holder")

    def spawner():
        try:
            yield sim.wait_on(bus)
        finally:
            sim.spawn(holder)

    def watcher():
        try:
            yield sim.delay(100)
        finally:
            cleaned.append("watcher")

    def ender():
        yield sim.delay(4)
        sim.stop("done")

    sim.spawn(holder)
    sim.spawn(spawner)
    sim.spawn(watcher)
    sim.spawn(ender)
    result = sim.run()

    assert result.status is RunStatus.TERMINATED
    assert result.reason == "done"
    assert not result.fatal
    assert result.time == 4
    # 每个进程都被关闭，写入被丢弃
    assert cleaned == ["holder", "watcher"]
    assert bus.value == 0xAA
    assert bus.pending is None
    assert sim.processes == ()


def test_stop_before_run_takes_effect_immediately(sim):
    """构建阶段调用 stop，run 不执行任何时刻"""
    trace = []

    def proc():
        trace.append(sim.now)
        yield sim.delay(1)

    sim.spawn(proc)
    sim.stop("early")
    result = sim.run()

    assert result.status is RunStatus.TERMINATED
    assert result.reason == "early"
    assert result.time == 0
    assert trace == []
    assert sim.processes == ()


def test_fatal_terminates_and_closes_processes(sim):
    cleaned = []

    def victim():
        try:
            while True:
                yield sim.delay(1)
        finally:
            cleaned.append(sim.now)

    def killer():
        yield sim.delay(3)
        sim.fatal("boom")

    sim.spawn(victim)
    sim.spawn(killer)
    result = sim.run()

    assert result.status is RunStatus.TERMINATED
    assert isinstance(result.error, FatalAssertion)
    assert result.fatal
    assert "boom" in result.reason
    assert cleaned == [3]


def test_delta_cap_raises_deadlock(small_delta_sim):
    sim = small_delta_sim

    def spinner():
        while True:
            yield sim.delay(0)

    sim.spawn(spinner)
    result = sim.run()

    assert isinstance(result.error, SchedulingDeadlock)
    assert result.time == 0


def test_oscillating_comb_loop_hits_delta_cap(small_delta_sim):
    """两个反相器首尾相连，在零时间内无限振荡"""
    sim = small_delta_sim
    a = sim.signal("a")
    b = sim.signal("b")
    sim.always_comb(lambda: b.write(a.value ^ 1), a, name="inv")
    sim.always_comb(lambda: a.write(b.value), b, name="buf")
    result = sim.run()
    assert isinstance(result.error, SchedulingDeadlock)


def test_postponed_region_is_read_only(sim):
    a = sim.signal("a")
    regions = []

    def proc():
        sim.schedule_postponed(lambda: regions.append(sim.region))
        sim.schedule_postponed(lambda: a.write(1))
        yield sim.delay(1)

    sim.spawn(proc)
    result = sim.run()

    assert regions == [Region.POSTPONED]
    assert isinstance(result.error, ConfigurationError)
    assert a.value == 0


def test_step_hook_runs_every_instant(sim):
    times = []
    sim.add_step_hook(lambda: times.append(sim.now))

    def proc():
        yield sim.delay(2)
        yield sim.delay(0)
        yield sim.delay(3)

    sim.spawn(proc)
    sim.run()
    assert times == [0, 2, 5]


def test_recoverable_error_ends_only_that_process(sim):
    trace = []

    def bad():
        yield sim.delay(1)
        raise CheckMismatch("soft")

    def good():
        yield sim.delay(2)
        trace.append(sim.now)

    sim.spawn(bad)
    sim.spawn(good)
    result = sim.run()

    assert result.status is RunStatus.EXHAUSTED
    assert trace == [2]
    assert len(sim.errors) == 1
    assert isinstance(sim.errors[0], CheckMismatch)


def test_programming_error_is_reraised_after_cleanup(sim):
    def buggy():
        yield sim.delay(1)
        raise RuntimeError("bug")

    def idle():
        yield sim.delay(100)

    sim.spawn(buggy)
    sim.spawn(idle)
    with pytest.raises(RuntimeError, match="bug"):
        sim.run()
    assert sim.terminated
    assert sim.processes == ()


def test_unknown_yield_is_configuration_error(sim):
    def proc():
        yield 5

    sim.spawn(proc)
    result = sim.run()
    assert isinstance(result.error, ConfigurationError)


def test_foreign_signal_rejected(sim):
    other = Simulator()
    foreign = other.signal("x")

    with pytest.raises(ConfigurationError):
        sim.write(foreign, 1)
    with pytest.raises(ConfigurationError):
        sim.get_signal("missing")
    with pytest.raises(ConfigurationError):
        sim.signal("dup")
        sim.signal("dup")


def test_spawn_requires_generator(sim):
    with pytest.raises(ConfigurationError):
        sim.spawn(lambda: 42)
    with pytest.raises(ConfigurationError):
        sim.spawn(42)


def test_bad_delay_rejected(sim):
    with pytest.raises(ConfigurationError):
        sim.delay(-1)
    with pytest.raises(ConfigurationError):
        sim.delay(1.5)


def test_identical_runs_are_identical():
    """同样的场景运行两次，轨迹逐项相同"""
    def build_and_run():
        sim = Simulator()
        clk = sim.signal("clk")
        q = sim.signal("q", width=8)
        trace = []

        def counter():
            while True:
                yield from sim.posedge(clk)
                q.write_nb(q.value + 3)

        def monitor():
            while True:
                yield sim.wait_on(q)
                trace.append((sim.now, sim.delta, q.value))

        sim.spawn(clock, sim, clk, 2, cycles=20)
        sim.spawn(counter)
        sim.spawn(monitor)
        result = sim.run()
        return trace, result, [p.pid for p in sim.processes]

    assert build_and_run() == build_and_run()


def test_pids_are_per_simulator():
    pids = []
    for _ in range(2):
        sim = Simulator()

        def proc():
            yield sim.delay(1)

        pids.append((sim.spawn(proc).pid, sim.spawn(proc).pid))
    assert pids[0] == pids[1] == (0, 1)
