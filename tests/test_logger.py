#!filepath: tests/test_logger.py
from tbsim.core import Simulator
from tbsim.verif import SimLogger


def test_records_carry_simulation_time(sim):
    log = SimLogger(sim, "tb")

    def proc():
        log.info("start")
        yield sim.delay(7)
        log.warning("later")

    sim.spawn(proc)
    sim.run()

    assert [(r.time, r.level, r.message) for r in log.records] == [
        (0, "INFO", "start"),
        (7, "WARNING", "later"),
    ]


def test_sink_only_receives_own_messages():
    sim = Simulator()
    first = SimLogger(sim, "first")
    second = SimLogger(sim, "second")
    got = []
    first.add_sink(lambda msg: got.append(str(msg)))

    first.info("mine")
    second.info("not mine")
    first.close()

    assert len(got) == 1
    assert "mine" in got[0]
    assert "| first |" in got[0]


def test_sink_output_is_identical_across_runs():
    """sink 中只有仿真时间，两次相同的运行输出逐字节一致"""
    def run_once():
        sim = Simulator()
        out = []
        with SimLogger(sim, "tb") as log:
            log.add_sink(lambda msg: out.append(str(msg)))

            def proc():
                for i in range(3):
                    log.debug(f"tick {i}")
                    yield sim.delay(4)

            sim.spawn(proc)
            sim.run()
        return out

    first = run_once()
    assert first == run_once()
    assert first[1].startswith("t=       4 | DEBUG")


def test_close_detaches_sinks_but_keeps_records(sim):
    log = SimLogger(sim, "tb")
    got = []
    log.add_sink(lambda msg: got.append(str(msg)))
    log.info("one")
    log.close()
    log.info("two")

    assert len(got) == 1
    assert [r.message for r in log.records] == ["one", "two"]


def test_add_file_writes_scenario_log(sim, tmp_path):
    path = tmp_path / "logs" / "tb.log"
    log = SimLogger(sim, "tb")
    log.add_file(path)
    log.error("bad thing {not a placeholder}")
    log.close()

    text = path.read_text(encoding="utf-8")
    assert "ERROR" in text
    assert "bad thing {not a placeholder}" in text


def test_strobe_records_settled_values(sim):
    """$strobe 在 POSTPONED 区域记录，看到的是 NBA 提交之后的值"""
    log = SimLogger(sim, "tb")
    x = sim.signal("x", width=8)

    def proc():
        yield sim.delay(3)
        x.write_nb(5)
        log.strobe("x={}", x)
        log.info(f"immediate x={x.value}")

    sim.spawn(proc)
    sim.run()

    assert [(r.time, r.message) for r in log.records] == [(3, "immediate x=0"), (3, "x=5")]


def test_monitor_records_only_changes(sim):
    log = SimLogger(sim, "tb")
    x = sim.signal("x", width=4)
    log.monitor(x)

    def proc():
        for value in (1, 1, 2):
            yield sim.delay(10)
            x.write(value)

    sim.spawn(proc)
    sim.run()

    assert [(r.time, r.message) for r in log.records] == [
        (0, "x=0x0"),
        (10, "x=0x1"),
        (30, "x=0x2"),
    ]
