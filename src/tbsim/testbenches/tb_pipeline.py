from tbsim.hardware import PipelineReg
from tbsim.verif import ExpectedEnd, Sequential, clock, drive, scenario

DEPTH = 3
CYCLES = 32


@scenario("pipeline_random", seed=2024, expected_end=ExpectedEnd.STOPPED)
def pipeline_random(ctx):
    """3 级流水寄存器：驱动与采样两个分支 fork 出去，join 之后结束仿真。"""
    sim = ctx.sim
    clk = sim.signal("clk")
    d = sim.signal("d", width=16)
    pipe = PipelineReg("pipe", sim, clk, d, depth=DEPTH)
    sim.spawn(clock, sim, clk, 5, name="clock")

    data = ctx.random(width=16)
    chk = ctx.checker(pipe.q)
    history = []

    def driver():
        for _ in range(CYCLES):
            yield from sim.posedge(clk)
            d.write_nb(data.next_value())
        return "driver"

    def monitor():
        for cycle in range(CYCLES):
            yield from sim.posedge(clk)
            history.append(d.value)
            # 第 k 个沿之前 q 上的值是第 k-DEPTH 个沿采到的 d
            chk.sample(history[cycle - DEPTH] if cycle >= DEPTH else 0)
        return "monitor"

    def top():
        results = yield sim.fork(driver, monitor, name="pipe_tb")
        ctx.log.info(f"fork 分支全部结束: {results}")
        pipe.report_stats()
        sim.stop("pipeline_random done")

    sim.spawn(top, name="top")


@scenario("pipeline_sequence", expected_end=ExpectedEnd.STOPPED)
def pipeline_sequence(ctx):
    """固定序列经过 2 级流水，由 Checker.watch 逐沿比较。"""
    sim = ctx.sim
    clk = sim.signal("clk")
    d = sim.signal("d", width=8)
    pipe = PipelineReg("pipe", sim, clk, d, depth=2)
    sim.spawn(clock, sim, clk, 4, name="clock")

    values = [0x11, 0x22, 0x33, 0x44, 0x55, 0xA5, 0xFF, 0x00]
    # drive 在第 k 个沿写入的值，要到第 k+depth+1 个沿之前才出现在 q 上
    expected = Sequential([0] * (pipe.depth + 1) + values)
    chk = ctx.checker(pipe.q)

    def top():
        group = sim.fork(drive(sim, d, Sequential(values), clk=clk),
                         chk.watch(expected, clk))
        driven, checked = yield sim.join(group)
        ctx.log.info(f"写入 {driven} 个值，比较 {checked} 次")
        sim.stop("pipeline_sequence done")

    sim.spawn(top, name="top")
