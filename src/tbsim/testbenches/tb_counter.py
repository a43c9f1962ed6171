from tbsim.hardware import Counter
from tbsim.utils.distribution import ProbabilityDistribution
from tbsim.verif import ExpectedEnd, clock, scenario

CYCLES = 40


@scenario("counter_basic", seed=7, expected_end=ExpectedEnd.STOPPED)
def counter_basic(ctx):
    """随机使能的 8 位计数器，与参考模型逐周期比较；复位保持两个周期。"""
    sim = ctx.sim
    clk = sim.signal("clk")
    rst = sim.signal("rst", init=1)
    en = sim.signal("en")

    dut = Counter("counter", sim, clk, rst, en, width=8)
    sim.spawn(clock, sim, clk, 5, name="clock")

    chk = ctx.checker(dut.q)
    # 大约 3/4 的周期打开使能
    enables = ctx.random(width=1, dist=ProbabilityDistribution({0: 1, 1: 3}))

    def stimulus():
        model = 0
        for cycle in range(CYCLES):
            yield from sim.posedge(clk)
            # 上升沿上读到的是本沿提交之前的值
            chk.sample(model)
            if rst.value:
                model = 0
            elif en.value:
                model = (model + 1) & 0xFF
            if cycle == 1:
                rst.write_nb(0)
            en.write_nb(enables.next_value())
            if cycle % 10 == 9:
                # POSTPONED 中记录的是本沿提交之后的稳定值
                ctx.log.strobe("q={:#04x} en={}", dut.q, en)
        dut.report_stats()
        sim.stop("counter_basic done")

    sim.spawn(stimulus, name="stimulus")


@scenario("counter_wrap", seed=11, expected_end=ExpectedEnd.STOPPED)
def counter_wrap(ctx):
    """4 位计数器常开使能，检查 0xF -> 0x0 回绕。"""
    sim = ctx.sim
    clk = sim.signal("clk")
    rst = sim.signal("rst")
    en = sim.signal("en", init=1)

    dut = Counter("counter", sim, clk, rst, en, width=4)
    sim.spawn(clock, sim, clk, 5, name="clock")
    chk = ctx.checker(dut.q)
    ctx.log.monitor(dut.q, fmt="q={:#x}")

    def stimulus():
        for cycle in range(20):
            yield from sim.posedge(clk)
            chk.sample(cycle)
        sim.stop("counter_wrap done")

    sim.spawn(stimulus, name="stimulus")
