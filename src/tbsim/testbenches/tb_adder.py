import numpy as np

from tbsim.hardware import Adder
from tbsim.verif import ExpectedEnd, scenario

WIDTH = 12
VECTORS = 64


@scenario("adder_random", seed=3, expected_end=ExpectedEnd.EXHAUSTED)
def adder_random(ctx):
    """组合加法器：两个随机源分别驱动 a / b，参考结果用 numpy 批量计算。"""
    sim = ctx.sim
    a = sim.signal("a", width=WIDTH)
    b = sim.signal("b", width=WIDTH)
    dut = Adder("adder", sim, a, b)

    src_a = ctx.random(width=WIDTH)
    src_b = ctx.random(width=WIDTH, offset=1)
    a_values = np.array([src_a.next_value() for _ in range(VECTORS)], dtype=np.int64)
    b_values = np.array([src_b.next_value() for _ in range(VECTORS)], dtype=np.int64)
    ref_result = (a_values + b_values) & ((1 << WIDTH) - 1)

    chk = ctx.checker(dut.s)

    def drive_a():
        for value in a_values:
            a.write(int(value))
            yield sim.delay(10)

    def drive_b():
        for value in b_values:
            b.write(int(value))
            yield sim.delay(10)

    def check():
        # 与驱动错开 1 个时间单位，此时组合逻辑已经稳定
        yield sim.delay(1)
        for expected in ref_result:
            chk.sample(int(expected))
            yield sim.delay(10)

    def top():
        yield sim.fork(drive_a, drive_b, check, name="adder_tb")
        ctx.log.info(f"{len(chk.outcomes)} 组向量比较完成，失败 {len(chk.mismatches)} 组")
        dut.report_stats()

    sim.spawn(top, name="top")
