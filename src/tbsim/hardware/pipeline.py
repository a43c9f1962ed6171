from __future__ import annotations
from typing import List, Optional

from tbsim.core import ConfigurationError, HwModule, Signal, Simulator


class PipelineReg(HwModule):
    """
    depth 级移位寄存器：q 等于 depth 个时钟沿之前采样到的 d。

    每一级都用非阻塞赋值，所有级在同一个 NBA 批次中提交，
    所以级与级之间不存在竞争。
    """
    def __init__(self, name: str, sim: Simulator,
                 clk: Signal,
                 d: Signal,
                 depth: int = 2,
                 parent: Optional[HwModule] = None):
        super().__init__(name, sim, parent)
        if depth < 1:
            raise ConfigurationError("depth 至少为 1")
        self.clk = clk
        self.d = d
        self.depth = depth
        self.stages: List[Signal] = [self.port(f"stage{i}", d.width) for i in range(depth)]
        self.q = self.stages[-1]

        self._register_stat("shifts", 0)
        self.process(sim.forever, self._on_clock, name="shift_logic")

    def _on_clock(self):
        yield from self.sim.posedge(self.clk)
        self.stages[0].write_nb(self.d.value)
        for i in range(1, self.depth):
            self.stages[i].write_nb(self.stages[i - 1].value)
        self._increment_stat("shifts")
