from __future__ import annotations
from typing import Optional

from tbsim.core import HwModule, Signal, Simulator


class Counter(HwModule):
    """
    同步复位、带使能的计数器。

    在 clk 上升沿采样 rst / en，q 用非阻塞赋值更新，
    因此同一沿上读取 q 的检查器看到的是更新前的值。
    """
    def __init__(self, name: str, sim: Simulator,
                 clk: Signal,
                 rst: Signal,
                 en: Signal,
                 width: int = 8,
                 parent: Optional[HwModule] = None):
        super().__init__(name, sim, parent)
        self.clk = clk
        self.rst = rst
        self.en = en
        self.width = width
        self.q = self.port("q", width)

        self._register_stat("increments", 0)
        self._register_stat("resets", 0)
        self.process(sim.forever, self._on_clock, name="count_logic")

    def _on_clock(self):
        yield from self.sim.posedge(self.clk)
        if self.rst.value:
            self.q.write_nb(0)
            self._increment_stat("resets")
        elif self.en.value:
            self.q.write_nb(self.q.value + 1)
            self._increment_stat("increments")
