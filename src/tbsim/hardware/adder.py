from __future__ import annotations
from typing import Optional

from tbsim.core import HwModule, Signal, Simulator


class Adder(HwModule):
    """组合加法器：任一输入变化时立即（阻塞赋值）更新 s，进位丢弃。"""
    def __init__(self, name: str, sim: Simulator,
                 a: Signal,
                 b: Signal,
                 width: Optional[int] = None,
                 parent: Optional[HwModule] = None):
        super().__init__(name, sim, parent)
        self.a = a
        self.b = b
        self.width = width or max(a.width, b.width)
        self.s = self.port("s", self.width)

        self._register_stat("evaluations", 0)
        sim.always_comb(self._evaluate, a, b, name=f"{self.full_name}.add_logic")

    def _evaluate(self):
        self.s.write(self.a.value + self.b.value)
        self._increment_stat("evaluations")
