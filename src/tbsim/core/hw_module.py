# core/hw_module.py

from __future__ import annotations
from typing import Any, Dict, List, Optional

from loguru import logger

from .signal import Signal
from .simulator import Process, Simulator


class HwModule:
    """
    所有硬件模块（DUT 行为模型）的通用基类。

    模块只通过信号与测试平台交互：端口用 port() 注册到调度器，
    名字带层次前缀，例如 "top.counter.q"。
    """
    def __init__(self, name: str, sim: "Simulator", parent: Optional[HwModule] = None):

        self.name: str = name
        self.sim: Simulator = sim
        self.parent: Optional[HwModule] = parent

        # --- 容器功能 ---
        self._children: List[HwModule] = []
        if self.parent:
            self.parent._add_child_module(self)

        # --- 核心功能 ---
        if self.parent:
            self.full_name: str = f"{self.parent.full_name}.{self.name}"
        else:
            self.full_name: str = self.name

        self.stats: Dict[str, int | float] = {}

    def _add_child_module(self, child_module: HwModule):
        self._children.append(child_module)

    @property
    def children(self) -> List[HwModule]:
        return list(self._children)

    def port(self, name: str, width: int = 1, init: int = 0) -> Signal:
        """在调度器中注册一个属于本模块的信号。"""
        return self.sim.signal(f"{self.full_name}.{name}", width, init)

    def process(self, body: Any, *args: Any, name: Optional[str] = None, **kwargs: Any) -> Process:
        """启动一个属于本模块的进程，进程名带层次前缀。"""
        label = name or getattr(body, "__name__", "proc")
        return self.sim.spawn(body, *args, name=f"{self.full_name}.{label}", **kwargs)

    def _register_stat(self, name: str, initial_value: int | float = 0):
        self.stats[name] = initial_value

    def _increment_stat(self, name: str, value: int | float = 1):
        if name not in self.stats:
            self._register_stat(name, 0)
        self.stats[name] += value

    def report_stats(self) -> None:
        """
        输出此模块的统计，并【递归】输出所有子模块的统计。
        """
        logger.info(f"--- 统计报告: [{self.full_name}] ---")
        if not self.stats:
            logger.info("    (无统计数据)")
        else:
            max_key_len = max(len(key) for key in self.stats.keys())
            for key, value in self.stats.items():
                logger.info(f"    {key:<{max_key_len}} : {value}")

        for child in self._children:
            child.report_stats()
