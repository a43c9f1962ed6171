"""
离散事件模拟器 (Discrete-Event Simulation) 内核

这个包提供了一个基于协程的硬件验证仿真内核。
主要组件包括：
- Event / Region: 事件及其所在的执行区域 (ACTIVE / NBA / POSTPONED)
- Signal: 固定位宽的信号，区分阻塞赋值与非阻塞赋值
- Simulator: 核心调度器，管理事件队列、delta 循环和进程
- Process / ForkGroup: 协作式进程与 fork/join 屏障
- HwModule: 硬件模块基类，所有 DUT 行为模型的基础

使用示例：
    from tbsim.core import Simulator

    sim = Simulator()
    clk = sim.signal("clk")
    q = sim.signal("q", width=8)

    def driver():
        yield from sim.posedge(clk)
        q.write_nb(0xFF)

    def clock():
        while True:
            yield sim.delay(5)
            clk.write(1 - clk.value)

    sim.spawn(driver)
    sim.spawn(clock)
    sim.run(until=100)
"""

from tbsim.errors import (
    CheckMismatch,
    ConfigurationError,
    FatalAssertion,
    SchedulingDeadlock,
    SimulationError,
    StimulusExhaustion,
)
from .event import Event, Region
from .signal import Signal
from .simulator import (
    Delay,
    ForkGroup,
    Join,
    JoinAny,
    Process,
    ProcessState,
    RunResult,
    RunStatus,
    Simulator,
    WaitOn,
)
from .hw_module import HwModule

__all__ = [
    "CheckMismatch", "ConfigurationError", "FatalAssertion", "SchedulingDeadlock",
    "SimulationError", "StimulusExhaustion",
    "Event", "Region", "Signal",
    "Delay", "WaitOn", "Join", "JoinAny",
    "Process", "ProcessState", "ForkGroup",
    "RunResult", "RunStatus", "Simulator",
    "HwModule",
]
