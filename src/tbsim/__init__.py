"""
tbsim: 确定性的离散事件测试平台仿真内核。

- tbsim.core:        调度器、信号、进程、fork/join、HwModule
- tbsim.verif:       激励源、检查器、场景日志、回归运行器
- tbsim.hardware:    演示用的 DUT 行为模型
- tbsim.testbenches: 内置回归场景
"""

from tbsim.core import Signal, Simulator
from tbsim.errors import (
    CheckMismatch,
    ConfigurationError,
    FatalAssertion,
    SchedulingDeadlock,
    SimulationError,
    StimulusExhaustion,
)

__version__ = "0.1.0"

__all__ = [
    "Signal", "Simulator",
    "CheckMismatch", "ConfigurationError", "FatalAssertion", "SchedulingDeadlock",
    "SimulationError", "StimulusExhaustion",
]
