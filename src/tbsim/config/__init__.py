from .sim_config import SimulatorConfig
from .log_config import LogConfig
from .regression_config import RegressionConfig

__all__ = ["SimulatorConfig", "LogConfig", "RegressionConfig"]
