from .adder import Adder
from .counter import Counter
from .pipeline import PipelineReg

__all__ = ["Adder", "Counter", "PipelineReg"]
