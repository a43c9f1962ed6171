from .tb_adder import adder_random
from .tb_counter import counter_basic, counter_wrap
from .tb_pipeline import pipeline_random, pipeline_sequence

# tbsim 命令行默认运行的回归集，按此顺序执行
ALL_SCENARIOS = [
    counter_basic,
    counter_wrap,
    pipeline_random,
    pipeline_sequence,
    adder_random,
]

__all__ = ["ALL_SCENARIOS", "adder_random", "counter_basic", "counter_wrap",
           "pipeline_random", "pipeline_sequence"]
