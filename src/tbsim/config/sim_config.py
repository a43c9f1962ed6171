#!filepath: src/tbsim/config/sim_config.py
from pydantic import BaseModel, Field


class SimulatorConfig(BaseModel):
    """
    调度器参数

    - max_delta_cycles: 同一时刻允许的 ACTIVE 轮次上限，超过即判定为零时间死循环
    - strict_wait_on:   事件耗尽时仍挂起在 wait_on 上的进程是否算作死锁
    """
    max_delta_cycles: int = Field(10_000, gt=0)
    strict_wait_on: bool = False
