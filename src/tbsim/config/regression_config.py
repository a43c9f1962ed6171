#!filepath: src/tbsim/config/regression_config.py
from __future__ import annotations

import os
from typing import Optional

import yaml
from pydantic import BaseModel, Field

from .log_config import LogConfig
from .sim_config import SimulatorConfig


class RegressionConfig(BaseModel):
    """
    回归运行配置

    语义：
      - sim:  每个场景新建调度器时使用的参数
      - log:  控制台 / 文件日志
      - seed: 覆盖场景自带的随机种子（None 表示使用场景自己的种子）
    """
    sim: SimulatorConfig = Field(default_factory=SimulatorConfig)
    log: LogConfig = Field(default_factory=LogConfig)
    fail_fast: bool = False
    seed: Optional[int] = None

    @classmethod
    def load(cls, path: str) -> "RegressionConfig":
        """读取 YAML 配置文件；文件为空时使用全部默认值。"""
        if not os.path.exists(path):
            raise FileNotFoundError(f"Config file not found: {path}")

        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}

        return cls(**raw)
