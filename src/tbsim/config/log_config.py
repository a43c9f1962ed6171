#!filepath: src/tbsim/config/log_config.py
from typing import Optional

from pydantic import BaseModel


class LogConfig(BaseModel):
    level: str = "INFO"
    console: bool = True
    # 为 None 时不落盘；否则每个场景在该目录下写一个 <scenario>.log
    dir: Optional[str] = None
    rotation: str = "10 MB"
    retention: str = "30 days"
