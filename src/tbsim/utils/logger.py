#!filepath: src/tbsim/utils/logger.py
import os
import sys

from loguru import logger

from tbsim.config import LogConfig

# 场景日志通过 bind() 携带这些字段；内核自身的日志没有，给默认值
_DEFAULT_EXTRA = {"sim_time": "-", "tb_name": "kernel"}

CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "t={extra[sim_time]} | {extra[tb_name]} | {message}"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | t={extra[sim_time]} | {extra[tb_name]} | {message}"


def configure_logging(config: LogConfig = None) -> None:
    """
    配置全局 logger：移除默认 handler，按配置添加控制台和滚动文件。

    场景级的记录（SimLogger）另有自己的 sink，这里只负责进程级输出。
    """
    config = config or LogConfig()

    logger.remove()
    logger.configure(extra=dict(_DEFAULT_EXTRA))

    if config.console:
        logger.add(
            sys.stderr,
            level=config.level,
            format=CONSOLE_FORMAT,
            backtrace=False,
            diagnose=False,
        )

    if config.dir:
        os.makedirs(config.dir, exist_ok=True)
        logger.add(
            sink=os.path.join(config.dir, "tbsim_{time:YYYY-MM-DD}.log"),
            rotation=config.rotation,
            retention=config.retention,
            level=config.level,
            format=FILE_FORMAT,
            backtrace=True,
            diagnose=False,
        )

    logger.debug("-----------Logger initialized successfully.-----------")
