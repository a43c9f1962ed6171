from __future__ import annotations

import itertools
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, List, Optional, Union

from loguru import logger

from tbsim.core import Signal, Simulator

# sink 只输出仿真时间，不输出墙钟时间
SINK_FORMAT = "t={extra[sim_time]:>8} | {level: <8} | {extra[tb_name]} | {message}"

_VERDICT_LEVEL = {"PASS": "INFO", "MISMATCH": "ERROR", "FATAL": "CRITICAL"}

_keys = itertools.count()


@dataclass(frozen=True)
class LogRecord:
    time: int
    level: str
    message: str


class SimLogger:
    """
    场景级日志记录器。

    - 所有记录按写入顺序追加到内存（records），带仿真时间戳，写入后不可修改
    - 可以同时挂多个 loguru sink（控制台、文件、任意可调用对象），
      每个 sink 只接收本记录器的消息
    """

    def __init__(self, sim: Simulator, name: str = "tb"):
        self.sim = sim
        self.name = name
        self._key = f"{name}#{next(_keys)}"
        self._log = logger.bind(tb_key=self._key, tb_name=name)
        self._records: List[LogRecord] = []
        self._outcomes: List[Any] = []
        self._handlers: List[int] = []

    @property
    def records(self) -> tuple:
        return tuple(self._records)

    @property
    def outcomes(self) -> tuple:
        return tuple(self._outcomes)

    # --- sinks ---

    def _owns(self, record) -> bool:
        return record["extra"].get("tb_key") == self._key

    def add_sink(self, sink: Callable[[Any], Any], level: str = "DEBUG") -> int:
        handler_id = logger.add(sink, level=level, format=SINK_FORMAT, filter=self._owns)
        self._handlers.append(handler_id)
        return handler_id

    def add_console(self, level: str = "INFO", stream=None) -> int:
        handler_id = logger.add(stream or sys.stderr, level=level, format=SINK_FORMAT,
                                filter=self._owns, colorize=False)
        self._handlers.append(handler_id)
        return handler_id

    def add_file(self, path: Union[str, Path], level: str = "DEBUG") -> int:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        handler_id = logger.add(str(path), level=level, format=SINK_FORMAT, filter=self._owns,
                                mode="w", encoding="utf-8")
        self._handlers.append(handler_id)
        return handler_id

    def close(self) -> None:
        for handler_id in self._handlers:
            logger.remove(handler_id)
        self._handlers.clear()

    def __enter__(self) -> "SimLogger":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    # ----------- 日志方法 -----------

    def log(self, level: str, message: str) -> LogRecord:
        record = LogRecord(self.sim.now, level, str(message))
        self._records.append(record)
        self._log.bind(sim_time=record.time).log(level, record.message)
        return record

    def debug(self, message: str) -> LogRecord:
        return self.log("DEBUG", message)

    def info(self, message: str) -> LogRecord:
        return self.log("INFO", message)

    def warning(self, message: str) -> LogRecord:
        return self.log("WARNING", message)

    def error(self, message: str) -> LogRecord:
        return self.log("ERROR", message)

    def critical(self, message: str) -> LogRecord:
        return self.log("CRITICAL", message)

    def record_outcome(self, outcome) -> LogRecord:
        self._outcomes.append(outcome)
        verdict = outcome.verdict.name
        return self.log(
            _VERDICT_LEVEL.get(verdict, "INFO"),
            f"CHECK {outcome.signal_id}: observed={outcome.observed:#x} "
            f"expected={outcome.expected:#x} -> {verdict}",
        )

    # ----------- $strobe / $monitor -----------

    def strobe(self, fmt: str, *signals: Signal) -> None:
        """在本时刻的 POSTPONED 区域记录信号的稳定值。"""
        def _strobe():
            self.info(fmt.format(*(s.value for s in signals)))

        self.sim.schedule_postponed(_strobe)

    def monitor(self, *signals: Signal, fmt: Optional[str] = None) -> None:
        """每个时刻结束时，只要任一信号的值与上次记录不同就记录一次。"""
        last = None

        def _monitor():
            nonlocal last
            values = tuple(s.value for s in signals)
            if values == last:
                return
            last = values
            if fmt is not None:
                self.info(fmt.format(*values))
            else:
                self.info(" ".join(f"{s.name}={v:#x}" for s, v in zip(signals, values)))

        self.sim.add_step_hook(_monitor)
