# tests/conftest.py
from __future__ import annotations

import pytest
from loguru import logger

from tbsim.config import SimulatorConfig
from tbsim.core import Simulator


@pytest.fixture(autouse=True)
def disable_file_logger():
    logger.remove()
    logger.add(lambda msg: None)  # or sys.stderr
    yield


@pytest.fixture
def sim() -> Simulator:
    return Simulator()


@pytest.fixture
def small_delta_sim() -> Simulator:
    """delta 上限很小的调度器，方便触发零时间死循环"""
    return Simulator(SimulatorConfig(max_delta_cycles=50))


@pytest.fixture
def hex_record_file(tmp_path):
    path = tmp_path / "stim.hex"
    path.write_text(
        "// 激励文件\n"
        "1f 2a\n"
        "zz      # 非法记录\n"
        "0_3\n",
        encoding="utf-8",
    )
    return path
