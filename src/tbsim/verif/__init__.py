from .checker import Checker, CheckOutcome, MismatchPolicy, Verdict
from .regression import (
    ExpectedEnd,
    RegressionRunner,
    Scenario,
    ScenarioContext,
    ScenarioResult,
    ScenarioVerdict,
    SuiteResult,
    scenario,
)
from .stimulus import FileDriven, RandomSeeded, Sequential, Static, StimulusSource, Toggle, clock, drive
from .tb_logger import LogRecord, SimLogger

__all__ = [
    "Checker", "CheckOutcome", "MismatchPolicy", "Verdict",
    "ExpectedEnd", "RegressionRunner", "Scenario", "ScenarioContext",
    "ScenarioResult", "ScenarioVerdict", "SuiteResult", "scenario",
    "FileDriven", "RandomSeeded", "Sequential", "Static", "StimulusSource", "Toggle",
    "clock", "drive",
    "LogRecord", "SimLogger",
]
