"""RampForge — concurrent HTTP load generation and latency measurement."""

from __future__ import annotations

from rampforge._internal.config import RunConfig, Thresholds, load_config
from rampforge._internal.errors import (
    ConfigurationError,
    EngineError,
    RampForgeError,
    ReportingError,
)
from rampforge.dsl.endpoints import AuthFlow, EndpointSpec
from rampforge.dsl.selector import EndpointSelector
from rampforge.engine.runner import run_load_test
from rampforge.engine.session import RunSession
from rampforge.metrics.models import RequestOutcome, RunReport, Verdict
from rampforge.metrics.recorder import MetricsRecorder
from rampforge.metrics.report import build_report

__version__ = "0.1.0"

__all__ = [
    "AuthFlow",
    "ConfigurationError",
    "EndpointSelector",
    "EndpointSpec",
    "EngineError",
    "MetricsRecorder",
    "RampForgeError",
    "ReportingError",
    "RequestOutcome",
    "RunConfig",
    "RunReport",
    "RunSession",
    "Thresholds",
    "Verdict",
    "build_report",
    "load_config",
    "run_load_test",
]
