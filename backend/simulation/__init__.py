"""Simulation module - synthetic floor telemetry."""

from simulation.config import DEFAULT as DEFAULT_SIM_CONFIG
from simulation.config import SimConfig
from simulation.generator import TelemetryGenerator

__all__ = [
    "DEFAULT_SIM_CONFIG",
    "SimConfig",
    "TelemetryGenerator",
]
