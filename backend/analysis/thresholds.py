"""Alert threshold tables.

High-side comparisons for temperature, power and occupancy are inclusive
(``>=``); humidity bands are strict (``>`` / ``<``).
"""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class OccupancyThresholds:
    warning: int = 85
    critical: int = 95
    deviation_window: int = 7  # samples in the rolling average
    deviation_people: float = 30.0


@dataclass(frozen=True)
class TemperatureThresholds:
    info: float = 26.0
    warning: float = 28.0
    critical: float = 29.5
    low: float = 18.0
    # Crowded but cold floor: cooling likely overdriven
    decoupled_occupancy: int = 70
    decoupled_temperature: float = 21.0


@dataclass(frozen=True)
class HumidityThresholds:
    high_info: float = 70.0
    high_warning: float = 75.0
    high_critical: float = 80.0
    low_info: float = 25.0
    low_warning: float = 22.0
    low_critical: float = 20.0


@dataclass(frozen=True)
class PowerThresholds:
    warning: float = 150.0
    critical: float = 200.0
    idle_occupancy: int = 20  # below this the floor counts as nearly empty
    idle_power: float = 100.0


@dataclass(frozen=True)
class ThermalOverloadThresholds:
    critical_temperature: float = 26.0
    critical_power: float = 180.0
    warning_temperature: float = 25.0
    warning_power: float = 150.0
    info_temperature: float = 24.0
    info_power: float = 140.0
    info_occupancy: int = 80


@dataclass(frozen=True)
class SuddenChangeThresholds:
    min_history: int = 3
    occupancy_delta: float = 30.0
    temperature_delta: float = 3.0


@dataclass(frozen=True)
class PredictiveThermalThresholds:
    critical_temperature: float = 29.5
    critical_power: float = 180.0
    warning_temperature: float = 28.0
    warning_power: float = 150.0


@dataclass(frozen=True)
class AlertThresholds:
    """Every rule's cutoffs in one place."""

    occupancy: OccupancyThresholds = field(default_factory=OccupancyThresholds)
    temperature: TemperatureThresholds = field(default_factory=TemperatureThresholds)
    humidity: HumidityThresholds = field(default_factory=HumidityThresholds)
    power: PowerThresholds = field(default_factory=PowerThresholds)
    thermal: ThermalOverloadThresholds = field(default_factory=ThermalOverloadThresholds)
    sudden_change: SuddenChangeThresholds = field(default_factory=SuddenChangeThresholds)
    predictive_thermal: PredictiveThermalThresholds = field(default_factory=PredictiveThermalThresholds)


DEFAULT_THRESHOLDS = AlertThresholds()
