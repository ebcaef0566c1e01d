"""Centralised simulation tunables.

Every magic number that controls the synthetic telemetry lives here.
Create a custom ``SimConfig`` to tweak values for testing::

    cfg = SimConfig(critical_occupancy_probability=1.0)
    gen = TelemetryGenerator(cfg, rng=random.Random(7))
"""

from dataclasses import dataclass

from core.history import DEFAULT_RETENTION


@dataclass(frozen=True)
class SimConfig:
    """All simulation tunables, grouped by category."""

    # --- Building ---
    number_of_floors: int = 5
    building_id: int = 1
    building_name: str = "Main Building"
    floor_name_prefix: str = "Floor"

    # --- History ---
    history_retention: int = DEFAULT_RETENTION  # readings kept per floor

    # --- Occupancy (people) ---
    critical_occupancy_probability: float = 0.15  # only during business hours
    critical_occupancy_min: float = 90.0
    critical_occupancy_span: float = 10.0
    business_hours_start: int = 9
    business_hours_end: int = 18  # inclusive

    # --- Temperature (°C) ---
    temp_base_min_c: float = 20.0
    temp_base_span_c: float = 4.0
    temp_occupancy_effect_c: float = 3.0  # added at 100 people
    temp_critical_probability: float = 0.10
    temp_warning_probability: float = 0.08
    temp_info_probability: float = 0.12
    temp_min_c: float = 18.0
    temp_max_c: float = 32.0

    # --- Power (kWh) ---
    power_base_kwh: float = 60.0
    power_per_person_kwh: float = 0.8
    power_per_degree_kwh: float = 3.0
    power_spike_probability: float = 0.12
    power_spike_factor: float = 1.3

    def floor_name(self, floor_id: int) -> str:
        return f"{self.floor_name_prefix} {floor_id}"


# Occupancy base ranges by hour of day: (first_hour, last_hour, low, span).
# Hours not covered fall back to ``OFF_PEAK_OCCUPANCY``.
OCCUPANCY_BANDS: tuple[tuple[int, int, float, float], ...] = (
    (9, 12, 60.0, 35.0),  # morning peak
    (13, 14, 30.0, 25.0),  # lunch
    (15, 18, 50.0, 40.0),  # afternoon
)
NIGHT_OCCUPANCY: tuple[float, float] = (5.0, 20.0)  # 19:00-06:59
OFF_PEAK_OCCUPANCY: tuple[float, float] = (20.0, 35.0)

# Temperature overrides, checked in order, each on an independent draw:
# (probability attribute on SimConfig, low, span).
TEMPERATURE_OVERRIDES: tuple[tuple[str, float, float], ...] = (
    ("temp_critical_probability", 29.5, 2.5),
    ("temp_warning_probability", 28.0, 1.4),
    ("temp_info_probability", 26.0, 1.9),
)

# Humidity buckets on a single draw: (cumulative upper bound, low, span).
HUMIDITY_BUCKETS: tuple[tuple[float, float, float], ...] = (
    (0.08, 81.0, 4.0),  # critical high
    (0.15, 76.0, 4.0),  # warning high
    (0.25, 71.0, 4.0),  # info high
    (0.30, 15.0, 5.0),  # critical low
    (0.36, 20.0, 2.0),  # warning low
    (0.44, 22.0, 3.0),  # info low
)
NORMAL_HUMIDITY: tuple[float, float] = (30.0, 40.0)


DEFAULT = SimConfig()
