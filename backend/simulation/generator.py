"""Synthetic per-floor telemetry generation."""

import logging
import random

from core.clock import Clock, local_now
from core.history import FloorHistory
from core.models import FloorReading
from simulation.config import (
    DEFAULT,
    HUMIDITY_BUCKETS,
    NIGHT_OCCUPANCY,
    NORMAL_HUMIDITY,
    OCCUPANCY_BANDS,
    OFF_PEAK_OCCUPANCY,
    TEMPERATURE_OVERRIDES,
    SimConfig,
)

logger = logging.getLogger(__name__)


class TelemetryGenerator:
    """Produces one reading per floor per tick and keeps bounded history.

    Readings follow time-of-day occupancy patterns, with temperature and
    power derived from occupancy. Occasional out-of-range values are injected
    so every alert tier gets exercised.

    ``generate`` is not reentrant; the caller serializes ticks.
    """

    def __init__(
        self,
        config: SimConfig = DEFAULT,
        rng: random.Random | None = None,
        clock: Clock = local_now,
    ) -> None:
        self.config = config
        self._rng = rng if rng is not None else random.Random()
        self._clock = clock
        self._current: dict[int, FloorReading] = {}
        self._history: dict[int, FloorHistory] = {}
        self.initialize(config.number_of_floors)

    @property
    def floor_ids(self) -> list[int]:
        return sorted(self._current)

    def initialize(self, floor_count: int) -> None:
        """Seed ``floor_count`` floors with an initial reading; history starts empty."""
        now = self._clock()
        hour = now.hour
        self._current = {}
        self._history = {}
        for floor_id in range(1, floor_count + 1):
            self._current[floor_id] = FloorReading(
                floor_id=floor_id,
                name=self.config.floor_name(floor_id),
                occupancy=self.sample_occupancy(hour),
                temperature=self.sample_temperature(),
                humidity=self.sample_humidity(),
                power_consumption=0.0,
                timestamp=now,
                building_id=self.config.building_id,
                building_name=self.config.building_name,
            )
            self._history[floor_id] = FloorHistory(floor_id, self.config.history_retention)
        logger.info("Initialised %d floors for %s", floor_count, self.config.building_name)

    def generate(self) -> list[FloorReading]:
        """Sample a new reading for every floor and append it to history."""
        now = self._clock()
        hour = now.hour
        readings: list[FloorReading] = []
        for floor_id in self.floor_ids:
            previous = self._current[floor_id]
            occupancy = self.sample_occupancy(hour)
            temperature = self.sample_temperature(occupancy)
            humidity = self.sample_humidity()
            reading = FloorReading(
                floor_id=floor_id,
                name=previous.name,
                occupancy=occupancy,
                temperature=temperature,
                humidity=humidity,
                power_consumption=self.calculate_power(occupancy, temperature),
                timestamp=now,
                building_id=previous.building_id,
                building_name=previous.building_name,
            )
            self._history[floor_id].append(reading)
            self._current[floor_id] = reading
            readings.append(reading)
        return readings

    def get_current_data(self) -> list[FloorReading]:
        return [self._current[floor_id] for floor_id in self.floor_ids]

    def get_floor(self, floor_id: int) -> FloorReading | None:
        return self._current.get(floor_id)

    def get_floor_history(self, floor_id: int, limit: int = 60) -> list[FloorReading]:
        """Most recent ``limit`` readings for a floor, oldest first.

        Unknown floors and non-positive limits yield an empty list.
        """
        history = self._history.get(floor_id)
        if history is None or limit <= 0:
            return []
        return history.latest(limit)

    def history_length(self, floor_id: int) -> int:
        history = self._history.get(floor_id)
        return len(history) if history is not None else 0

    def clear_history(self) -> None:
        for history in self._history.values():
            history.clear()

    # ------------------------------------------------------------------
    # Sampling
    # ------------------------------------------------------------------

    def _uniform(self, low: float, span: float) -> float:
        return low + self._rng.random() * span

    def sample_occupancy(self, hour: int) -> int:
        """People on the floor for the given hour of day."""
        cfg = self.config
        low, span = OFF_PEAK_OCCUPANCY
        for first, last, band_low, band_span in OCCUPANCY_BANDS:
            if first <= hour <= last:
                low, span = band_low, band_span
                break
        else:
            if hour >= 19 or hour <= 6:
                low, span = NIGHT_OCCUPANCY
        occupancy = self._uniform(low, span)

        in_business_hours = cfg.business_hours_start <= hour <= cfg.business_hours_end
        if self._rng.random() < cfg.critical_occupancy_probability and in_business_hours:
            occupancy = self._uniform(cfg.critical_occupancy_min, cfg.critical_occupancy_span)

        return max(0, round(occupancy))

    def sample_temperature(self, occupancy: int = 50) -> float:
        """Base temperature plus occupancy heat, with occasional hot spikes."""
        cfg = self.config
        temperature = self._uniform(cfg.temp_base_min_c, cfg.temp_base_span_c)
        temperature += (occupancy / 100) * cfg.temp_occupancy_effect_c

        for probability_attr, low, span in TEMPERATURE_OVERRIDES:
            if self._rng.random() < getattr(cfg, probability_attr):
                temperature = self._uniform(low, span)
                break

        return round(max(cfg.temp_min_c, min(cfg.temp_max_c, temperature)), 1)

    def sample_humidity(self) -> int:
        draw = self._rng.random()
        for upper, low, span in HUMIDITY_BUCKETS:
            if draw < upper:
                return round(self._uniform(low, span))
        return round(self._uniform(*NORMAL_HUMIDITY))

    def calculate_power(self, occupancy: int, temperature: float) -> float:
        """Power draw in kWh, with an occasional overload spike."""
        cfg = self.config
        power = cfg.power_base_kwh + occupancy * cfg.power_per_person_kwh + temperature * cfg.power_per_degree_kwh
        if self._rng.random() < cfg.power_spike_probability:
            power *= cfg.power_spike_factor
        return round(max(0.0, power), 2)
