"""Simulated sensors that emit readings at a fixed rate on their own threads."""

from __future__ import annotations

import math
import random
import threading
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

from .config import SensorConfig
from .evaluator import EquationError, evaluate_equation


class SensorType(str, Enum):
    """The kind of quantity a sensor measures."""

    FLOW = "Flow"
    PRESSURE = "Pressure"
    TEMPERATURE = "Temperature"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class SensorData:
    """One reading from a sensor; ``timestamp`` is a ``time.monotonic()`` value."""

    type: SensorType
    value: int
    timestamp: float


def _wrap32(value: int) -> int:
    return (value + 2**31) % 2**32 - 2**31


def read_sensor_value(
    config: SensorConfig,
    start_time: float,
    params: Mapping[str, Any] | None,
    rng: random.Random,
) -> int:
    """Evaluate the sensor's equation at the time elapsed since ``start_time``
    and add noise drawn from ``rng``.

    ``start_time`` is a ``time.monotonic()`` value. The equation sees the
    given parameters plus ``t``, the elapsed seconds. Noise is uniform in
    ``[-amplitude, +amplitude]`` unless the distribution is ``"normal"``, in
    which case the amplitude is the standard deviation. The result is
    truncated toward zero to a 32-bit integer.
    """
    parameters = dict(params or {})
    parameters["t"] = time.monotonic() - start_time
    base_value = evaluate_equation(config.equation, parameters)

    if config.noise_distribution == "normal":
        noise = rng.gauss(0.0, 1.0) * config.noise_amplitude
    else:
        noise = (rng.random() * 2 - 1) * config.noise_amplitude

    final_value = base_value + noise
    if not math.isfinite(final_value):
        raise EquationError(f"sensor value {final_value} is not finite")
    return _wrap32(int(final_value))


class SensorThread(threading.Thread):
    """Background thread that samples one sensor at its configured frequency.

    Each reading is handed to ``sink``; readings whose equation fails are
    reported on standard output and skipped.
    """

    def __init__(
        self,
        sensor_type: SensorType,
        config: SensorConfig,
        params: Mapping[str, Any] | None,
        seed: int,
        sink: Callable[[SensorData], Any],
    ) -> None:
        if config.frequency_hz <= 0:
            raise ValueError(
                f"frequency_hz must be positive, got {config.frequency_hz}"
            )
        super().__init__(name=f"{sensor_type} sensor", daemon=True)
        self.sensor_type = sensor_type
        self.config = config
        self.params = params
        self.period = 1.0 / config.frequency_hz
        self.start_time = time.monotonic()
        self._sink = sink
        self._rng = random.Random(seed)
        self._stopped = threading.Event()

    def run(self) -> None:
        next_tick = time.monotonic() + self.period
        while not self._stopped.wait(max(0.0, next_tick - time.monotonic())):
            try:
                value = read_sensor_value(
                    self.config, self.start_time, self.params, self._rng
                )
            except EquationError as exc:
                print(f"Error reading {self.sensor_type}: {exc}")
            else:
                self._sink(SensorData(self.sensor_type, value, time.monotonic()))
            next_tick += self.period
            now = time.monotonic()
            if next_tick <= now:
                # Drop missed ticks rather than bursting to catch up.
                next_tick = now + self.period

    def stop(self) -> None:
        """Ask the thread to finish after its current reading."""
        self._stopped.set()


def start_sensor(
    sensor_type: SensorType,
    config: SensorConfig,
    params: Mapping[str, Any] | None,
    seed: int,
    sink: Callable[[SensorData], Any],
) -> SensorThread:
    """Start a sensor simulation and return its running thread."""
    thread = SensorThread(sensor_type, config, params, seed, sink)
    thread.start()
    return thread