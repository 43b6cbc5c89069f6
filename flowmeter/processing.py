"""Signal filters and the processor that turns sensor readings into flow."""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from bisect import bisect_left, insort_left

from .config import ProcessingConfig
from .evaluator import evaluate_equation
from .safemath import INT32_MAX, INT32_MIN, IntegerOverflowError

ALPHA_SCALE = 1024
DEFAULT_MEDIAN_WINDOW = 5


def _wrap32(value: int) -> int:
    """Reduce ``value`` to a signed 32-bit integer with two's-complement wrap."""
    return (value + 2**31) % 2**32 - 2**31


def _div32(a: int, b: int) -> int:
    """Divide 32-bit integers, truncating toward zero."""
    quotient = abs(a) // abs(b)
    return _wrap32(quotient if (a < 0) == (b < 0) else -quotient)


class Filter(ABC):
    """A stateful filter over a stream of 32-bit integer readings."""

    @abstractmethod
    def initialize(self, value: int) -> None:
        """Pre-populate the filter as if it had already seen ``value``."""

    @abstractmethod
    def process(self, value: int) -> int:
        """Feed one reading and return the filtered value."""


class LowPassFilter(Filter):
    """Exponential moving average in fixed-point integer arithmetic.

    The smoothing factor is stored scaled by 1024.
    """

    def __init__(self, alpha: float) -> None:
        if math.isnan(alpha):
            alpha = 0.0
        alpha = min(max(alpha, 0.0), 1.0)
        self.alpha_scaled = int(alpha * ALPHA_SCALE)
        self.prev_value = 0
        self.initialized = False

    def initialize(self, value: int) -> None:
        self.prev_value = value
        self.initialized = True

    def process(self, value: int) -> int:
        if not self.initialized:
            self.prev_value = value
            self.initialized = True
            return value
        diff = _wrap32(value - self.prev_value)
        adjustment = _div32(_wrap32(diff * self.alpha_scaled), ALPHA_SCALE)
        self.prev_value = _wrap32(self.prev_value + adjustment)
        return self.prev_value


class MedianFilter(Filter):
    """Sliding-window median kept in a sorted list alongside a ring buffer."""

    def __init__(self, window_size: int) -> None:
        if window_size <= 0:
            window_size = DEFAULT_MEDIAN_WINDOW
        self.window_size = window_size
        self._ring = [0] * window_size
        self._sorted: list[int] = []
        self._head = 0

    def initialize(self, value: int) -> None:
        self._ring = [value] * self.window_size
        self._sorted = [value] * self.window_size
        self._head = 0

    def process(self, value: int) -> int:
        oldest = self._ring[self._head]
        index = bisect_left(self._sorted, oldest)
        if index < len(self._sorted) and self._sorted[index] == oldest:
            del self._sorted[index]

        self._ring[self._head] = value
        self._head = (self._head + 1) % self.window_size

        insort_left(self._sorted, value)

        count = len(self._sorted)
        mid = count // 2
        if count % 2 == 0:
            total = _wrap32(self._sorted[mid - 1] + self._sorted[mid])
            return _div32(total, 2)
        return self._sorted[mid]


def _make_filter(filter_type: str, alpha: float, window_size: int) -> Filter | None:
    if filter_type == "low_pass":
        return LowPassFilter(alpha)
    if filter_type == "median":
        return MedianFilter(window_size if window_size > 0 else DEFAULT_MEDIAN_WINDOW)
    return None


def _run(filters: list[Filter], raw: int) -> int:
    value = raw
    for f in filters:
        value = f.process(value)
    return value


class Processor:
    """Holds the latest filtered sensor state and computes the final flow."""

    def __init__(self, config: ProcessingConfig) -> None:
        self.latest_pressure = 0
        self.latest_temperature = 0
        self.pressure_filters: list[Filter] = []
        self.temperature_filters: list[Filter] = []
        self.flow_filters: list[Filter] = []

        targets = {
            "pressure": self.pressure_filters,
            "temperature": self.temperature_filters,
            "flow": self.flow_filters,
        }
        for fc in config.filters:
            built = _make_filter(fc.type, fc.alpha, fc.window_size)
            if built is None:
                continue
            chain = targets.get(fc.target.lower())
            if chain is not None:
                chain.append(built)

    def initialize_filters(self, flow_ref: int, press_ref: int, temp_ref: int) -> None:
        """Pre-populate every filter with its sensor's reference value."""
        for f in self.flow_filters:
            f.initialize(flow_ref)
        for f in self.pressure_filters:
            f.initialize(press_ref)
        for f in self.temperature_filters:
            f.initialize(temp_ref)

    def update_pressure(self, raw: int) -> None:
        """Filter a raw pressure reading and store it as the latest pressure."""
        self.latest_pressure = _run(self.pressure_filters, raw)

    def update_temperature(self, raw: int) -> None:
        """Filter a raw temperature reading and store it as the latest temperature."""
        self.latest_temperature = _run(self.temperature_filters, raw)

    def process_flow(self, raw: int) -> int:
        """Return a raw flow reading passed through the flow filters."""
        return _run(self.flow_filters, raw)

    def calculate_flow(
        self,
        equation: str,
        raw_flow: int,
        time_secs: float,
        ref_flow: int,
        ref_pressure: int,
        ref_temperature: int,
    ) -> int:
        """Filter ``raw_flow`` and evaluate ``equation`` against the current state.

        The result is truncated toward zero; IntegerOverflowError is raised
        when it does not fit in a signed 32-bit integer.
        """
        flow = float(self.process_flow(raw_flow))
        pressure = float(self.latest_pressure)
        temperature = float(self.latest_temperature)
        params = {
            "flow": flow,
            "pressure": pressure,
            "temperature": temperature,
            "t": float(time_secs),
            "F": flow,
            "P": pressure,
            "T": temperature,
            "RefF": float(ref_flow),
            "RefP": float(ref_pressure),
            "RefT": float(ref_temperature),
        }
        result = evaluate_equation(equation, params)
        if math.isnan(result) or result > INT32_MAX or result < INT32_MIN:
            raise IntegerOverflowError()
        return int(result)