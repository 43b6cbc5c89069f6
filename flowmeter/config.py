"""Configuration model and loader for the flow meter simulation."""

from __future__ import annotations

import json
from dataclasses import MISSING, dataclass, field, fields
from pathlib import Path
from typing import Any, Callable

INT32_MIN = -(2**31)
INT32_MAX = 2**31 - 1
INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1

MIN_PRESSURE = 10
MAX_PRESSURE = 250
MIN_TEMPERATURE = 10
MAX_TEMPERATURE = 250
MAX_FLOW = 16_777_215
FILTER_TYPES = ("low_pass", "median")


class ConfigError(ValueError):
    """Raised when a configuration cannot be read or is invalid."""


_Converter = Callable[[Any, str], Any]


def _join(path: str, name: str) -> str:
    return f"{path}.{name}" if path else name


def _describe(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    if isinstance(value, dict):
        return "object"
    return type(value).__name__


def _integer(low: int, high: int) -> _Converter:
    def convert(value: Any, path: str) -> int:
        if value is None:
            return 0
        if isinstance(value, bool) or not isinstance(value, int):
            raise ConfigError(f"{path}: expected an integer, got {_describe(value)}")
        if not low <= value <= high:
            raise ConfigError(f"{path}: {value} is out of range")
        return value

    return convert


def _float(value: Any, path: str) -> float:
    if value is None:
        return 0.0
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError(f"{path}: expected a number, got {_describe(value)}")
    return float(value)


def _string(value: Any, path: str) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ConfigError(f"{path}: expected a string, got {_describe(value)}")
    return value


def _from_mapping(cls: type, data: Any, path: str) -> Any:
    if data is None:
        return cls()
    if not isinstance(data, dict):
        where = path or "configuration"
        raise ConfigError(f"{where}: expected an object, got {_describe(data)}")
    values = {
        f.name: f.metadata["convert"](data[f.name], _join(path, f.name))
        for f in fields(cls)
        if f.name in data
    }
    return cls(**values)


def _nested(cls: type) -> _Converter:
    def convert(value: Any, path: str) -> Any:
        return _from_mapping(cls, value, path)

    return convert


def _list_of(cls: type) -> _Converter:
    def convert(value: Any, path: str) -> list:
        if value is None:
            return []
        if not isinstance(value, list):
            raise ConfigError(f"{path}: expected an array, got {_describe(value)}")
        return [
            _from_mapping(cls, item, f"{path}[{position}]")
            for position, item in enumerate(value)
        ]

    return convert


def _field(convert: _Converter, default: Any = MISSING, default_factory: Any = MISSING) -> Any:
    metadata = {"convert": convert}
    if default_factory is not MISSING:
        return field(default_factory=default_factory, metadata=metadata)
    return field(default=default, metadata=metadata)


_INT32 = _integer(INT32_MIN, INT32_MAX)
_INT64 = _integer(INT64_MIN, INT64_MAX)


@dataclass
class SimulationConfig:
    """Reference values and sample count for a simulation run."""

    default_samples: int = _field(_INT32, 0)
    default_pressure: int = _field(_INT32, 0)
    default_temperature: int = _field(_INT32, 0)
    default_flow: int = _field(_INT32, 0)


@dataclass
class SensorConfig:
    """How one simulated sensor produces its readings."""

    frequency_hz: int = _field(_INT32, 0)
    resolution_bits: int = _field(_INT32, 0)
    equation: str = _field(_string, "")
    noise_amplitude: float = _field(_float, 0.0)
    # "uniform" (the default when empty) or "normal"
    noise_distribution: str = _field(_string, "")


@dataclass
class SensorsConfig:
    """Settings for the flow, pressure and temperature sensors."""

    flow: SensorConfig = _field(_nested(SensorConfig), default_factory=SensorConfig)
    pressure: SensorConfig = _field(_nested(SensorConfig), default_factory=SensorConfig)
    temperature: SensorConfig = _field(
        _nested(SensorConfig), default_factory=SensorConfig
    )


@dataclass
class FilterConfig:
    """One filter applied to a sensor's readings."""

    type: str = _field(_string, "")
    target: str = _field(_string, "")
    alpha: float = _field(_float, 0.0)
    window_size: int = _field(_INT64, 0)


@dataclass
class ProcessingConfig:
    """The flow equation and the filters applied before it."""

    flow_equation: str = _field(_string, "")
    default_filter_type: str = _field(_string, "")
    filters: list[FilterConfig] = _field(_list_of(FilterConfig), default_factory=list)


@dataclass
class OutputConfig:
    """Where computed samples are sent: "file", "console" or "network"."""

    type: str = _field(_string, "")
    target: str = _field(_string, "")


@dataclass
class Config:
    """The complete simulation configuration."""

    simulation: SimulationConfig = _field(
        _nested(SimulationConfig), default_factory=SimulationConfig
    )
    sensors: SensorsConfig = _field(_nested(SensorsConfig), default_factory=SensorsConfig)
    processing: ProcessingConfig = _field(
        _nested(ProcessingConfig), default_factory=ProcessingConfig
    )
    output: OutputConfig = _field(_nested(OutputConfig), default_factory=OutputConfig)

    def validate(self) -> None:
        """Raise ConfigError if a value is outside its allowed range."""
        sim = self.simulation
        if not MIN_PRESSURE <= sim.default_pressure <= MAX_PRESSURE:
            raise ConfigError(
                "default_pressure must be between 10 and 250, "
                f"got {sim.default_pressure}"
            )
        if not MIN_TEMPERATURE <= sim.default_temperature <= MAX_TEMPERATURE:
            raise ConfigError(
                f"default_temperature must be 10-250, got {sim.default_temperature}"
            )
        if not 0 <= sim.default_flow <= MAX_FLOW:
            raise ConfigError(
                f"default_flow must be within 24-bit range, got {sim.default_flow}"
            )
        filter_type = self.processing.default_filter_type
        if filter_type and filter_type not in FILTER_TYPES:
            raise ConfigError(
                f"default_filter_type must be 'low_pass' or 'median', got {filter_type}"
            )


def config_from_dict(data: Any) -> Config:
    """Build a Config from decoded JSON data without validating ranges.

    Missing or null members take their zero values and unknown members are
    ignored; members of the wrong type raise ConfigError.
    """
    return _from_mapping(Config, data, "")


def _unique_object(pairs: list[tuple[str, Any]]) -> dict[str, Any]:
    result: dict[str, Any] = {}
    for key, value in pairs:
        if key in result:
            raise ConfigError(f"duplicate member {key!r} in JSON object")
        result[key] = value
    return result


def _reject_constant(name: str) -> Any:
    raise ConfigError(f"invalid JSON value {name}")


def load_config(filename: str | Path) -> Config:
    """Read, decode and validate the JSON configuration in ``filename``."""
    raw = Path(filename).read_bytes()
    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise ConfigError(f"{filename}: invalid UTF-8: {exc}") from exc
    try:
        data = json.loads(
            text, object_pairs_hook=_unique_object, parse_constant=_reject_constant
        )
    except json.JSONDecodeError as exc:
        raise ConfigError(f"{filename}: {exc}") from exc
    config = config_from_dict(data)
    config.validate()
    return config