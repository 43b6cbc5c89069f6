import json
from dataclasses import asdict

import pytest

from flowmeter.config import (
    Config,
    ConfigError,
    FilterConfig,
    OutputConfig,
    ProcessingConfig,
    SensorConfig,
    SimulationConfig,
    config_from_dict,
    load_config,
)


def _valid_dict():
    return {
        "simulation": {
            "default_samples": 100,
            "default_pressure": 100,
            "default_temperature": 120,
            "default_flow": 8000000,
        },
        "sensors": {
            "flow": {
                "frequency_hz": 100,
                "resolution_bits": 24,
                "equation": "RefF + 1000 * sin(t)",
                "noise_amplitude": 50.5,
                "noise_distribution": "normal",
            },
            "pressure": {
                "frequency_hz": 10,
                "resolution_bits": 8,
                "equation": "RefP",
                "noise_amplitude": 2,
            },
            "temperature": {
                "frequency_hz": 5,
                "resolution_bits": 8,
                "equation": "RefT",
                "noise_amplitude": 1.5,
            },
        },
        "processing": {
            "flow_equation": "F + F * ((P - RefP) / 255) * ((T - RefT) / 255)",
            "default_filter_type": "median",
            "filters": [
                {"type": "low_pass", "target": "pressure", "alpha": 0.25},
                {"type": "median", "target": "temperature", "window_size": 7},
            ],
        },
        "output": {"type": "file", "target": "out.csv"},
    }


def _write(tmp_path, data):
    path = tmp_path / "config.json"
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


def test_load_config_reads_all_fields(tmp_path):
    data = _valid_dict()
    config = load_config(_write(tmp_path, data))
    assert config.simulation.default_flow == data["simulation"]["default_flow"]
    assert config.sensors.flow.equation == data["sensors"]["flow"]["equation"]
    assert config.sensors.flow.noise_distribution == "normal"
    assert config.processing.filters[1] == FilterConfig(
        type="median", target="temperature", window_size=7
    )
    assert config.output == OutputConfig(type="file", target="out.csv")


def test_round_trip_through_dict():
    config = config_from_dict(_valid_dict())
    assert config_from_dict(asdict(config)) == config


def test_integer_noise_amplitude_becomes_float():
    config = config_from_dict(_valid_dict())
    assert config.sensors.pressure.noise_amplitude == 2.0
    assert isinstance(config.sensors.pressure.noise_amplitude, float)


def test_missing_members_take_zero_values():
    config = config_from_dict({"simulation": {"default_samples": 5}})
    assert config.simulation == SimulationConfig(default_samples=5)
    assert config.sensors.flow == SensorConfig()
    assert config.processing == ProcessingConfig()


def test_null_members_take_zero_values():
    data = _valid_dict()
    data["output"] = None
    data["processing"]["filters"] = None
    config = config_from_dict(data)
    assert config.output == OutputConfig()
    assert config.processing.filters == []


def test_empty_document_gives_default_config():
    assert config_from_dict({}) == Config()


def test_unknown_members_are_ignored():
    data = _valid_dict()
    data["extra"] = {"anything": 1}
    data["output"]["comment"] = "ignored"
    assert config_from_dict(data) == config_from_dict(_valid_dict())


@pytest.mark.parametrize("value", ["100", 1.5, True, [1], 2**31])
def test_bad_integer_values(value):
    data = _valid_dict()
    data["simulation"]["default_samples"] = value
    with pytest.raises(ConfigError, match="default_samples"):
        config_from_dict(data)


def test_bad_float_value():
    data = _valid_dict()
    data["sensors"]["flow"]["noise_amplitude"] = "loud"
    with pytest.raises(ConfigError, match="noise_amplitude"):
        config_from_dict(data)


def test_bad_string_value():
    data = _valid_dict()
    data["output"]["target"] = 42
    with pytest.raises(ConfigError, match="target"):
        config_from_dict(data)


def test_filters_must_be_an_array():
    data = _valid_dict()
    data["processing"]["filters"] = {"type": "median"}
    with pytest.raises(ConfigError, match="filters"):
        config_from_dict(data)


def test_filter_entry_must_be_an_object():
    data = _valid_dict()
    data["processing"]["filters"].append("median")
    with pytest.raises(ConfigError, match=r"filters\[2\]"):
        config_from_dict(data)


def test_top_level_must_be_an_object():
    with pytest.raises(ConfigError):
        config_from_dict([1, 2])


def _validated(**simulation):
    data = _valid_dict()
    data["simulation"].update(simulation)
    config = config_from_dict(data)
    config.validate()
    return config


@pytest.mark.parametrize("pressure", [10, 250])
def test_pressure_bounds_accepted(pressure):
    assert _validated(default_pressure=pressure).simulation.default_pressure == pressure


@pytest.mark.parametrize("pressure", [9, 251])
def test_pressure_out_of_range(pressure):
    with pytest.raises(ConfigError, match="default_pressure must be between 10 and 250"):
        _validated(default_pressure=pressure)


@pytest.mark.parametrize("temperature", [9, 251])
def test_temperature_out_of_range(temperature):
    with pytest.raises(ConfigError, match="default_temperature must be 10-250"):
        _validated(default_temperature=temperature)


@pytest.mark.parametrize("flow", [0, 16777215])
def test_flow_bounds_accepted(flow):
    assert _validated(default_flow=flow).simulation.default_flow == flow


@pytest.mark.parametrize("flow", [-1, 16777216])
def test_flow_out_of_range(flow):
    with pytest.raises(ConfigError, match="default_flow must be within 24-bit range"):
        _validated(default_flow=flow)


@pytest.mark.parametrize("filter_type", ["", "low_pass", "median"])
def test_filter_type_accepted(filter_type):
    config = config_from_dict(_valid_dict())
    config.processing.default_filter_type = filter_type
    config.validate()
    assert config.processing.default_filter_type == filter_type


def test_filter_type_rejected():
    config = config_from_dict(_valid_dict())
    config.processing.default_filter_type = "bogus"
    with pytest.raises(ConfigError, match="'low_pass' or 'median', got bogus"):
        config.validate()


def test_load_config_validates(tmp_path):
    data = _valid_dict()
    data["simulation"]["default_pressure"] = 5
    with pytest.raises(ConfigError, match="default_pressure"):
        load_config(_write(tmp_path, data))


def test_load_config_invalid_json(tmp_path):
    path = tmp_path / "config.json"
    path.write_text("{ not json", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(path)


def test_load_config_duplicate_member(tmp_path):
    path = tmp_path / "config.json"
    path.write_text('{"output": {}, "output": {}}', encoding="utf-8")
    with pytest.raises(ConfigError, match="duplicate"):
        load_config(path)


def test_load_config_rejects_nan(tmp_path):
    path = tmp_path / "config.json"
    path.write_text('{"sensors": {"flow": {"noise_amplitude": NaN}}}', encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(path)


def test_load_config_invalid_utf8(tmp_path):
    path = tmp_path / "config.json"
    path.write_bytes(b'{"output": {"target": "\xff"}}')
    with pytest.raises(ConfigError, match="UTF-8"):
        load_config(path)


def test_load_config_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "absent.json")