"""Command-line entry point that runs the flow meter simulation."""

from __future__ import annotations

import argparse
import copy
import logging
import queue
import sys
import time
from collections.abc import Sequence

from .config import Config, ConfigError, load_config
from .evaluator import EquationError
from .output import OutputData, OutputError, get_output_handler
from .processing import Processor
from .safemath import IntegerOverflowError, safe_div32
from .sensors import SensorData, SensorType, start_sensor

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "config.json"
DEFAULT_FILTER_TYPE = "low_pass"
TIMEOUT_GRACE_SECONDS = 0.5


def _wrap32(value: int) -> int:
    return (value + 2**31) % 2**32 - 2**31


def build_parser(config_path: str, config: Config) -> argparse.ArgumentParser:
    """Build the argument parser; help texts show the defaults from ``config``.

    Override options default to None so that a value given on the command
    line can be told apart from the configured one.
    """
    sim = config.simulation
    parser = argparse.ArgumentParser(
        prog="flowmeter", description="Simulate a flow meter and its sensors."
    )
    parser.add_argument(
        "-c",
        "--config",
        default=config_path,
        help=f"Path to the configuration file (default: {config_path})",
    )
    parser.add_argument(
        "-F",
        "--flow-override-value",
        type=int,
        default=None,
        help=f"Override flow reference value (int32, default: {sim.default_flow}).",
    )
    parser.add_argument(
        "-T",
        "--temp-override-value",
        type=int,
        default=None,
        help=(
            "Override temperature value "
            f"(int32, default: {sim.default_temperature})."
        ),
    )
    parser.add_argument(
        "-P",
        "--pressure-override-value",
        type=int,
        default=None,
        help=f"Override pressure value (int32, default: {sim.default_pressure}).",
    )
    parser.add_argument(
        "-n",
        "--samples",
        type=int,
        default=None,
        help=f"Number of samples to simulate (default: {sim.default_samples}).",
    )
    parser.add_argument(
        "-m",
        "--median",
        action="store_true",
        help="Use median filter instead of default (low_pass).",
    )
    parser.add_argument(
        "-r",
        "--random-seed",
        action="store_true",
        help="Use time-based random seed (default seed 0).",
    )
    return parser


def run_simulation(config: Config, args: argparse.Namespace) -> int:
    """Run the simulation described by ``config`` with the parsed ``args``.

    ``config`` itself is left unchanged. Returns the process exit status.
    """
    config = copy.deepcopy(config)
    sim = config.simulation
    sensors = config.sensors

    print("Project initialized. Starting FlowMeter Simulation...")

    if args.random_seed:
        base_seed = time.time_ns()
        print(f"Using random base seed: {base_seed}")
    else:
        base_seed = 0
        print("Using deterministic base seed 0.")

    if args.samples is not None:
        sim.default_samples = _wrap32(args.samples)
        print(f"Sample count override: {sim.default_samples}")
    else:
        print(f"Using config default samples: {sim.default_samples}")

    overrides = (
        ("Flow", sensors.flow, args.flow_override_value),
        ("Temperature", sensors.temperature, args.temp_override_value),
        ("Pressure", sensors.pressure, args.pressure_override_value),
    )
    for label, sensor, value in overrides:
        if value is not None:
            sensor.equation = str(value)
            print(f"{label} equation overridden to constant: {sensor.equation}")

    def chosen(value: int | None, default: int) -> int:
        return default if value is None else value

    flow_val = chosen(args.flow_override_value, sim.default_flow)
    temp_val = chosen(args.temp_override_value, sim.default_temperature)
    pressure_val = chosen(args.pressure_override_value, sim.default_pressure)

    filter_type = config.processing.default_filter_type or DEFAULT_FILTER_TYPE
    if args.median:
        filter_type = "median"
        print("Filter type overridden to: median")
    else:
        print(f"Using configured filter type: {filter_type}")
    for filter_config in config.processing.filters:
        filter_config.type = filter_type

    processor = Processor(config.processing)
    processor.initialize_filters(
        _wrap32(flow_val), _wrap32(pressure_val), _wrap32(temp_val)
    )
    processor.latest_temperature = _wrap32(temp_val)
    processor.latest_pressure = _wrap32(pressure_val)
    print(
        f"Initial state: Temperature={processor.latest_temperature}, "
        f"Pressure={processor.latest_pressure}, FlowRef={flow_val}"
    )

    try:
        handler = get_output_handler(config.output)
    except OSError as exc:
        logger.error("Failed to initialize output handler: %s", exc)
        return 1

    ref_params = {
        "RefF": float(sim.default_flow),
        "RefP": float(sim.default_pressure),
        "RefT": float(sim.default_temperature),
    }
    readings: queue.Queue[SensorData] = queue.Queue()
    threads = []
    with handler:
        try:
            sensor_specs = (
                (SensorType.FLOW, sensors.flow),
                (SensorType.PRESSURE, sensors.pressure),
                (SensorType.TEMPERATURE, sensors.temperature),
            )
            try:
                for offset, (sensor_type, sensor_config) in enumerate(sensor_specs):
                    threads.append(
                        start_sensor(
                            sensor_type,
                            sensor_config,
                            ref_params,
                            base_seed + offset,
                            readings.put,
                        )
                    )
            except ValueError as exc:
                logger.error("Failed to start sensors: %s", exc)
                return 1

            run_secs = safe_div32(sim.default_samples, sensors.flow.frequency_hz)
            deadline = time.monotonic() + run_secs + TIMEOUT_GRACE_SECONDS
            start_time = time.monotonic()

            print("Listening for sensor data...")
            sample_count = 0
            max_samples = sim.default_samples

            while True:
                remaining = deadline - time.monotonic()
                try:
                    if remaining <= 0:
                        raise queue.Empty
                    data = readings.get(timeout=remaining)
                except queue.Empty:
                    print("Simulation finished (timeout).")
                    return 0

                if data.type is SensorType.PRESSURE:
                    processor.update_pressure(data.value)
                    continue
                if data.type is SensorType.TEMPERATURE:
                    processor.update_temperature(data.value)
                    continue

                sample_count += 1
                elapsed = data.timestamp - start_time
                try:
                    calculated = processor.calculate_flow(
                        config.processing.flow_equation,
                        data.value,
                        elapsed,
                        sim.default_flow,
                        sim.default_pressure,
                        sim.default_temperature,
                    )
                except (EquationError, IntegerOverflowError) as exc:
                    logger.error("Error calculating flow: %s", exc)
                    continue

                sample = OutputData(
                    sample_number=sample_count,
                    raw_flow=data.value,
                    pressure=processor.latest_pressure,
                    temperature=processor.latest_temperature,
                    calculated_flow=calculated,
                )
                try:
                    handler.write(sample)
                except (OutputError, OSError) as exc:
                    logger.error("Error writing output: %s", exc)

                if sample_count >= max_samples:
                    print("Simulation finished (sample limit reached).")
                    return 0
        finally:
            for thread in threads:
                thread.stop()


def main(argv: Sequence[str] | None = None) -> int:
    """Load the configuration, parse the command line and run the simulation."""
    args_list = list(sys.argv[1:] if argv is None else argv)

    # The configuration supplies the option defaults, so find it first.
    config_path = DEFAULT_CONFIG_PATH
    for position, arg in enumerate(args_list[:-1]):
        if arg in ("-c", "--config"):
            config_path = args_list[position + 1]
            break

    try:
        config = load_config(config_path)
    except (ConfigError, OSError) as exc:
        logger.error("Failed to load config from %s: %s", config_path, exc)
        return 1
    print(f"Configuration loaded from {config_path}.")

    args = build_parser(config_path, config).parse_args(args_list)
    return run_simulation(config, args)


if __name__ == "__main__":
    sys.exit(main())