# flowmeter

A small flow meter simulator. Three sensors (flow, pressure and temperature)
each run on their own thread. Each produces readings from a configurable
equation with added noise. Filters smooth the pressure, temperature and flow
readings: an exponential low-pass filter in fixed-point integer arithmetic, or
a sliding-window median. A flow equation then combines the filtered values
into a calculated flow. Each result goes to the console, to a CSV file, or to
an HTTP endpoint as JSON.

## Installation

```
pip install .
```

## Running the simulation

```
flowmeter --config config.json
```

| Option | Meaning |
| --- | --- |
| `-c`, `--config PATH` | configuration file (default `config.json`) |
| `-n`, `--samples N` | number of flow samples to simulate |
| `-F`, `--flow-override-value V` | replace the flow sensor equation with the constant `V` and use `V` as the flow filters' starting value |
| `-P`, `--pressure-override-value V` | the same for pressure; also the initial pressure |
| `-T`, `--temp-override-value V` | the same for temperature; also the initial temperature |
| `-m`, `--median` | use the median filter |
| `-r`, `--random-seed` | seed the noise from the clock instead of seed 0 |

The configuration is read before the options are parsed, so `--help` shows the
configured defaults. If the file cannot be read or fails validation, the error
is logged and the command exits with status 1.

Every filter listed in the configuration is run with the same filter type. That
type is `default_filter_type` (`low_pass` when empty), or `median` with `-m`.
A filter's own `type` is replaced by it, while its `target`, `alpha` and
`window_size` are kept.

The run ends in one of two ways. It stops once the sample limit is reached. It
also stops after `samples / flow.frequency_hz` whole seconds plus half a
second, whichever comes first. Every sensor's `frequency_hz` must be positive.
A reading whose flow equation fails, or whose result does not fit in a 32-bit
integer, is logged and skipped.

## Configuration

```json
{
  "simulation": {
    "default_samples": 100,
    "default_pressure": 100,
    "default_temperature": 100,
    "default_flow": 8000000
  },
  "sensors": {
    "flow":        {"frequency_hz": 10, "resolution_bits": 24, "equation": "RefF + 1000 * sin(t)", "noise_amplitude": 50},
    "pressure":    {"frequency_hz": 5,  "resolution_bits": 8,  "equation": "RefP", "noise_amplitude": 2, "noise_distribution": "normal"},
    "temperature": {"frequency_hz": 1,  "resolution_bits": 8,  "equation": "RefT", "noise_amplitude": 1}
  },
  "processing": {
    "flow_equation": "F + F * ((P - RefP) / 255) * ((T - RefT) / 255)",
    "default_filter_type": "low_pass",
    "filters": [
      {"type": "low_pass", "target": "pressure", "alpha": 0.5},
      {"type": "low_pass", "target": "temperature", "alpha": 0.25, "window_size": 5}
    ]
  },
  "output": {"type": "file", "target": "out.csv"}
}
```

Missing members take zero or empty values, and unknown members are ignored.
Members of the wrong type raise `ConfigError`, and so do duplicate keys.
Validation also checks these rules:

- `default_pressure` and `default_temperature` must lie within 10–250.
- `default_flow` must lie within 0–16777215.
- `default_filter_type`, when set, must be `low_pass` or `median`.

Noise is uniform in `[-noise_amplitude, +noise_amplitude]` by default. With
`"noise_distribution": "normal"`, the amplitude is the standard deviation.

Filter targets are `pressure`, `temperature` and `flow`, in any case. For
`low_pass`, `alpha` is clamped to 0–1. For `median`, `window_size` defaults to
5 when it is zero or negative.

## Equations

Sensor equations can use `t` (seconds since the sensor started) and `RefF`,
`RefP`, `RefT`. The flow equation can use `flow`/`F`, `pressure`/`P`,
`temperature`/`T`, `RefF`, `RefP`, `RefT` and `t`, the seconds since the
simulation began listening.

Equations support floating-point numbers and the operators
`+ - * / % **`. They also support the comparisons `== != < <= > >=`, the
logical operators `&& || !` with `true` and `false`, and the conditional
`c ? a : b`. The functions are `sin`, `cos`, `tan` and `sqrt`. An equation
must produce a number. Errors raise `flowmeter.evaluator.EquationError`.

## Output

The output `type` is `file`, `console` or `network`; any other type uses the
console.

- `file` writes a CSV file named by `target`, with the header
  `sample_number,raw_flow,pressure,temperature,calculated_flow`. The file is
  flushed after every row.
- `network` POSTs each sample as a JSON object with those same keys to the URL
  in `target`. Error statuses raise `OutputError`.

## Receiving network output

```
flowmeter-receiver --port 8080 --output rcv_out.csv
```

This starts an HTTP server. The defaults are every address, port 8080 and
`rcv_out.csv`, given with `--host`, `--port` and `--output`. The CSV file is
truncated when the server starts and gets the same header as above. Each
JSON sample POSTed to the server is appended as a row and printed. Other
methods get 405, and bodies that are not a valid sample get 400.
`flowmeter.receiver.create_server(host, port, csv_file)` returns the server
for use from code.

## Library use

```python
from flowmeter.config import FilterConfig, ProcessingConfig
from flowmeter.processing import Processor

proc = Processor(ProcessingConfig(filters=[FilterConfig(type="low_pass", target="pressure", alpha=0.5)]))
proc.update_pressure(100)
proc.update_pressure(200)          # filtered to 150
proc.latest_temperature = 100
proc.calculate_flow("F + F * ((P - RefP) / 255) * ((T - RefT) / 255)", 1000, 0.0, 8000000, 100, 100)  # 1000
```

`flowmeter.safemath` provides `safe_add32`, `safe_sub32`, `safe_mul32` and
`safe_div32`. These raise `IntegerOverflowError` outside the signed 32-bit
range.

## What it does not do

All sensor readings are simulated from equations. The package does not read
from real instruments.