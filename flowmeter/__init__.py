"""Flow meter simulation: sensors, filters, flow calculation, output and an HTTP receiver."""

__version__ = "0.1.0"