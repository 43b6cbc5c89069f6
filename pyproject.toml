[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "flowmeter"
version = "0.1.0"
description = "Flow meter simulator: equation-driven sensors with noise, low-pass and median filtering, flow calculation, and output to CSV, console or HTTP."
requires-python = ">=3.10"
dependencies = []
keywords = ["flow meter", "simulation", "sensors", "filters", "median filter", "low-pass filter"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: Science/Research",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: Interface Engine/Protocol Translator",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
flowmeter = "flowmeter.cli:main"
flowmeter-receiver = "flowmeter.receiver:main"

[tool.hatch.build.targets.wheel]
packages = ["flowmeter"]

[tool.pytest.ini_options]
addopts = "-ra"
