[build-system]
requires = ["setuptools>=61"]
build-backend = "setuptools.build_meta"

[project]
name = "uarsim"
version = "0.1.0"
description = "Discrete-time control loop simulator: PID controller driving an ARX plant, locally or over TCP"
requires-python = ">=3.10"
dependencies = []
keywords = ["control", "pid", "arx", "simulation", "feedback"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: Education",
    "Intended Audience :: Science/Research",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
uarsim = "uarsim.cli:main"

[tool.setuptools.packages.find]
include = ["uarsim*"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
