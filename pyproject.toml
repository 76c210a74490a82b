[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "imuviz"
version = "0.1.0"
description = "Live viewer and CSV logger for an optical-flow/IMU Kalman location core streaming JSON over serial"
requires-python = ">=3.10"
keywords = ["imu", "optical-flow", "kalman", "serial", "telemetry", "visualization"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Science/Research",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: Visualization",
]
dependencies = [
    "pyserial>=3.5",
    "matplotlib>=3.5",
]

[project.optional-dependencies]
test = [
    "pytest>=7",
]

[project.scripts]
imuviz = "imuviz.viewer:main"

[tool.hatch.build.targets.wheel]
packages = ["imuviz"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
