"""Live viewer and CSV logger for an IMU and optical-flow Kalman location core."""

__version__ = "0.1.0"