"""Decoding of filter telemetry messages and the state they describe."""

from __future__ import annotations

import json
import logging
import math
import threading
import time
from collections import deque
from typing import Any, Callable, Optional

from .geometry import ROBOT_PROJECTION, Quaternion, Vector3

_log = logging.getLogger(__name__)

PREDICT_RATE_HZ = 50
UPDATE_RATE_HZ = 10
STATE_SIZE = 6
MEASUREMENT_SIZE = 3
STATE_KEYS = ("x", "y", "z", "vx", "vy", "vz")


def parse_message(line: str) -> dict[str, Any]:
    """Decode one JSON object; raise ValueError if it is not one."""
    try:
        data = json.loads(line)
    except json.JSONDecodeError as exc:
        raise ValueError(f"invalid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ValueError("message is not a JSON object")
    return data


def _number(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeError(f"expected a number, got {value!r}")
    return float(value)


def _numbers(values: Any, count: int) -> list[float]:
    if not isinstance(values, list):
        raise TypeError(f"expected a list, got {values!r}")
    if len(values) < count:
        raise ValueError(f"expected at least {count} values, got {len(values)}")
    return [_number(v) for v in values[:count]]


def _vector(obj: dict[str, Any]) -> Vector3:
    return Vector3(_number(obj["x"]), _number(obj["y"]), _number(obj["z"]))


class _RateCounter:
    """Logs how many messages arrive per second."""

    def __init__(self) -> None:
        self._start = time.monotonic()
        self._count = 0

    def tick(self) -> None:
        self._count += 1
        now = time.monotonic()
        if now - self._start >= 1:
            _log.info("Function called %d times per second", self._count)
            self._count = 0
            self._start = now


class Telemetry:
    """Latest filter state plus fixed-length histories, newest first."""

    def __init__(self, history_size: int, pos_scale: float) -> None:
        if history_size < 1:
            raise ValueError("history_size must be at least 1")
        self.history_size = history_size
        self.pos_scale = pos_scale
        self.lock = threading.Lock()
        self.on_message: Optional[Callable[[dict[str, Any]], None]] = None

        self.state = [0.0] * STATE_SIZE
        self.position = Vector3()
        self.covariance = [0.0] * (STATE_SIZE * STATE_SIZE)
        self.transition = [0.0] * STATE_SIZE
        self.gain = [0.0] * (MEASUREMENT_SIZE * STATE_SIZE)
        self.innovation = [0.0] * MEASUREMENT_SIZE
        self.predict_cpu = 0.0
        self.update_cpu = 0.0

        self.linear_accel = Vector3()
        self.orientation = Quaternion()
        self.orientation_euler = Vector3()
        self.optical_flow = Vector3()

        self.accel_history = self._history()
        self.euler_history = self._history()
        self.flow_history = self._history()
        self.position_history = self._history()
        self._rate = _RateCounter()

    def _history(self) -> deque[Vector3]:
        return deque([Vector3()] * self.history_size, maxlen=self.history_size)

    def apply(self, data: dict[str, Any]) -> None:
        """Update the state from a decoded message and push the histories."""
        with self.lock:
            sensor = data.get("sensor_input")
            if sensor is not None:
                quat = sensor.get("quat")
                if quat is not None:
                    raw = Quaternion(
                        _number(quat["x"]), _number(quat["y"]),
                        _number(quat["z"]), _number(quat["w"]),
                    )
                    self.orientation = ROBOT_PROJECTION * raw
                    euler = self.orientation.to_euler().scale(180 / math.pi)
                    self.orientation_euler = Vector3(euler.x + 90, euler.y, euler.z)
                accel = sensor.get("accel")
                if accel is not None:
                    self.linear_accel = _vector(accel).apply_quaternion(ROBOT_PROJECTION)
                flow = sensor.get("of")
                if flow is not None:
                    self.optical_flow = _vector(flow).apply_quaternion(ROBOT_PROJECTION)

            state = data.get("state")
            if state is not None:
                values = [_number(state[key]) for key in STATE_KEYS]
                self.state = values
                self.position = (
                    Vector3(values[0], -values[1], -values[2])
                    .apply_quaternion(ROBOT_PROJECTION)
                    .scale(self.pos_scale)
                )
                if data.get("f") is not None:
                    self.predict_cpu = _number(state["dt"]) / (1.0 / PREDICT_RATE_HZ)
                elif data.get("y-h") is not None:
                    self.update_cpu = _number(state["dt"]) / (1.0 / UPDATE_RATE_HZ)
                _log.debug(
                    "predict_cpu: %.2f, update_cpu: %.2f", self.predict_cpu, self.update_cpu
                )

            if data.get("P") is not None:
                self.covariance = _numbers(data["P"], STATE_SIZE * STATE_SIZE)
            if data.get("f") is not None:
                self.transition = _numbers(data["f"], STATE_SIZE)
            if data.get("K") is not None:
                self.gain = _numbers(data["K"], MEASUREMENT_SIZE * STATE_SIZE)
            if data.get("y-h") is not None:
                self.innovation = _numbers(data["y-h"], MEASUREMENT_SIZE)

            self.accel_history.appendleft(self.linear_accel)
            self.euler_history.appendleft(self.orientation_euler)
            self.flow_history.appendleft(self.optical_flow)
            self.position_history.appendleft(self.position)

    def receive(self, line: str) -> Optional[dict[str, Any]]:
        """Handle one received line; return the decoded message or None."""
        if not line:
            return None
        self._rate.tick()
        try:
            data = parse_message(line)
        except ValueError as exc:
            _log.warning("Error parsing JSON: %s", exc)
            return None
        if self.on_message is not None:
            self.on_message(data)
        self.apply(data)
        return data