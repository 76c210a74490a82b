"""CSV logging of filter telemetry messages."""

from __future__ import annotations

import csv
import logging
import math
import os
import struct
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from .telemetry import STATE_KEYS, STATE_SIZE, _number, _numbers

_log = logging.getLogger(__name__)

_COLUMNS = [
    "t", "predict_cpu", "update_cpu",
    "quat_x", "quat_y", "quat_z", "quat_w",
    "accel_x", "accel_y", "accel_z",
    "of_x", "of_y", "of_z",
    "x_x", "x_y", "x_z", "x_vx", "x_vy", "x_vz",
    "dt",
]
_COVARIANCE_SIZE = STATE_SIZE * STATE_SIZE


def log_file_name(when: datetime) -> str:
    """File name of the form log_DDMMYY_HHMMSS.csv."""
    return (
        f"log_{when.day:02d}{when.month:02d}{when.year % 100:02d}"
        f"_{when.hour:02d}{when.minute:02d}{when.second:02d}.csv"
    )


def header() -> list[str]:
    return _COLUMNS + [f"P_{i}" for i in range(_COVARIANCE_SIZE)]


def _f32(value: float) -> float:
    try:
        return struct.unpack("<f", struct.pack("<f", value))[0]
    except OverflowError:
        return math.copysign(math.inf, value)


def _format(value: float) -> str:
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "+Inf" if value > 0 else "-Inf"
    return f"{value:3.7f}"


def _fmt32(value: float) -> str:
    return _format(_f32(value))


def _vector_fields(obj: Optional[dict[str, Any]], keys: str) -> Optional[list[float]]:
    if obj is None:
        return None
    return [_number(obj[k]) for k in keys]


def format_row(data: dict[str, Any]) -> list[str]:
    """Turn one telemetry message into a row matching ``header()``."""
    micros = 0.0
    quat = [0.0] * 4
    accel: Optional[list[float]] = [0.0] * 3
    flow: Optional[list[float]] = [0.0] * 3
    state = [0.0] * STATE_SIZE
    dt = 0.0
    predict_cpu = 0.0
    update_cpu = 0.0

    sensor = data.get("sensor_input")
    if sensor is not None:
        quat = _vector_fields(sensor.get("quat"), "xyzw") or quat
        accel = _vector_fields(sensor.get("accel"), "xyz")
        flow = _vector_fields(sensor.get("of"), "xyz")

    raw_state = data.get("state")
    if raw_state is not None:
        state = [_number(raw_state[k]) for k in STATE_KEYS]
        dt = _number(raw_state["dt"])
        micros = _number(data["micros"]) / 1e6
        if data.get("f") is not None:
            predict_cpu = _f32(_f32(dt) / _f32(1.0 / 50))
        elif data.get("y-h") is not None:
            update_cpu = _f32(_f32(dt) / _f32(1.0 / 10))

    raw_cov = data.get("P")
    covariance = _numbers(raw_cov, _COVARIANCE_SIZE) if raw_cov is not None else None

    row = [_format(micros)]
    if data.get("f") is not None:
        row += [_fmt32(predict_cpu), ""]
    else:
        row += ["", _fmt32(update_cpu)]
    row += [_fmt32(v) for v in quat]
    row += [_fmt32(v) for v in accel] if accel is not None else [""] * 3
    row += [_fmt32(v) for v in flow] if flow is not None else [""] * 3
    row += [_fmt32(v) for v in state]
    row.append(_fmt32(dt))
    if covariance is not None:
        row += [_fmt32(v) for v in covariance]
    else:
        row += [""] * _COVARIANCE_SIZE
    return row


class CsvLog:
    """A CSV log that is replaced by a fresh file on every ``start_new``."""

    def __init__(self, directory: str | os.PathLike[str] = "log") -> None:
        self.directory = Path(directory)
        self.path: Optional[Path] = None
        self._file = None
        self._writer = None
        self._lock = threading.Lock()

    def start_new(self, when: Optional[datetime] = None) -> Path:
        """Clear the log directory and open a new file with a header row."""
        when = when or datetime.now()
        with self._lock:
            self._close_locked()
            self.directory.mkdir(parents=True, exist_ok=True)
            path = self.directory / log_file_name(when)
            for entry in self.directory.iterdir():
                if entry.is_file():
                    entry.unlink()
            self._file = path.open("w", newline="", encoding="utf-8")
            self._writer = csv.writer(self._file, lineterminator="\n")
            self.path = path
            self._write_locked(header())
        _log.info("Log file: %s", path)
        return path

    def write(self, data: dict[str, Any]) -> Optional[list[str]]:
        """Append one message; does nothing before ``start_new``."""
        with self._lock:
            if self._writer is None:
                return None
            row = format_row(data)
            self._write_locked(row)
            return row

    def _write_locked(self, row: list[str]) -> None:
        self._writer.writerow(row)
        self._file.flush()
        os.fsync(self._file.fileno())

    def _close_locked(self) -> None:
        if self._file is not None:
            self._file.close()
        self._file = None
        self._writer = None

    def close(self) -> None:
        with self._lock:
            self._close_locked()

    def __enter__(self) -> CsvLog:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()