"""View model: turns telemetry into trail, graph and table data for display."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Optional

from .geometry import Quaternion, Vector3
from .telemetry import MEASUREMENT_SIZE, STATE_SIZE, Telemetry

STATE_LABELS = (
    "Position X",
    "Position Y",
    "Position Z",
    "Velocity X",
    "Velocity Y",
    "Velocity Z",
)


@dataclass
class TrailPoint:
    """One marker of the position trail."""

    position: Vector3 = field(default_factory=Vector3)
    orientation: Quaternion = field(default_factory=Quaternion)
    visible: bool = True


@dataclass(frozen=True)
class GraphSeries:
    """Three line series (x, y, z) for one chart, newest sample first."""

    title: str
    y_range: tuple[float, float]
    auto_range: bool
    x: tuple[float, ...]
    y: tuple[float, ...]
    z: tuple[float, ...]


class VizModel:
    """Display state derived from a ``Telemetry`` instance."""

    def __init__(self, telemetry: Telemetry, history_size: Optional[int] = None) -> None:
        if history_size is None:
            history_size = telemetry.history_size
        if history_size < 1:
            raise ValueError("history_size must be at least 1")
        self.telemetry = telemetry
        self.history_size = history_size
        self.hist_show = history_size
        self.pos_offset = Vector3()
        self.pos_offset_readout = [0.0, 0.0, 0.0]
        self.trail: deque[TrailPoint] = deque(
            (TrailPoint() for _ in range(history_size)), maxlen=history_size
        )

    def set_trail_fraction(self, fraction: float) -> int:
        """Show this fraction (0 to 1) of the history; return the frame count."""
        if not 0.0 <= fraction <= 1.0:
            raise ValueError("fraction must be between 0 and 1")
        self.hist_show = int(fraction * self.history_size)
        return self.hist_show

    def trail_label(self) -> str:
        return f"{self.hist_show} frames"

    def reset_origin(self) -> None:
        """Make the current position the new origin and clear the trail."""
        with self.telemetry.lock:
            self.pos_offset = -self.telemetry.position
            self.pos_offset_readout = [-v for v in self.telemetry.state[:3]]
        for point in self.trail:
            point.position = Vector3()

    def current_position(self) -> Vector3:
        """Device position in scene units, relative to the chosen origin."""
        with self.telemetry.lock:
            position = self.telemetry.position
        return position + self.pos_offset

    def advance_trail(self) -> TrailPoint:
        """Push the current pose onto the trail and return the new head."""
        position = self.current_position()
        with self.telemetry.lock:
            orientation = self.telemetry.orientation
        head = TrailPoint(position, orientation)
        self.trail.appendleft(head)
        for index, point in enumerate(self.trail):
            point.visible = index <= self.hist_show
        return head

    def _window(self, history) -> list[Vector3]:
        return list(history)[: self.hist_show + 1]

    def graph_series(self) -> list[GraphSeries]:
        """Series for the acceleration, orientation and optical-flow charts."""
        with self.telemetry.lock:
            accel = self._window(self.telemetry.accel_history)
            euler = self._window(self.telemetry.euler_history)
            flow = self._window(self.telemetry.flow_history)
        return [
            GraphSeries(
                "Linear Accel.", (-2.0, 2.0), False,
                tuple(v.x for v in accel), tuple(v.y for v in accel), tuple(v.z for v in accel),
            ),
            # Y and Z are swapped for the orientation chart.
            GraphSeries(
                "Orientation", (-180.0, 180.0), False,
                tuple(v.x for v in euler), tuple(v.z for v in euler), tuple(v.y for v in euler),
            ),
            GraphSeries(
                "Optical Flow", (-50.0, 50.0), True,
                tuple(v.x for v in flow), tuple(v.y for v in flow), tuple(v.z for v in flow),
            ),
        ]

    def state_rows(self) -> list[tuple[float, str]]:
        """State vector rows as (value, label), positions relative to the origin."""
        with self.telemetry.lock:
            state = list(self.telemetry.state)
        offsets = self.pos_offset_readout + [0.0] * (STATE_SIZE - 3)
        return [
            (value + offset, label)
            for value, offset, label in zip(state, offsets, STATE_LABELS)
        ]

    @staticmethod
    def _matrix(values: list[float], columns: int) -> list[list[float]]:
        return [values[start:start + columns] for start in range(0, len(values), columns)]

    def covariance_rows(self) -> list[list[float]]:
        with self.telemetry.lock:
            values = list(self.telemetry.covariance)
        return self._matrix(values, STATE_SIZE)

    def transition_rows(self) -> list[list[float]]:
        with self.telemetry.lock:
            values = list(self.telemetry.transition)
        return self._matrix(values, 1)

    def gain_rows(self) -> list[list[float]]:
        with self.telemetry.lock:
            values = list(self.telemetry.gain)
        return self._matrix(values, STATE_SIZE)

    def innovation_rows(self) -> list[list[float]]:
        with self.telemetry.lock:
            values = list(self.telemetry.innovation[:MEASUREMENT_SIZE])
        return self._matrix(values, 1)