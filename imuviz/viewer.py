"""Interactive 3D view of the device pose with sensor graphs and filter tables."""

from __future__ import annotations

import argparse
import logging
import math
import threading
import time
from collections import deque
from typing import Any, Iterable, Optional, Sequence

from .geometry import Vector3
from .logger import CsvLog
from .model import TrailPoint, VizModel
from .serial_link import DEFAULT_BAUDRATE, SerialLink, wait_for_ports
from .telemetry import Telemetry

_log = logging.getLogger(__name__)

TARGET_FPS = 120
HISTORY_SIZE = 10 * 200
POS_SCALE = 100  # metres to centimetres

_BACKGROUND = (0.05, 0.05, 0.05)
_PANEL = (0.25, 0.25, 0.25)
_GRID = (0.5, 0.5, 0.5)
_MONITOR_LINES = 8
_CAMERA = (5.5, 3.0, 1.5)

# Outline of the device marker in its own frame: a triangle of radius 1 ...
_DISK = [
    Vector3(math.cos(2 * math.pi * k / 3), math.sin(2 * math.pi * k / 3), 0.0)
    for k in (0, 1, 2, 0)
]


def _cube_outline(half: float, centre_z: float) -> list[Vector3]:
    b = [
        Vector3(-half, -half, centre_z - half),
        Vector3(half, -half, centre_z - half),
        Vector3(half, half, centre_z - half),
        Vector3(-half, half, centre_z - half),
    ]
    t = [Vector3(p.x, p.y, centre_z + half) for p in b]
    order = [
        b[0], b[1], b[2], b[3], b[0], t[0], t[1], b[1], t[1],
        t[2], b[2], t[2], t[3], b[3], t[3], t[0],
    ]
    return order


# ... carrying a half-size cube raised by a quarter unit.
_CUBE = _cube_outline(0.25, 0.25)


def format_fps(fps: float) -> str:
    """Text of the frame-rate label."""
    return f"Render FPS: {fps:3.1f}"


class FrameRate:
    """Measures the render rate against a target frame rate."""

    def __init__(self, target_fps: float) -> None:
        if target_fps <= 0:
            raise ValueError("target_fps must be positive")
        self.target_fps = target_fps
        self.interval = 1.0 / target_fps
        self._window = target_fps / 1000.0
        self._times: deque[float] = deque()

    def tick(self, now: Optional[float] = None) -> float:
        """Record a frame; return the seconds left before the next one is due."""
        if now is None:
            now = time.monotonic()
        previous = self._times[-1] if self._times else None
        if previous is not None and now < previous:
            raise ValueError("frame times must not go backwards")
        self._times.append(now)
        while len(self._times) > 2 and now - self._times[1] >= self._window:
            self._times.popleft()
        if previous is None:
            return self.interval
        return max(0.0, self.interval - (now - previous))

    def fps(self) -> Optional[float]:
        """Measured frames per second, or None until enough frames are seen."""
        if len(self._times) < 2:
            return None
        span = self._times[-1] - self._times[0]
        if span <= 0 or span < self._window:
            return None
        return (len(self._times) - 1) / span


def _to_plot(points: Iterable[Vector3]) -> tuple[list[float], list[float], list[float]]:
    """Scene coordinates (Y up) to plot coordinates (Z up), keeping handedness."""
    xs: list[float] = []
    ys: list[float] = []
    zs: list[float] = []
    for p in points:
        xs.append(p.x)
        ys.append(-p.z)
        zs.append(p.y)
    return xs, ys, zs


def _pose(outline: Sequence[Vector3], head: TrailPoint) -> list[Vector3]:
    return [p.apply_quaternion(head.orientation) + head.position for p in outline]


class Viewer:
    """Matplotlib window showing the device, its trail, graphs and filter values."""

    def __init__(self, model: VizModel, log: Optional[CsvLog] = None) -> None:
        import matplotlib.pyplot as plt
        from matplotlib.widgets import CheckButtons, Slider

        self.model = model
        self.log = log
        self.frame_rate = FrameRate(TARGET_FPS)
        self.messages: deque[str] = deque(["Waiting for serial connection..."], maxlen=200)
        self.orthographic = False
        self._animation: Any = None

        fig = plt.figure(figsize=(15, 9))
        fig.patch.set_facecolor(_BACKGROUND)
        manager = getattr(fig.canvas, "manager", None)
        if manager is not None:
            manager.set_window_title("OF IMU LocationCore Viz")
        self.figure = fig

        self.scene = fig.add_axes([0.0, 0.22, 0.62, 0.76], projection="3d")
        self._setup_scene()
        self._setup_graphs()

        slider_ax = fig.add_axes([0.74, 0.95, 0.2, 0.025])
        slider_ax.set_facecolor(_PANEL)
        self.trail_slider = Slider(slider_ax, "Trail Length", 0.0, 1.0, valinit=1.0)
        self.trail_slider.label.set_color("white")
        self.trail_slider.valtext.set_color("white")
        self.trail_slider.valtext.set_text(self.model.trail_label())
        self.trail_slider.on_changed(self._on_trail_change)

        toggle_ax = fig.add_axes([0.005, 0.9, 0.12, 0.05])
        toggle_ax.set_facecolor(_BACKGROUND)
        self.projection_toggle = CheckButtons(toggle_ax, ["Orthographic"], [False])
        for label in self.projection_toggle.labels:
            label.set_color("white")
        self.projection_toggle.on_clicked(self._on_projection_click)

        table_ax = fig.add_axes([0.66, 0.01, 0.33, 0.38])
        table_ax.set_axis_off()
        table_ax.text(0.0, 1.02, "Kalman Parameters:", color="white", fontsize=9,
                      transform=table_ax.transAxes)
        self.kalman_text = table_ax.text(
            0.0, 1.0, self._table_text(), va="top", ha="left", family="monospace",
            fontsize=7, color="white", transform=table_ax.transAxes,
        )

        monitor_ax = fig.add_axes([0.0, 0.01, 0.62, 0.19])
        monitor_ax.set_facecolor((0.0, 0.0, 0.0))
        monitor_ax.set_xticks([])
        monitor_ax.set_yticks([])
        self.monitor_text = monitor_ax.text(
            0.01, 0.97, self._monitor_text(), va="top", ha="left", family="monospace",
            fontsize=8, color="white", transform=monitor_ax.transAxes,
        )

        self.fps_label = fig.text(0.005, 0.985, "FPS: 000.0", color="white", va="top")
        fig.canvas.mpl_connect("key_press_event", self.on_key)

    def _setup_scene(self) -> None:
        ax = self.scene
        ax.set_facecolor(_BACKGROUND)
        ax.set_proj_type("persp")
        for i in range(-10, 11):
            ax.plot([i, i], [-10, 10], [0, 0], color=_GRID, lw=0.5)
            ax.plot([-10, 10], [i, i], [0, 0], color=_GRID, lw=0.5)
        origin = Vector3()
        for axis, colour in (
            (Vector3(1, 0, 0), "red"),
            (Vector3(0, 1, 0), "green"),
            (Vector3(0, 0, 1), "blue"),
        ):
            ax.plot(*_to_plot([origin, axis]), color=colour, lw=2)
        ax.set_xlim(-10, 10)
        ax.set_ylim(-10, 10)
        ax.set_zlim(-10, 10)
        cx, cy, cz = _to_plot([Vector3(*_CAMERA)])
        azim = math.degrees(math.atan2(cy[0], cx[0]))
        elev = math.degrees(math.atan2(cz[0], math.hypot(cx[0], cy[0])))
        ax.view_init(elev=elev, azim=azim)
        ax.set_axis_off()
        (self._trail,) = ax.plot([], [], [], ".", color=(0.0, 1.0, 1.0), alpha=0.5,
                                 markersize=3)
        (self._disk,) = ax.plot([], [], [], color=(1.0, 0.0, 1.0), lw=2)
        (self._cube,) = ax.plot([], [], [], color=(1.0, 1.0, 0.0), lw=2)

    def _setup_graphs(self) -> None:
        from matplotlib.ticker import FormatStrFormatter

        self.graph_axes = []
        self.graph_lines = []
        for index, series in enumerate(self.model.graph_series()):
            ax = self.figure.add_axes([0.67, 0.78 - index * 0.17, 0.31, 0.13])
            ax.set_facecolor("white")
            ax.set_title(series.title, color="white", fontsize=9)
            ax.set_xlim(0, self.model.history_size)
            ax.set_ylim(*series.y_range)
            ax.tick_params(colors="white", labelsize=7)
            ax.yaxis.set_major_formatter(FormatStrFormatter("%2.1f"))
            lines = tuple(ax.plot([], [], color=c, lw=1)[0] for c in ("red", "green", "blue"))
            self.graph_axes.append(ax)
            self.graph_lines.append(lines)

    def _on_trail_change(self, value: float) -> None:
        self.model.set_trail_fraction(min(1.0, max(0.0, float(value))))
        self.trail_slider.valtext.set_text(self.model.trail_label())

    def _on_projection_click(self, _label: str) -> None:
        self._set_orthographic(bool(self.projection_toggle.get_status()[0]))

    def _set_orthographic(self, enabled: bool) -> None:
        self.orthographic = enabled
        self.scene.set_proj_type("ortho" if enabled else "persp")

    def _post(self, message: str) -> None:
        self.messages.append(message)

    def _monitor_text(self) -> str:
        recent = list(self.messages)[-_MONITOR_LINES:]
        return "\n".join(["Serial Monitor:", *recent])

    def _table_text(self) -> str:
        lines = ["State (x)"]
        lines += [f"{value:3.3f}  {label}" for value, label in self.model.state_rows()]
        lines.append("State Error Covariance (P)")
        lines += ["  ".join(f"{v:3.7f}" for v in row) for row in self.model.covariance_rows()]
        lines.append("State Transition (f)")
        lines.append("  ".join(f"{row[0]:3.6f}" for row in self.model.transition_rows()))
        lines.append("Kalman Gain (K)")
        lines += ["  ".join(f"{v:3.6f}" for v in row) for row in self.model.gain_rows()]
        lines.append("Innovation (y-h)")
        lines.append("  ".join(f"{row[0]:3.6f}" for row in self.model.innovation_rows()))
        return "\n".join(lines)

    def update(self, frame: Any) -> list[Any]:
        """Redraw one frame; returns the artists that changed."""
        self.frame_rate.tick()

        changed: list[Any] = []
        for series, ax, lines in zip(self.model.graph_series(), self.graph_axes,
                                     self.graph_lines):
            xs = list(range(len(series.x)))
            for line, values in zip(lines, (series.x, series.y, series.z)):
                line.set_data(xs, list(values))
                changed.append(line)
            if series.auto_range:
                ax.relim()
                ax.autoscale_view(scalex=False, scaley=True)

        head = self.model.advance_trail()
        visible = [point.position for point in self.model.trail if point.visible]
        self._trail.set_data_3d(*_to_plot(visible))
        self._disk.set_data_3d(*_to_plot(_pose(_DISK, head)))
        self._cube.set_data_3d(*_to_plot(_pose(_CUBE, head)))
        changed += [self._trail, self._disk, self._cube]

        self.kalman_text.set_text(self._table_text())
        self.monitor_text.set_text(self._monitor_text())
        changed += [self.kalman_text, self.monitor_text]

        fps = self.frame_rate.fps()
        if fps is not None:
            self.fps_label.set_text(format_fps(fps))
            changed.append(self.fps_label)
        return changed

    def on_key(self, event: Any) -> bool:
        """F5 makes the current position the origin and starts a new log."""
        if getattr(event, "key", None) != "f5":
            return False
        self.model.reset_origin()
        if self.log is not None:
            self.log.start_new()
        return True

    def run(self) -> None:
        """Show the window and animate until it is closed."""
        import matplotlib.pyplot as plt
        from matplotlib.animation import FuncAnimation

        self._animation = FuncAnimation(
            self.figure, self.update, interval=int(1000 / TARGET_FPS),
            cache_frame_data=False,
        )
        plt.show()


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="imuviz", description="Visualise optical-flow and IMU location telemetry."
    )
    parser.add_argument("--port", help="serial port to open (default: connect to all found)")
    parser.add_argument("--baudrate", type=int, default=DEFAULT_BAUDRATE)
    parser.add_argument("--log-dir", default="log", help="directory for CSV logs")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(message)s")
    _log.info("Starting OF_IMU_LocationCore-Viz...")

    telemetry = Telemetry(HISTORY_SIZE, POS_SCALE)
    log = CsvLog(args.log_dir)

    def write_log(data: dict[str, Any]) -> None:
        try:
            log.write(data)
        except (KeyError, TypeError, ValueError, AttributeError, OSError) as exc:
            _log.warning("Error writing to log file: %s", exc)

    telemetry.on_message = write_log
    model = VizModel(telemetry)
    viewer = Viewer(model, log)
    links: list[SerialLink] = []

    def handle_line(line: str) -> None:
        try:
            telemetry.receive(line)
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            _log.warning("Recovered in receive: %s", exc)

    def connect(name: str) -> None:
        try:
            links.append(SerialLink(name, handle_line, args.baudrate).start())
        except (OSError, ValueError) as exc:
            viewer._post(f"Failed to open port {name}: {exc}")
            return
        viewer._post(f"Connected to port: {name}")

    def discover() -> None:
        if args.port:
            connect(args.port)
            return
        time.sleep(1.0)
        for name in wait_for_ports():
            viewer._post(f"Found serial port: {name}")
            time.sleep(0.2)
            connect(name)

    threading.Thread(target=discover, name="port-discovery", daemon=True).start()
    try:
        viewer.run()
    finally:
        for link in links:
            link.stop()
        log.close()
    return 0