# imuviz

A live viewer for a location core that fuses an IMU with an optical-flow
sensor through a Kalman filter and streams one JSON object per line over a
serial port.

The viewer, a matplotlib window:

- connects to serial ports (115200 baud by default): either the one given
  with `--port`, or, after waiting until at least one is present, every port
  it finds,
- shows the device's position and orientation in 3D, with a trail of past
  positions whose length is set by the "Trail Length" slider, and an
  "Orthographic" checkbox to switch the projection,
- plots linear acceleration, orientation (Euler angles, degrees) and optical
  flow over the shown part of the history,
- shows the filter's state `x`, error covariance `P`, state transition `f`,
  Kalman gain `K` and innovation `y-h` as text tables,
- shows the render frame rate and a short serial monitor of connection
  messages.

## Install

```
pip install .
```

## Run

```
imuviz [--port PORT] [--baudrate BAUDRATE] [--log-dir DIR]
```

- `--port`: serial port to open; without it, all ports found are used.
- `--baudrate`: serial speed, default 115200.
- `--log-dir`: directory for CSV logs, default `log`.

Press **F5** to zero the displayed position at the device's current location.
This also clears the trail and starts a fresh CSV log file in the log
directory, named `log_DDMMYY_HHMMSS.csv`. All other files in that directory
are removed when a new log starts. No log is written until F5 has been
pressed once; from then on every received message is appended as a row.

## Message format

Each line is a JSON object. Any of these keys may be present:

| key            | content                                                     |
|----------------|-------------------------------------------------------------|
| `sensor_input` | `quat` (`x`,`y`,`z`,`w`), `accel` and `of` (`x`,`y`,`z`)    |
| `state`        | `x`, `y`, `z`, `vx`, `vy`, `vz`, `dt`                       |
| `micros`       | device timestamp in microseconds (needed with `state`)      |
| `P`            | 36 numbers, the 6×6 covariance row by row                   |
| `f`            | 6 numbers; present on predict steps                         |
| `K`            | 18 numbers, the 3×6 gain row by row                         |
| `y-h`          | 3 numbers; present on update steps                          |

Lines that are not a JSON object are logged as a warning and skipped.

## Using the pieces

The parsing and logging parts work without a display:

```python
from imuviz.telemetry import Telemetry
from imuviz.logger import CsvLog

telemetry = Telemetry(history_size=2000, pos_scale=100)
with CsvLog("log") as log:
    log.start_new()
    for line in lines:
        data = telemetry.receive(line)
        if data is not None:
            log.write(data)
```

- `imuviz.geometry`: `Vector3`, `Quaternion` and `rotate_on_axis`.
- `imuviz.telemetry`: `parse_message` and `Telemetry`, which keeps the latest
  filter values and fixed-length histories, newest first.
- `imuviz.logger`: `header`, `format_row`, `log_file_name` and `CsvLog`.
- `imuviz.serial_link`: `list_ports`, `wait_for_ports`, `iter_lines` and
  `SerialLink`, which reads lines on a background thread.
- `imuviz.model`: `VizModel` turns a `Telemetry` into what the viewer draws:
  trail points, graph series and table rows.
- `imuviz.viewer`: `Viewer`, `FrameRate`, `format_fps` and `main`.

## Limits

The package only shows and logs live data. It does not read CSV logs back,
replay recorded sessions, or send anything to the device.

## Tests

```
pip install .[test]
pytest
```