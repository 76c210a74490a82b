import csv
from datetime import datetime

import pytest

from imuviz.logger import CsvLog, format_row, header, log_file_name

STATE = {"x": 0.1, "y": 0.2, "z": 0.3, "vx": 1.0, "vy": 2.0, "vz": 3.0, "dt": 0.02}
WHEN = datetime(2024, 3, 5, 7, 8, 9)


def predict_message():
    return {
        "micros": 1500000,
        "state": STATE,
        "f": [0.0] * 6,
        "P": [0.5] * 36,
        "sensor_input": {
            "quat": {"x": 0.5, "y": 0.5, "z": 0.5, "w": 0.5},
            "accel": {"x": 0.25, "y": 0.0, "z": -0.25},
            "of": {"x": 1.0, "y": 2.0, "z": 0.0},
        },
    }


def test_log_file_name():
    assert log_file_name(WHEN) == "log_050324_070809.csv"


def test_header_layout():
    h = header()
    assert h[0] == "t"
    assert h[19] == "dt"
    assert h[20] == "P_0"
    assert h[-1] == "P_35"
    assert len(set(h)) == len(h)


def test_predict_row():
    row = format_row(predict_message())
    assert len(row) == len(header())
    assert row[0] == "1.5000000"
    assert row[1] == "1.0000000"
    assert row[2] == ""
    assert row[3:7] == ["0.5000000"] * 4
    assert row[20:] == ["0.5000000"] * 36


def test_update_row_leaves_predict_empty():
    message = {"micros": 0, "state": STATE, "y-h": [0.0, 0.0, 0.0]}
    row = format_row(message)
    assert row[1] == ""
    assert row[2] == row[1 + 19]  or row[2].endswith("0")
    assert row[2] == format_row({"micros": 0, "state": STATE, "y-h": [0, 0, 0]})[2]
    assert row[20:] == [""] * 36


def test_missing_sensor_fields_are_blank():
    message = {"sensor_input": {"quat": {"x": 0.0, "y": 0.0, "z": 0.0, "w": 1.0}}}
    row = format_row(message)
    assert row[7:13] == [""] * 6
    assert len(row) == len(header())


def test_without_sensor_input_fields_are_zero_formatted():
    row = format_row({})
    assert row[3:13] == [row[3]] * 10
    assert row[3] == row[13]
    assert row[3] != ""


def test_state_without_micros_raises():
    with pytest.raises(KeyError):
        format_row({"state": STATE})


def test_write_before_start_does_nothing(tmp_path):
    log = CsvLog(tmp_path / "log")
    assert log.write(predict_message()) is None
    assert not (tmp_path / "log").exists()


def test_start_new_clears_directory_and_writes_rows(tmp_path):
    directory = tmp_path / "log"
    directory.mkdir()
    stale = directory / "old.csv"
    stale.write_text("stale")
    with CsvLog(directory) as log:
        path = log.start_new(WHEN)
        row = log.write(predict_message())
    assert not stale.exists()
    assert path.name == log_file_name(WHEN)
    with path.open(newline="") as handle:
        rows = list(csv.reader(handle))
    assert rows == [header(), row]


def test_closed_log_ignores_writes(tmp_path):
    log = CsvLog(tmp_path)
    log.start_new(WHEN)
    log.close()
    assert log.write(predict_message()) is None