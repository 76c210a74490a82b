import json

import pytest

from imuviz.geometry import ROBOT_PROJECTION, Vector3
from imuviz.telemetry import PREDICT_RATE_HZ, UPDATE_RATE_HZ, Telemetry, parse_message

STATE = {"x": 0.1, "y": 0.2, "z": 0.3, "vx": 1.0, "vy": 2.0, "vz": 3.0, "dt": 0.004}


def test_parse_message_returns_object():
    assert parse_message('{"a": 1, "b": [2]}') == {"a": 1, "b": [2]}


@pytest.mark.parametrize("line", ["not json", "{", "[1, 2]", "3"])
def test_parse_message_rejects_bad_input(line):
    with pytest.raises(ValueError):
        parse_message(line)


def test_history_size_must_be_positive():
    with pytest.raises(ValueError):
        Telemetry(0, 100)


def test_state_and_position():
    tel = Telemetry(5, 100)
    tel.apply({"state": STATE})
    assert tel.state == pytest.approx([0.1, 0.2, 0.3, 1.0, 2.0, 3.0])
    assert tel.position.length() == pytest.approx(100 * Vector3(0.1, 0.2, 0.3).length())
    assert tel.position_history[0] == tel.position


def test_predict_step_sets_predict_cpu():
    tel = Telemetry(5, 100)
    tel.apply({"state": STATE, "f": [0.5] * 6})
    assert tel.predict_cpu / STATE["dt"] == pytest.approx(PREDICT_RATE_HZ)
    assert tel.update_cpu == 0.0
    assert tel.transition == [0.5] * 6


def test_update_step_sets_update_cpu():
    tel = Telemetry(5, 100)
    tel.apply({"state": STATE, "y-h": [0.1, 0.2, 0.3]})
    assert tel.update_cpu / STATE["dt"] == pytest.approx(UPDATE_RATE_HZ)
    assert tel.predict_cpu == 0.0
    assert tel.innovation == pytest.approx([0.1, 0.2, 0.3])


def test_matrices_are_stored():
    tel = Telemetry(5, 100)
    cov = [float(i) for i in range(36)]
    gain = [float(i) for i in range(18)]
    tel.apply({"P": cov, "K": gain})
    assert tel.covariance == cov
    assert tel.gain == gain


def test_short_matrix_is_rejected():
    tel = Telemetry(5, 100)
    with pytest.raises(ValueError):
        tel.apply({"P": [1.0, 2.0]})


def test_histories_are_newest_first_and_bounded():
    tel = Telemetry(3, 100)
    for i in range(4):
        tel.apply({"sensor_input": {"accel": {"x": float(i), "y": 0.0, "z": 0.0}}})
    assert len(tel.accel_history) == 3
    lengths = [v.length() for v in tel.accel_history]
    assert lengths == pytest.approx([3.0, 2.0, 1.0])


def test_identity_quaternion_maps_to_projection():
    tel = Telemetry(3, 100)
    tel.apply({"sensor_input": {"quat": {"x": 0.0, "y": 0.0, "z": 0.0, "w": 1.0}}})
    q = tel.orientation
    p = ROBOT_PROJECTION
    assert (q.x, q.y, q.z, q.w) == pytest.approx((p.x, p.y, p.z, p.w))
    assert tel.euler_history[0] == tel.orientation_euler


def test_receive_invalid_keeps_state():
    tel = Telemetry(3, 100)
    assert tel.receive("garbage\n") is None
    assert tel.receive("") is None
    assert tel.state == [0.0] * 6


def test_receive_valid_calls_listener():
    tel = Telemetry(3, 100)
    seen = []
    tel.on_message = seen.append
    message = {"state": STATE}
    result = tel.receive(json.dumps(message) + "\n")
    assert result == message
    assert seen == [message]
    assert tel.state[3:] == pytest.approx([1.0, 2.0, 3.0])


def test_missing_state_key_raises():
    tel = Telemetry(3, 100)
    with pytest.raises(KeyError):
        tel.apply({"state": {"x": 1.0}})


def test_non_numeric_value_raises():
    tel = Telemetry(3, 100)
    with pytest.raises(TypeError):
        tel.apply({"sensor_input": {"of": {"x": "1", "y": 0, "z": 0}}})