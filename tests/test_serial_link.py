import io
import threading
import types
from unittest import mock

import pytest
import serial

from imuviz.serial_link import DEFAULT_BAUDRATE, SerialLink, iter_lines, list_ports, wait_for_ports


def _port(name):
    return types.SimpleNamespace(device=name)


def test_iter_lines_keeps_newlines():
    stream = io.BytesIO(b'{"a": 1}\n{"b": 2}\n')
    assert list(iter_lines(stream)) == ['{"a": 1}\n', '{"b": 2}\n']


def test_iter_lines_drops_unterminated_tail():
    stream = io.BytesIO(b"first\npartial")
    assert list(iter_lines(stream)) == ["first\n"]


@mock.patch("serial.tools.list_ports.comports")
def test_list_ports_returns_device_names(comports):
    comports.return_value = [_port("/dev/ttyUSB0"), _port("/dev/ttyACM1")]
    assert list_ports() == ["/dev/ttyUSB0", "/dev/ttyACM1"]


@mock.patch("time.sleep")
@mock.patch("serial.tools.list_ports.comports")
def test_wait_for_ports_retries_until_found(comports, sleep):
    comports.side_effect = [[], [], [_port("/dev/ttyUSB0")]]
    assert wait_for_ports(0.5) == ["/dev/ttyUSB0"]
    assert sleep.call_args_list == [mock.call(0.5), mock.call(0.5)]


class _FakePort(io.BytesIO):
    opened_with = None

    def __init__(self, name, baudrate):
        type(self).opened_with = (name, baudrate)
        super().__init__(b"one\ntwo\n")


def test_serial_link_delivers_lines():
    received = []
    done = threading.Event()

    def on_line(line):
        received.append(line)
        if len(received) == 2:
            done.set()

    with mock.patch("serial.Serial", _FakePort):
        link = SerialLink("/dev/ttyUSB0", on_line, DEFAULT_BAUDRATE).start()
        assert done.wait(2.0)
        link.stop()
    assert received == ["one\n", "two\n"]
    assert _FakePort.opened_with == ("/dev/ttyUSB0", DEFAULT_BAUDRATE)
    assert link.error is None


def test_serial_link_open_failure_raises():
    failing = mock.Mock(side_effect=serial.SerialException("no such port"))
    with mock.patch("serial.Serial", failing):
        link = SerialLink("/dev/missing", lambda line: None, DEFAULT_BAUDRATE)
        with pytest.raises(serial.SerialException):
            link.start()


def test_serial_link_cannot_start_twice():
    with mock.patch("serial.Serial", _FakePort):
        link = SerialLink("/dev/ttyUSB0", lambda line: None, DEFAULT_BAUDRATE).start()
        with pytest.raises(RuntimeError):
            link.start()
        link.stop()