"""Serial port discovery and a background line reader."""

from __future__ import annotations

import logging
import threading
import time
from typing import BinaryIO, Callable, Iterator, Optional

import serial
from serial.tools import list_ports as _list_ports

_log = logging.getLogger(__name__)

DEFAULT_BAUDRATE = 115200


def list_ports() -> list[str]:
    """Device names of the serial ports present now."""
    return [port.device for port in _list_ports.comports()]


def wait_for_ports(interval: float = 1.0) -> list[str]:
    """Block until at least one serial port is present and return them."""
    while True:
        ports = list_ports()
        if ports:
            return ports
        time.sleep(interval)


def iter_lines(stream: BinaryIO) -> Iterator[str]:
    """Yield newline-terminated lines; stop at end of stream."""
    for raw in iter(stream.readline, b""):
        if not raw.endswith(b"\n"):
            return
        yield raw.decode("utf-8", errors="replace")


class SerialLink:
    """Reads lines from a serial port on a background thread."""

    def __init__(
        self,
        port_name: str,
        on_line: Callable[[str], object],
        baudrate: int = DEFAULT_BAUDRATE,
    ) -> None:
        self.port_name = port_name
        self.on_line = on_line
        self.baudrate = baudrate
        self.error: Optional[BaseException] = None
        self._port = None
        self._thread: Optional[threading.Thread] = None
        self._stopping = threading.Event()

    def start(self) -> SerialLink:
        """Open the port and start reading; raises if the port cannot open."""
        if self._thread is not None:
            raise RuntimeError("link already started")
        _log.info("Connecting to port %s", self.port_name)
        self._stopping.clear()
        self._port = serial.Serial(self.port_name, self.baudrate)
        _log.info("Connected to port: %s", self.port_name)
        self._thread = threading.Thread(
            target=self._read_loop, name=f"serial-{self.port_name}", daemon=True
        )
        self._thread.start()
        return self

    def _read_loop(self) -> None:
        try:
            for line in iter_lines(self._port):
                if self._stopping.is_set():
                    break
                self.on_line(line)
        except (serial.SerialException, OSError, ValueError, TypeError) as exc:
            if not self._stopping.is_set():
                self.error = exc
                _log.error("Serial read failed on %s: %s", self.port_name, exc)

    def stop(self) -> None:
        """Stop reading and close the port."""
        self._stopping.set()
        port = self._port
        if port is not None:
            cancel = getattr(port, "cancel_read", None)
            if cancel is not None:
                cancel()
            port.close()
        if self._thread is not None:
            self._thread.join(timeout=1.0)
        self._port = None
        self._thread = None