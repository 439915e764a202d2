import logging
import time
from dataclasses import dataclass

import serial

import pm100_command_ids as CMD
from protocol.errors import TransportFailure


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SerialSettings:
    baudrate: int = 115200
    bytesize: int = serial.EIGHTBITS
    parity: str = serial.PARITY_NONE
    stopbits: float = serial.STOPBITS_ONE
    timeout: float = 0.1
    write_timeout: float = 1.0


def open_serial_port(port: str, settings: SerialSettings | None = None) -> serial.Serial:
    """
    Open the stimulator's USB serial port (115200 8N1 by default).
    """
    settings = settings or SerialSettings()
    try:
        ser = serial.Serial(
            port=port,
            baudrate=settings.baudrate,
            bytesize=settings.bytesize,
            parity=settings.parity,
            stopbits=settings.stopbits,
            timeout=settings.timeout,
            write_timeout=settings.write_timeout,
        )
    except serial.SerialException as e:
        raise TransportFailure(f"Could not open serial port {port}: {e}") from e
    ser.reset_input_buffer()
    return ser


class SerialTransport:
    """
    Byte channel to the stimulator over a pyserial port.

    - Keeps leftover bytes between reads so nothing after a terminator is lost.
    - flush_input() drops both the local buffer and the OS input buffer.
    - Any serial error or read timeout surfaces as TransportFailure.

    Opening and closing the port is left to the caller.
    """

    def __init__(
        self,
        ser: serial.Serial,
        *,
        log_fn=None,
        read_timeout: float = 2.0,
    ):
        self.ser = ser
        self.log_fn = log_fn or logger.debug
        self.read_timeout = float(read_timeout)
        self.buf = b""

    def flush_input(self) -> None:
        if self.buf:
            self.log_fn(f"RX ✗ discarded {self.buf!r}")
        self.buf = b""
        try:
            self.ser.reset_input_buffer()
        except serial.SerialException as e:
            raise TransportFailure(f"Failed to flush serial input: {e}") from e

    def write(self, data: bytes) -> None:
        self.log_fn(f"TX → {data!r}")
        try:
            self.ser.write(data)
        except serial.SerialException as e:
            raise TransportFailure(f"Serial write failed: {e}") from e

    def read_until(self, terminator: bytes = CMD.LF, timeout: float | None = None) -> bytes:
        """
        Return everything up to and including `terminator`.
        """
        timeout = self.read_timeout if timeout is None else timeout
        t0 = time.time()

        while time.time() - t0 < timeout:
            if terminator in self.buf:
                idx = self.buf.index(terminator) + len(terminator)
                reply, self.buf = self.buf[:idx], self.buf[idx:]
                self.log_fn(f"RX ← {reply!r}")
                return reply

            try:
                chunk = self.ser.read(256)
            except serial.SerialException as e:
                raise TransportFailure(f"Serial read failed: {e}") from e
            if chunk:
                self.buf += chunk
            else:
                time.sleep(0.01)

        raise TransportFailure(f"Timed out waiting for {terminator!r} from device")
