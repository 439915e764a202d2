import re
from dataclasses import dataclass

import pm100_command_ids as CMD
from protocol.command_registry import check_argument


FRAME_RE = re.compile(r"^MS\d+ [A-Z]{2}(?: [^\r\n]+)?\r$")
SCRIPT_LINE_RE = re.compile(r"^\d+ [01] \d{3} \d{16} [0-9A-F]{2}$")


def is_framed_command(packet: bytes) -> bool:
    """
    Returns True only for control frames shaped as "MS<dev> <OP>[ <ARG>]\\r".
    """
    if not isinstance(packet, (bytes, bytearray)):
        return False
    text = bytes(packet).decode("ascii", errors="replace")
    return FRAME_RE.fullmatch(text) is not None


def zero_pad(value: int, width: int, *, field: str = "value") -> str:
    """
    Render a non-negative integer as a decimal string left padded with '0'
    to exactly `width` characters.
    """
    if isinstance(value, bool) or int(value) != value:
        raise ValueError(f"{field} must be an integer, got {value!r}")
    value = int(value)
    if value < 0:
        raise ValueError(f"{field} must be non-negative, got {value}")
    text = str(value)
    if len(text) > width:
        raise ValueError(f"{field} {value} does not fit in {width} digits")
    return text.rjust(width, "0")


def additive_checksum_hex_2(body) -> str:
    """
    Sum of the character codes of `body`, as hex, last two digits.

    The device compares only the low byte, so the sum wraps at 0xFF.
    """
    if isinstance(body, str):
        body = body.encode("ascii")
    if not isinstance(body, (bytes, bytearray)):
        raise TypeError("body must be str or bytes")
    return f"{sum(body) & 0xFF:02X}"


def _check_device_id(device_id: int) -> int:
    if isinstance(device_id, bool) or int(device_id) != device_id or device_id < 0:
        raise ValueError(f"device_id must be a non-negative integer, got {device_id!r}")
    return int(device_id)


@dataclass(frozen=True)
class CommandFrame:
    """
    One outbound frame.

    Control frames have an opcode and no checksum. Script lines have no
    opcode; `argument` holds "<shape> <intensity> <onset>" and `checksum`
    the two hex digits computed over the line body.
    """

    device_id: int
    opcode: str | None
    argument: str = ""
    checksum: str | None = None

    @property
    def is_script_line(self) -> bool:
        return self.checksum is not None

    @property
    def body(self) -> str:
        if self.is_script_line:
            return f"{self.device_id} {self.argument} "
        text = f"{CMD.COMMAND_PREFIX}{self.device_id} {self.opcode}"
        if self.argument:
            text += f" {self.argument}"
        return text

    def encode(self) -> bytes:
        if self.is_script_line:
            return (self.body + self.checksum).encode("ascii")
        return self.body.encode("ascii") + CMD.CR

    def wire_bytes(self) -> bytes:
        """
        Bytes written to the port. Script lines get the CR write terminator
        here; `encode()` leaves them unterminated.
        """
        data = self.encode()
        if self.is_script_line:
            if SCRIPT_LINE_RE.fullmatch(data.decode("ascii")) is None:
                raise ValueError(f"Not a valid script line: {data!r}")
            return data + CMD.CR
        if not is_framed_command(data):
            raise ValueError(f"Not a valid control frame: {data!r}")
        return data

    def __str__(self) -> str:
        return self.encode().decode("ascii").rstrip("\r")


def command_frame(device_id: int, opcode: str, argument: str | None = None) -> CommandFrame:
    op = (opcode or "").strip().upper()
    arg = "" if argument is None else str(argument).strip()
    check_argument(op, arg)
    return CommandFrame(_check_device_id(device_id), op, arg)


def encode_command(device_id: int, opcode: str, argument: str | None = None) -> bytes:
    """
    Compose a control command:
      MS<device_id> <opcode>[ <argument>]\\r
    """
    return command_frame(device_id, opcode, argument).encode()


def encode_reset() -> bytes:
    return CMD.RESET_BYTE


def script_line_frame(
    device_id: int,
    pulse_shape: int,
    intensity: int,
    onset: int,
    checksum_fn=additive_checksum_hex_2,
) -> CommandFrame:
    device_id = _check_device_id(device_id)
    shape = int(pulse_shape)
    if shape not in (0, 1):
        raise ValueError(f"pulse_shape must be 0 (half wave) or 1 (full wave), got {pulse_shape!r}")

    intensity3 = zero_pad(intensity, CMD.INTENSITY_WIDTH, field="intensity")
    onset16 = zero_pad(onset, CMD.ONSET_WIDTH, field="onset")
    argument = f"{shape} {intensity3} {onset16}"

    body = f"{device_id} {argument} "
    checksum = str(checksum_fn(body.encode("ascii"))).strip().upper()
    if not re.fullmatch(r"[0-9A-F]{2}", checksum):
        raise ValueError(f"checksum_fn must return exactly 2 hex digits, got {checksum!r}")

    return CommandFrame(device_id, None, argument, checksum)


def encode_script_line(
    device_id: int,
    pulse_shape: int,
    intensity: int,
    onset: int,
    checksum_fn=additive_checksum_hex_2,
) -> bytes:
    """
    Compose one stimulation script line:
      <device_id> <shape> <intensity:3> <onset:16> <checksum:2>

    The checksum covers everything before it, including the trailing space.
    No terminator is appended.
    """
    return script_line_frame(device_id, pulse_shape, intensity, onset, checksum_fn).encode()


def verify_script_line(line, checksum_fn=additive_checksum_hex_2) -> bool:
    """
    Recompute the checksum over the line body and compare with its last two
    characters.
    """
    if isinstance(line, (bytes, bytearray)):
        line = bytes(line).decode("ascii", errors="replace")
    line = line.rstrip("\r")
    if SCRIPT_LINE_RE.fullmatch(line) is None:
        return False
    body, received = line[:-2], line[-2:]
    return checksum_fn(body.encode("ascii")) == received
