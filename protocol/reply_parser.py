import re
from dataclasses import dataclass

import pm100_command_ids as CMD
from domain.value_mapper import raw_to_celsius
from protocol.errors import MalformedResponse


NUMBER_RE = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)$")

TAG_END = 2
MODEL_END = 5
STATUS_FLAG_END = 6
STATUS_FIELD1_END = 8
STATUS_FIELD2_END = 10


@dataclass(frozen=True)
class IdRecord:
    device_tag: str
    model_code: str
    version_major: float
    version_minor: float

    def __str__(self) -> str:
        return (
            f"{self.device_tag} {self.model_code} "
            f"{_format_number(self.version_major)} {_format_number(self.version_minor)}"
        )


@dataclass(frozen=True)
class StatusRecord:
    """
    Segmented GS reply. Field meanings are listed in the device manual;
    this layer only slices them.
    """

    device_tag: str
    model_code: str
    status_flag: str
    field1: str
    field2: str
    remainder: str

    def __str__(self) -> str:
        return " ".join(
            [self.device_tag, self.model_code, self.status_flag, self.field1, self.field2, self.remainder]
        ).rstrip()


@dataclass(frozen=True)
class TemperatureRecord:
    device_tag: str
    model_code: str
    raw_byte: int

    @property
    def celsius(self) -> float:
        return raw_to_celsius(self.raw_byte)

    def __str__(self) -> str:
        return f"{self.device_tag} {self.model_code} {self.raw_byte} --> {self.celsius:.5g}\N{DEGREE SIGN}C"


def _format_number(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


def _reply_text(packet) -> str:
    """
    Strip the reply envelope: "<CR>fields<LF>" -> "fields".

    The reply must end with LF. Leading CR and surrounding whitespace are
    dropped.
    """
    if isinstance(packet, str):
        packet = packet.encode("ascii", errors="replace")
    if not isinstance(packet, (bytes, bytearray)):
        raise TypeError("packet must be bytes")
    if not bytes(packet).endswith(CMD.LF):
        raise MalformedResponse("Reply is not terminated by LF", packet)
    return bytes(packet).decode("ascii", errors="replace").strip()


def _packed_fields(packet) -> str:
    # Fields are fixed width; whitespace between them carries no meaning.
    return "".join(_reply_text(packet).split())


def _require_length(text: str, minimum: int, what: str, packet) -> None:
    if len(text) < minimum:
        raise MalformedResponse(
            f"{what} reply too short: expected at least {minimum} characters, got {len(text)}",
            packet,
        )


def _parse_number(token: str, what: str, packet) -> float:
    if NUMBER_RE.fullmatch(token) is None:
        raise MalformedResponse(f"Non-numeric {what} {token!r}", packet)
    return float(token)


def parse_id_reply(packet) -> IdRecord:
    """
    Parse an ID reply.
    Format: <CR><tag:2><model:3> <major> <minor><LF>
    """
    tokens = _reply_text(packet).split()
    if len(tokens) < 3:
        raise MalformedResponse("ID reply too short: expected identification and two version numbers", packet)

    ident = "".join(tokens[:-2])
    _require_length(ident, MODEL_END, "ID", packet)

    return IdRecord(
        device_tag=ident[:TAG_END],
        model_code=ident[TAG_END:MODEL_END],
        version_major=_parse_number(tokens[-2], "major version", packet),
        version_minor=_parse_number(tokens[-1], "minor version", packet),
    )


def parse_status_reply(packet) -> StatusRecord:
    """
    Parse a GS reply.
    Format: <CR><tag:2><model:3><flag:1><field1:2><field2:2><remainder><LF>
    """
    text = _packed_fields(packet)
    _require_length(text, STATUS_FIELD2_END, "Status", packet)

    return StatusRecord(
        device_tag=text[:TAG_END],
        model_code=text[TAG_END:MODEL_END],
        status_flag=text[MODEL_END:STATUS_FLAG_END],
        field1=text[STATUS_FLAG_END:STATUS_FIELD1_END],
        field2=text[STATUS_FIELD1_END:STATUS_FIELD2_END],
        remainder=text[STATUS_FIELD2_END:],
    )


def parse_temperature_reply(packet) -> TemperatureRecord:
    """
    Parse a GT reply.
    Format: <CR><tag:2><model:3><raw byte, decimal><LF>
    """
    text = _packed_fields(packet)
    _require_length(text, MODEL_END + 1, "Temperature", packet)

    raw_text = text[MODEL_END:]
    if not raw_text.isdigit():
        raise MalformedResponse(f"Non-numeric temperature byte {raw_text!r}", packet)

    record = TemperatureRecord(
        device_tag=text[:TAG_END],
        model_code=text[TAG_END:MODEL_END],
        raw_byte=int(raw_text),
    )
    # Rejects bytes outside 0-255.
    raw_to_celsius(record.raw_byte)
    return record
