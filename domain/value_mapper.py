from protocol.errors import MalformedResponse


RAW_TEMPERATURE_MAX = 255
COIL_TEMPERATURE_SPAN_C = 50.0


def raw_to_celsius(raw: int) -> float:
    """
    Map the coil temperature byte onto degrees Celsius.

    The device reports 0-255 across a 0-50 C range. Values outside the byte
    range are a decode error, not something to clamp.
    """
    if isinstance(raw, bool) or not isinstance(raw, int):
        raise MalformedResponse(f"Temperature byte must be an integer, got {raw!r}")
    if not 0 <= raw <= RAW_TEMPERATURE_MAX:
        raise MalformedResponse(f"Temperature byte out of range 0-{RAW_TEMPERATURE_MAX}: {raw}")
    return raw * COIL_TEMPERATURE_SPAN_C / RAW_TEMPERATURE_MAX
