import pm100_command_ids as CMD
from domain.pulse_spec import PulseSpec
from protocol.command_registry import expects_reply
from protocol.frame_codec import (
    CommandFrame,
    additive_checksum_hex_2,
    command_frame,
    script_line_frame,
)


def compose_script_begin(device_id: int) -> CommandFrame:
    return command_frame(device_id, CMD.SCRIPT_TRANSFER, CMD.ON)


def compose_script_end(device_id: int) -> CommandFrame:
    return command_frame(device_id, CMD.SCRIPT_TRANSFER, CMD.OFF)


def compose_script(
    spec: PulseSpec,
    device_id: int = 0,
    checksum_fn=additive_checksum_hex_2,
) -> list[CommandFrame]:
    """
    Frames for one script transfer: ST 1, one line per pulse, ST 0.

    The device appends lines in the order received, so the order here is
    the pulse order.
    """
    frames = [compose_script_begin(device_id)]
    for onset, intensity in spec.pulses():
        frames.append(
            script_line_frame(
                device_id,
                spec.pulse_shape,
                intensity,
                onset,
                checksum_fn=checksum_fn,
            )
        )
    frames.append(compose_script_end(device_id))
    return frames


def build_stimulation_script(
    pulse_shape,
    intensities,
    onsets,
    device_id: int = 0,
    checksum_fn=additive_checksum_hex_2,
) -> list[CommandFrame]:
    """
    Validate a pulse protocol and compose its script frames.

    Raises InvalidPulseSpec before composing anything if intensities and
    onsets cannot be paired.
    """
    spec = PulseSpec.from_values(pulse_shape, intensities, onsets)
    return compose_script(spec, device_id=device_id, checksum_fn=checksum_fn)


def compose_activate(device_id: int) -> CommandFrame:
    return command_frame(device_id, CMD.SET_ENABLED, CMD.ON)


def compose_deactivate(device_id: int) -> CommandFrame:
    return command_frame(device_id, CMD.SET_ENABLED, CMD.OFF)


def compose_start(device_id: int) -> CommandFrame:
    return command_frame(device_id, CMD.RUN_SCRIPT, CMD.ON)


def compose_stop(device_id: int) -> CommandFrame:
    return command_frame(device_id, CMD.RUN_SCRIPT, CMD.OFF)


def compose_query(device_id: int, opcode: str) -> CommandFrame:
    if not expects_reply(opcode):
        raise ValueError(f"{opcode!r} is not a query")
    return command_frame(device_id, opcode)
