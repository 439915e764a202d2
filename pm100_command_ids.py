"""
Command ids and wire constants for the PowerMag 100 serial protocol.

Command framing: MS<device> <OP>[ <ARG>]<CR>
Reply framing:   <CR><fields...><LF>

Script lines (sent between ST 1 and ST 0) are not prefixed with MS:
  <device> <shape> <intensity:3> <onset:16> <checksum:2>
"""

COMMAND_PREFIX = "MS"

IDENTIFY = "ID"
GET_STATUS = "GS"
GET_TEMPERATURE = "GT"
SET_ENABLED = "SE"
RUN_SCRIPT = "RS"
SCRIPT_TRANSFER = "ST"

# Arguments for the on/off style opcodes above.
ON = "1"
OFF = "0"

RESET_BYTE = b"\x1b"
CR = b"\r"
LF = b"\n"

INTENSITY_WIDTH = 3
ONSET_WIDTH = 16
