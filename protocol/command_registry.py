"""
What each opcode looks like on the wire.

Queries (ID, GS, GT) take no argument and are answered with one
<CR>...<LF> reply. Switches (SE, RS, ST) take a single 0/1 argument and are
never answered.
"""

from dataclasses import dataclass

import pm100_command_ids as CMD


@dataclass(frozen=True)
class CommandSpec:
    name: str
    opcode: str
    arguments: frozenset
    expects_reply: bool


_QUERIES = ("IDENTIFY", "GET_STATUS", "GET_TEMPERATURE")
_SWITCHES = ("SET_ENABLED", "RUN_SCRIPT", "SCRIPT_TRANSFER")


def _build_registry() -> dict[str, CommandSpec]:
    registry: dict[str, CommandSpec] = {}
    for name in _QUERIES:
        opcode = getattr(CMD, name)
        registry[opcode] = CommandSpec(name, opcode, frozenset({""}), expects_reply=True)
    for name in _SWITCHES:
        opcode = getattr(CMD, name)
        registry[opcode] = CommandSpec(name, opcode, frozenset({CMD.ON, CMD.OFF}), expects_reply=False)
    return registry


COMMANDS = _build_registry()


def lookup(opcode: str) -> CommandSpec | None:
    return COMMANDS.get((opcode or "").strip().upper())


def command_name(opcode: str) -> str:
    spec = lookup(opcode)
    return spec.name if spec else "UNKNOWN"


def is_supported_command(opcode: str) -> bool:
    return lookup(opcode) is not None


def check_argument(opcode: str, argument: str) -> None:
    """
    Raise ValueError unless `argument` is one the device accepts for
    `opcode` ("" for queries, "0"/"1" for switches).
    """
    spec = lookup(opcode)
    if spec is None:
        raise ValueError(f"Unknown opcode {opcode!r}")
    if argument not in spec.arguments:
        allowed = sorted(a or "<none>" for a in spec.arguments)
        raise ValueError(f"{spec.name} takes {' or '.join(allowed)}, got {argument!r}")


def expects_reply(opcode: str) -> bool:
    spec = lookup(opcode)
    return bool(spec and spec.expects_reply)
