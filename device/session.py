import logging
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass

import pm100_command_ids as CMD
from device.state_machine import Operation, SessionState, plan
from domain.pulse_spec import PulseSpec
from protocol.command_composer import (
    compose_activate,
    compose_deactivate,
    compose_query,
    compose_script,
    compose_start,
    compose_stop,
)
from protocol.command_registry import command_name
from protocol.errors import TransportFailure
from protocol.frame_codec import CommandFrame, encode_reset
from protocol.reply_parser import (
    IdRecord,
    StatusRecord,
    TemperatureRecord,
    parse_id_reply,
    parse_status_reply,
    parse_temperature_reply,
)


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeviceInfo:
    id: IdRecord
    status: StatusRecord
    temperature: TemperatureRecord


class DeviceSession:
    """
    One PowerMag 100 on one transport.

    Operations must follow the hardware order: reset, identify, activate,
    load_script, start. Anything out of order raises InvalidTransition before
    a byte is written. All calls are serialised by one lock, so a session can
    be shared between threads, but only one session should use a transport
    at a time.

    The transport needs flush_input(), write(bytes) and read_until(bytes).
    `sleep` runs the firmware settling delays; `display_fn` receives
    human-readable records when an operation is called with display=True.
    """

    def __init__(
        self,
        transport,
        device_id: int = 0,
        *,
        log_fn=None,
        display_fn=print,
        sleep=time.sleep,
    ):
        if isinstance(device_id, bool) or int(device_id) != device_id or device_id < 0:
            raise ValueError(f"device_id must be a non-negative integer, got {device_id!r}")
        self.transport = transport
        self.device_id = int(device_id)
        self.log_fn = log_fn or logger.debug
        self.display_fn = display_fn
        self._sleep = sleep
        self._lock = threading.RLock()
        self._state = SessionState.DISCONNECTED
        self.identity: IdRecord | None = None
        self.script: PulseSpec | None = None

    @property
    def state(self) -> SessionState:
        return self._state

    def _set_state(self, state: SessionState) -> None:
        if state is not self._state:
            self.log_fn(f"MS{self.device_id}: {self._state.name} -> {state.name}")
        self._state = state

    def _drop(self, reason: str) -> None:
        self.log_fn(f"MS{self.device_id}: {reason}, session dropped to DISCONNECTED")
        self._state = SessionState.DISCONNECTED
        self.identity = None
        self.script = None

    @contextmanager
    def _guard(self):
        try:
            yield
        except TransportFailure:
            self._drop("transport failure")
            raise

    def _send(self, frame: CommandFrame) -> None:
        if not frame.is_script_line:
            self.log_fn(f"MS{self.device_id}: {command_name(frame.opcode)} {frame.argument}".rstrip())
        self.transport.write(frame.wire_bytes())

    def _query(self, opcode: str, parser, settle_s: float):
        # Stale bytes from an earlier mistimed exchange would be read as
        # this reply.
        self.transport.flush_input()
        self._send(compose_query(self.device_id, opcode))
        try:
            reply = self.transport.read_until(CMD.LF)
            record = parser(reply)
            self.transport.flush_input()
        finally:
            self._sleep(settle_s)
        return record

    def _show(self, display: bool, record) -> None:
        if display:
            self.display_fn(str(record))

    def connect(self) -> SessionState:
        with self._lock:
            transition = plan(self._state, Operation.CONNECT)
            self._set_state(transition.target)
            return self._state

    def reset(self, display: bool = False) -> None:
        """
        Send ESC and wait for the interface to restart.

        The reset also disarms pulse delivery: until identify() succeeds,
        a started script clicks at zero intensity.
        """
        with self._lock:
            transition = plan(self._state, Operation.RESET)
            with self._guard():
                self.transport.write(encode_reset())
                self._sleep(transition.settle_s)
            self.identity = None
            self.script = None
            self._set_state(transition.target)
            self._show(display, f"MS{self.device_id} reset")

    def identify(self, display: bool = False) -> IdRecord:
        """
        Query the firmware id. This is also what re-arms pulse delivery
        after a reset.
        """
        with self._lock:
            transition = plan(self._state, Operation.IDENTIFY)
            with self._guard():
                record = self._query(CMD.IDENTIFY, parse_id_reply, transition.settle_s)
            self.identity = record
            self._set_state(transition.target)
            self._show(display, record)
            return record

    def get_status(self, display: bool = False) -> StatusRecord:
        with self._lock:
            transition = plan(self._state, Operation.GET_STATUS)
            with self._guard():
                record = self._query(CMD.GET_STATUS, parse_status_reply, transition.settle_s)
            self._show(display, record)
            return record

    def get_temperature(self, display: bool = False) -> TemperatureRecord:
        with self._lock:
            transition = plan(self._state, Operation.GET_TEMPERATURE)
            with self._guard():
                record = self._query(CMD.GET_TEMPERATURE, parse_temperature_reply, transition.settle_s)
            self._show(display, record)
            return record

    def get_infos(self, display: bool = False) -> DeviceInfo:
        """
        Identify, then read status and coil temperature in one locked call.
        """
        with self._lock:
            plan(self._state, Operation.IDENTIFY)
            return DeviceInfo(
                id=self.identify(display),
                status=self.get_status(display),
                temperature=self.get_temperature(display),
            )

    def activate(self, display: bool = False) -> None:
        with self._lock:
            transition = plan(self._state, Operation.ACTIVATE)
            with self._guard():
                self._send(compose_activate(self.device_id))
            self._set_state(transition.target)
            self._show(display, f"MS{self.device_id} activated")

    def load_script(self, spec: PulseSpec, display: bool = False) -> list[CommandFrame]:
        """
        Transfer a pulse protocol: ST 1, one line per pulse, ST 0.

        Frames go out one at a time with a fixed gap so the device's script
        parser keeps up. A failure part way leaves the device script undefined;
        the session drops to DISCONNECTED and the script has to be loaded
        again after reset, identify and activate.
        """
        with self._lock:
            transition = plan(self._state, Operation.LOAD_SCRIPT)
            frames = compose_script(spec, device_id=self.device_id)
            self.script = None
            if display:
                self.display_fn("PROTOCOL:")
            try:
                with self._guard():
                    for frame in frames:
                        self._send(frame)
                        if display and frame.is_script_line:
                            self.display_fn(str(frame))
                        self._sleep(transition.settle_s)
            except BaseException:
                # Includes KeyboardInterrupt: a half-sent script must never be
                # startable.
                if self._state is not SessionState.DISCONNECTED:
                    self._drop("script transfer interrupted")
                raise
            self.script = spec
            self._set_state(transition.target)
            return frames

    def start(self, display: bool = False) -> None:
        with self._lock:
            transition = plan(self._state, Operation.START)
            with self._guard():
                self._send(compose_start(self.device_id))
            self._set_state(transition.target)
            self._show(display, f"MS{self.device_id} stimulation started")

    def stop(self, display: bool = False) -> None:
        with self._lock:
            transition = plan(self._state, Operation.STOP)
            with self._guard():
                self._send(compose_stop(self.device_id))
            self._set_state(transition.target)
            self._show(display, f"MS{self.device_id} stimulation stopped")

    def deactivate(self, display: bool = False) -> None:
        with self._lock:
            transition = plan(self._state, Operation.DEACTIVATE)
            with self._guard():
                self._send(compose_deactivate(self.device_id))
            self._set_state(transition.target)
            self._show(display, f"MS{self.device_id} deactivated")

