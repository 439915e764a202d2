import sys
import time
from datetime import datetime

from device.session import DeviceSession
from domain.pulse_spec import PulseShape, PulseSpec
from protocol.errors import PM100Error
from transport.serial_interface import SerialSettings, SerialTransport, open_serial_port


# ---------------------------------------------------------------------------
# Simple console logger
# ---------------------------------------------------------------------------
def log(msg: str) -> None:
    ts = datetime.now().strftime("%H:%M:%S")
    print(f"[{ts}] {msg}", flush=True)


def parse_int_list(text: str) -> list[int]:
    """
    "0 200 200" or "0,200,200" -> [0, 200, 200]
    """
    parts = text.replace(",", " ").split()
    if not parts:
        raise ValueError("expected at least one integer")
    return [int(p) for p in parts]


def build_arg_parser():
    import argparse

    ap = argparse.ArgumentParser(description="Run a pulse protocol on a PowerMag 100 stimulator")
    ap.add_argument("--port", required=True, help="Serial port (e.g. COM3 or /dev/ttyUSB0)")
    ap.add_argument("--baud", type=int, default=115200)
    ap.add_argument("--device", type=int, default=0, help="Device number on the bus (0 if only one)")
    ap.add_argument(
        "--shape",
        choices=[s.name.lower() for s in PulseShape],
        default=PulseShape.FULL_WAVE.name.lower(),
        help="Pulse shape",
    )
    ap.add_argument(
        "--onsets",
        type=parse_int_list,
        default=[0, 200, 200],
        help="Pulse onsets, each relative to the previous pulse (e.g. '0 200 200')",
    )
    ap.add_argument(
        "--intensities",
        type=parse_int_list,
        default=[100, 80, 100],
        help="One intensity per onset, or a single value for all pulses",
    )
    ap.add_argument("--repeat", type=int, default=1, help="How many times to start the loaded protocol")
    ap.add_argument("--interval", type=float, default=1.0, help="Seconds between protocol starts")
    ap.add_argument("--display", action="store_true", help="Print device replies and script lines")
    ap.add_argument("--trace", action="store_true", help="Log raw TX/RX bytes")
    return ap


def run(session: DeviceSession, spec: PulseSpec, *, repeat: int, interval: float, display: bool) -> None:
    session.connect()

    log("Resetting stimulator interface")
    session.reset(display)

    # Identify re-arms pulse delivery after the reset.
    identity = session.identify(display)
    log(f"Device id: {identity}")

    status = session.get_status(display)
    log(f"Status: {status}")

    temperature = session.get_temperature(display)
    log(f"Coil temperature: {temperature.celsius:.5g} C")

    session.activate(display)
    session.load_script(spec, display)
    log(f"Loaded protocol with {len(spec)} pulses")

    for i in range(repeat):
        log(f"Starting protocol ({i + 1}/{repeat})")
        session.start(display)
        time.sleep(interval)
        session.stop(display)

    session.deactivate(display)
    log("Stimulator deactivated")


def main(argv=None) -> int:
    args = build_arg_parser().parse_args(argv)

    try:
        spec = PulseSpec.from_values(
            PulseShape[args.shape.upper()],
            args.intensities[0] if len(args.intensities) == 1 else args.intensities,
            args.onsets,
        )
    except PM100Error as e:
        log(f"Invalid protocol: {e}")
        return 2

    log(f"Opening serial port {args.port}")
    try:
        ser = open_serial_port(args.port, SerialSettings(baudrate=args.baud))
    except PM100Error as e:
        log(str(e))
        return 1

    trace_fn = log if args.trace else None
    transport = SerialTransport(ser, log_fn=trace_fn)
    session = DeviceSession(transport, args.device, log_fn=trace_fn, display_fn=log)

    try:
        run(session, spec, repeat=args.repeat, interval=args.interval, display=args.display)
    except PM100Error as e:
        log(f"⚠ {type(e).__name__}: {e}")
        try:
            session.reset()
        except PM100Error as reset_error:
            log(f"⚠ Reset after failure also failed: {reset_error}")
        return 1
    finally:
        ser.close()
        log("Serial port closed")

    return 0


if __name__ == "__main__":
    sys.exit(main())
