"""
Error taxonomy for the PowerMag 100 driver.

Caller errors (InvalidPulseSpec, InvalidTransition) are raised before any
byte reaches the transport. MalformedResponse means the command went out and
only the reply could not be decoded. TransportFailure means the channel itself
failed and the session can no longer be trusted.
"""


class PM100Error(Exception):
    pass


class InvalidPulseSpec(PM100Error, ValueError):
    pass


class InvalidTransition(PM100Error, RuntimeError):
    def __init__(self, current, requested, target=None):
        self.current = current
        self.requested = requested
        self.target = target
        current_name = getattr(current, "name", current)
        requested_name = getattr(requested, "name", requested)
        if target is not None:
            requested_name += f" (-> {getattr(target, 'name', target)})"
        super().__init__(f"Cannot {requested_name} from state {current_name}")


class MalformedResponse(PM100Error, ValueError):
    def __init__(self, message: str, raw: bytes | str | None = None):
        self.raw = raw
        if raw is not None:
            message = f"{message}: {raw!r}"
        super().__init__(message)


class TransportFailure(PM100Error, IOError):
    pass
