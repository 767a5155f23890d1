class NegotiationError(Exception):
    """
    Base class for errors which end a negotiation session.
    """


class InvalidStateError(NegotiationError):
    """
    An operation was attempted which the session state does not allow.

    Raised by the engine when one of its own preconditions does not hold,
    for instance applying a candidate before any remote description exists.
    """


class OperationError(NegotiationError):
    """
    A description, candidate or envelope was rejected.
    """


class SignalingClosedError(NegotiationError, ConnectionError):
    """
    The signaling channel was closed or could not be reached.
    """
