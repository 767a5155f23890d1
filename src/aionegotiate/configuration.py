import enum
from dataclasses import dataclass


class NegotiationRole(enum.Enum):
    """
    The :class:`NegotiationRole` decides which offer survives when both peers
    send one at the same time ("glare").

    Either side may start a negotiation whatever its role.
    """

    INITIATOR_PREFERRED = "initiator-preferred"
    """
    The "impolite" peer: a colliding remote offer is ignored and the local
    offer stays outstanding.
    """

    RESPONDER_PREFERRED = "responder-preferred"
    """
    The "polite" peer: the local offer is rolled back and the remote offer
    is answered.
    """

    @property
    def polite(self) -> bool:
        return self is NegotiationRole.RESPONDER_PREFERRED


def role_from_identifiers(local_id: str, remote_id: str) -> NegotiationRole:
    """
    Derive the local role from the identifiers both peers agreed on when the
    signaling channel was set up.

    The peer with the lower identifier is impolite. Both peers run the same
    comparison, so they always end up with opposite roles.
    """
    if local_id == remote_id:
        raise ValueError(f"Peer identifiers must differ (got '{local_id}' twice)")
    if local_id < remote_id:
        return NegotiationRole.INITIATOR_PREFERRED
    return NegotiationRole.RESPONDER_PREFERRED


@dataclass
class NegotiationConfiguration:
    """
    The :class:`NegotiationConfiguration` dictionary is used to provide
    configuration options for a :class:`NegotiationEngine`.
    """

    role: NegotiationRole = NegotiationRole.RESPONDER_PREFERRED
    "The role used to resolve glare."

    initiate: bool = True
    """
    Whether :meth:`NegotiationEngine.start` sends an offer. A peer which does
    not initiate still offers when its media binding asks for a negotiation.
    """
