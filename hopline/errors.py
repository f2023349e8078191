"""Exceptions shared across hopline.

Operator mistakes during path selection are recovered inside the selector loop;
the types exist so other callers can validate paths the same way.
"""

from __future__ import annotations


class HoplineError(RuntimeError):
    """Base error for hopline."""


class InvalidPeerIdentifier(HoplineError):
    """Raised when typed text does not name a peer."""


class DuplicatePeer(HoplineError):
    """Raised when a peer is already part of the selected path."""


class DestinationAsIntermediate(HoplineError):
    """Raised when the destination is offered as a relay hop."""


class SelfAsIntermediate(HoplineError):
    """Raised when the local node is offered as a relay hop and that is disallowed."""


class TransportError(HoplineError):
    """Raised by the node when a message cannot be delivered."""


class LineInputBusy(HoplineError):
    """Raised when the line input is already taken over by another prompt."""


class SelectorStateError(HoplineError):
    """Raised on an illegal path selector state transition."""
