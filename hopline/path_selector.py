"""Interactive selection of intermediate relay peers.

The operator builds the path one hop at a time. Each round borrows the shared
:class:`~hopline.line_input.LineInput` (prompt, completer and line handlers are
swapped for the round and restored afterwards), suggests the peers that have an
open channel with the previous hop, and evaluates exactly one accepted line.

Selection ends on an empty line, at end of input, or once the path holds
``max_hops - 1`` peers. Bad input is reported and never aborts the send.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from .errors import (
    DestinationAsIntermediate,
    DuplicatePeer,
    HoplineError,
    InvalidPeerIdentifier,
    SelectorStateError,
    SelfAsIntermediate,
)
from .formatting import style_value
from .line_input import LineInput, LineTakeover, prefix_completer
from .node import PathProvider
from .peer_id import PeerId
from .runtime_log import RuntimeHooks, emit_runtime_log


class SelectorState(str, Enum):
    AWAITING_INPUT = "AWAITING_INPUT"
    EVALUATING = "EVALUATING"
    FINISHED = "FINISHED"


class SelectorEvent(str, Enum):
    LINE = "line"
    CONTINUE = "continue"
    FINISH = "finish"


SELECTOR_TRANSITIONS: dict[tuple[SelectorState, SelectorEvent], SelectorState] = {
    (SelectorState.AWAITING_INPUT, SelectorEvent.LINE): SelectorState.EVALUATING,
    (SelectorState.AWAITING_INPUT, SelectorEvent.FINISH): SelectorState.FINISHED,
    (SelectorState.EVALUATING, SelectorEvent.CONTINUE): SelectorState.AWAITING_INPUT,
    (SelectorState.EVALUATING, SelectorEvent.FINISH): SelectorState.FINISHED,
}


def next_state(state: SelectorState, event: SelectorEvent) -> SelectorState:
    try:
        return SELECTOR_TRANSITIONS[(state, event)]
    except KeyError:
        raise SelectorStateError(f"no transition from {state.value} on {event.value}") from None


class OutcomeKind(str, Enum):
    ADDED = "added"
    REJECTED = "rejected"
    FINISHED = "finished"


class RejectReason(str, Enum):
    SAME_AS_DESTINATION = "same_as_destination"
    ALREADY_SELECTED = "already_selected"
    SELF_AS_INTERMEDIATE = "self_as_intermediate"


REJECTION_MESSAGES: dict[RejectReason, str] = {
    RejectReason.SAME_AS_DESTINATION: "Peer selected is same as destination peer.",
    RejectReason.ALREADY_SELECTED: "Peer is already an intermediate peer.",
    RejectReason.SELF_AS_INTERMEDIATE: "Peer selected is this node; pick a relay.",
}
REJECTION_ERRORS: dict[RejectReason, type[HoplineError]] = {
    RejectReason.SAME_AS_DESTINATION: DestinationAsIntermediate,
    RejectReason.ALREADY_SELECTED: DuplicatePeer,
    RejectReason.SELF_AS_INTERMEDIATE: SelfAsIntermediate,
}


@dataclass(frozen=True)
class SelectionOutcome:
    kind: OutcomeKind
    peer: PeerId | None = None
    reason: RejectReason | None = None

    @classmethod
    def added(cls, peer: PeerId) -> SelectionOutcome:
        return cls(OutcomeKind.ADDED, peer=peer)

    @classmethod
    def rejected(cls, reason: RejectReason, peer: PeerId | None = None) -> SelectionOutcome:
        return cls(OutcomeKind.REJECTED, peer=peer, reason=reason)

    @classmethod
    def finished(cls) -> SelectionOutcome:
        return cls(OutcomeKind.FINISHED)


class PathSelection:
    """Ordered intermediate peers for one send; never reused."""

    def __init__(self, max_hops: int) -> None:
        self.capacity = max(0, int(max_hops) - 1)
        self._peers: list[PeerId] = []

    def __len__(self) -> int:
        return len(self._peers)

    def __contains__(self, peer: object) -> bool:
        return peer in self._peers

    @property
    def peers(self) -> tuple[PeerId, ...]:
        return tuple(self._peers)

    @property
    def last(self) -> PeerId | None:
        return self._peers[-1] if self._peers else None

    @property
    def is_full(self) -> bool:
        return len(self._peers) >= self.capacity

    def evaluate(
        self,
        peer: PeerId,
        destination: PeerId,
        *,
        self_id: PeerId | None = None,
    ) -> SelectionOutcome:
        """Decide what offering ``peer`` would do, without changing the path.

        Pass ``self_id`` to reject the local node as a hop.
        """

        if peer == destination:
            return SelectionOutcome.rejected(RejectReason.SAME_AS_DESTINATION, peer)
        if peer in self._peers:
            return SelectionOutcome.rejected(RejectReason.ALREADY_SELECTED, peer)
        if self_id is not None and peer == self_id:
            return SelectionOutcome.rejected(RejectReason.SELF_AS_INTERMEDIATE, peer)
        return SelectionOutcome.added(peer)

    def apply(self, outcome: SelectionOutcome) -> None:
        if outcome.kind is not OutcomeKind.ADDED or outcome.peer is None:
            return
        if self.is_full:
            raise SelectorStateError(f"path already holds the maximum of {self.capacity} intermediate peer(s)")
        if outcome.peer in self._peers:
            raise SelectorStateError(f"{outcome.peer} is already selected")
        self._peers.append(outcome.peer)

    def add(self, peer: PeerId, destination: PeerId, *, self_id: PeerId | None = None) -> None:
        """Append ``peer`` or raise the error matching its rejection."""

        outcome = self.evaluate(peer, destination, self_id=self_id)
        if outcome.reason is not None:
            raise REJECTION_ERRORS[outcome.reason](REJECTION_MESSAGES[outcome.reason])
        self.apply(outcome)


class PeerDirectory(Protocol):
    @property
    def self_id(self) -> PeerId: ...

    async def open_channel_peers(self, peer: PeerId) -> list[PeerId]: ...


class PathSelector:
    def __init__(
        self,
        *,
        directory: PeerDirectory,
        line_input: LineInput,
        parse_peer: Callable[[str], PeerId],
        say: Callable[[str], None],
        allow_self_hop: bool = False,
        hooks: RuntimeHooks | None = None,
    ) -> None:
        self.directory = directory
        self.line_input = line_input
        self.parse_peer = parse_peer
        self.say = say
        self.allow_self_hop = allow_self_hop
        self.hooks = hooks
        self.state = SelectorState.FINISHED
        self.outcomes: list[SelectionOutcome] = []

    def _fire(self, event: SelectorEvent) -> None:
        self.state = next_state(self.state, event)

    async def select(self, destination: PeerId, max_hops: int) -> list[PeerId]:
        selection = PathSelection(max_hops)
        self.outcomes = []
        self.state = SelectorState.AWAITING_INPUT
        if selection.is_full:
            self._fire(SelectorEvent.FINISH)
            return []

        excluded_self = None if self.allow_self_hop else self.directory.self_id
        while self.state is not SelectorState.FINISHED:
            self.say(
                style_value(f"Please select intermediate node {len(selection) + 1}: (leave empty to exit)", "highlight")
            )
            reference = selection.last or self.directory.self_id
            candidates = [str(peer) for peer in await self.directory.open_channel_peers(reference)]
            if not candidates:
                self.say(style_value("No peers with open channels found, you may enter a peer manually.", "highlight"))

            with self.line_input.takeover(prompt="", completer=prefix_completer(candidates)) as session:
                outcome = await self._next_outcome(session, selection, destination, excluded_self)

            self.outcomes.append(outcome)
            selection.apply(outcome)
            if outcome.kind is OutcomeKind.REJECTED and outcome.reason is not None:
                self.say(style_value(REJECTION_MESSAGES[outcome.reason], "failure"))

            if outcome.kind is OutcomeKind.FINISHED or selection.is_full:
                self._fire(SelectorEvent.FINISH)
            else:
                self._fire(SelectorEvent.CONTINUE)

        emit_runtime_log(f"path selection finished with {len(selection)} intermediate peer(s)", hooks=self.hooks)
        return list(selection.peers)

    async def _next_outcome(
        self,
        session: LineTakeover,
        selection: PathSelection,
        destination: PeerId,
        excluded_self: PeerId | None,
    ) -> SelectionOutcome:
        while True:
            line = await session.read_line()
            self._fire(SelectorEvent.LINE)
            if line is None or not line.strip():
                return SelectionOutcome.finished()
            try:
                peer = self.parse_peer(line)
            except InvalidPeerIdentifier as exc:
                self.say(style_value(str(exc), "failure"))
                self._fire(SelectorEvent.CONTINUE)
                continue
            return selection.evaluate(peer, destination, self_id=excluded_self)

    def path_provider(self, destination: PeerId, max_hops: int) -> PathProvider:
        async def _provide() -> list[PeerId]:
            return await self.select(destination, max_hops)

        return _provide


async def select_intermediate_nodes(
    *,
    directory: PeerDirectory,
    line_input: LineInput,
    parse_peer: Callable[[str], PeerId],
    say: Callable[[str], None],
    destination: PeerId,
    max_hops: int,
    allow_self_hop: bool = False,
) -> list[PeerId]:
    selector = PathSelector(
        directory=directory,
        line_input=line_input,
        parse_peer=parse_peer,
        say=say,
        allow_self_hop=allow_self_hop,
    )
    return await selector.select(destination, max_hops)
