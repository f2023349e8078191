"""Node-side collaborators of the chat layer.

:class:`Node` is what the commands consume: a peer directory (who has an open
channel with whom), the local channel list, and message transport. Real
deployments plug in a networked implementation; :class:`SandboxNode` keeps the
whole channel graph in memory and is built from ``hopline.toml``.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
import time
from typing import Protocol

from .config import HoplineConfig, SandboxChannelConfig
from .errors import HoplineError, TransportError
from .formatting import decode_message
from .peer_id import PeerId, parse_peer_id
from .runtime_log import RuntimeHooks, emit_runtime_log


PathProvider = Callable[[], Awaitable[list[PeerId]]]

CHANNEL_STATUS_OPEN = "OPEN"
CHANNEL_STATUS_PRE_OPENED = "PRE_OPENED"


@dataclass(frozen=True)
class ChannelInfo:
    """A channel as seen from the local node."""

    channel_id: str
    counterparty: PeerId | None
    balance: int = 0
    balance_a: int = 0
    status: str | None = None


class Node(Protocol):
    @property
    def self_id(self) -> PeerId: ...

    @property
    def max_hops(self) -> int: ...

    def known_peers(self) -> list[PeerId]: ...

    async def open_channel_peers(self, peer: PeerId) -> list[PeerId]: ...

    async def open_channels(self) -> list[ChannelInfo]: ...

    async def send_message(
        self,
        payload: bytes,
        destination: PeerId,
        path_provider: PathProvider | None = None,
    ) -> None: ...


def is_party_a(self_id: PeerId, counterparty: PeerId) -> bool:
    """Party A of a channel is the side with the numerically smaller address."""

    return self_id.to_bytes() < counterparty.to_bytes()


def derive_channel_id(party_a: PeerId, party_b: PeerId | None) -> str:
    from web3 import Web3

    first, second = party_a, party_b
    if second is not None and not is_party_a(first, second):
        first, second = second, first
    material = first.to_bytes() + (second.to_bytes() if second is not None else b"")
    return "0x" + bytes(Web3.keccak(material)).hex()


@dataclass
class SandboxChannel:
    party_a: PeerId
    party_b: PeerId | None
    balance: int = 0
    balance_a: int = 0
    status: str = CHANNEL_STATUS_OPEN
    channel_id: str = ""

    def __post_init__(self) -> None:
        if self.party_b is not None and not is_party_a(self.party_a, self.party_b):
            # Keep party A as the smaller address; balance_a follows the swap.
            self.party_a, self.party_b = self.party_b, self.party_a
            self.balance_a = max(0, self.balance - self.balance_a)
        if not self.channel_id:
            self.channel_id = derive_channel_id(self.party_a, self.party_b)

    @property
    def is_open(self) -> bool:
        return self.status == CHANNEL_STATUS_OPEN and self.party_b is not None

    def involves(self, peer: PeerId) -> bool:
        return peer in (self.party_a, self.party_b)

    def other_party(self, peer: PeerId) -> PeerId | None:
        if peer == self.party_a:
            return self.party_b
        if peer == self.party_b:
            return self.party_a
        return None


@dataclass(frozen=True)
class DeliveredMessage:
    destination: PeerId
    path: tuple[PeerId, ...]
    payload: bytes
    sent_at: float = field(default_factory=time.time)

    @property
    def text(self) -> str:
        return decode_message(self.payload)


class SandboxNode:
    """In-memory node used for local runs and tests."""

    def __init__(
        self,
        self_id: PeerId,
        *,
        max_hops: int = 3,
        channels: Iterable[SandboxChannel] = (),
        offline_peers: Iterable[PeerId] = (),
        hooks: RuntimeHooks | None = None,
    ) -> None:
        self._self_id = self_id
        self._max_hops = max(1, int(max_hops))
        self.channels: list[SandboxChannel] = list(channels)
        self.offline_peers: set[PeerId] = set(offline_peers)
        self.outbox: list[DeliveredMessage] = []
        self.hooks = hooks

    @property
    def self_id(self) -> PeerId:
        return self._self_id

    @property
    def max_hops(self) -> int:
        return self._max_hops

    def known_peers(self) -> list[PeerId]:
        seen: list[PeerId] = []
        for channel in self.channels:
            for peer in (channel.party_a, channel.party_b):
                if peer is None or peer == self._self_id or peer in seen or peer in self.offline_peers:
                    continue
                seen.append(peer)
        return seen

    def _has_open_channel(self, first: PeerId, second: PeerId) -> bool:
        return any(
            channel.is_open and channel.involves(first) and channel.other_party(first) == second
            for channel in self.channels
        )

    async def open_channel_peers(self, peer: PeerId) -> list[PeerId]:
        peers: list[PeerId] = []
        for channel in self.channels:
            if not channel.is_open or not channel.involves(peer):
                continue
            other = channel.other_party(peer)
            if other is not None and other not in peers:
                peers.append(other)
        return peers

    async def open_channels(self) -> list[ChannelInfo]:
        infos: list[ChannelInfo] = []
        for channel in self.channels:
            if not channel.involves(self._self_id):
                continue
            if channel.party_b is None:
                infos.append(ChannelInfo(channel_id=channel.channel_id, counterparty=None))
                continue
            infos.append(
                ChannelInfo(
                    channel_id=channel.channel_id,
                    counterparty=channel.other_party(self._self_id),
                    balance=channel.balance,
                    balance_a=channel.balance_a,
                    status=channel.status or None,
                )
            )
        return infos

    def validate_path(self, destination: PeerId, path: list[PeerId]) -> None:
        if len(path) > self._max_hops - 1:
            raise TransportError(f"Path has {len(path)} intermediate peers; at most {self._max_hops - 1} allowed.")
        if len(set(path)) != len(path):
            raise TransportError("Path contains the same peer twice.")
        if destination in path:
            raise TransportError("Path contains the destination.")
        previous = self._self_id
        for hop in path:
            if hop in self.offline_peers:
                raise TransportError(f"Intermediate peer {hop} is offline.")
            # The local node relaying to itself needs no channel.
            if hop != previous and not self._has_open_channel(previous, hop):
                raise TransportError(f"No open channel between {previous} and {hop}.")
            previous = hop

    async def send_message(
        self,
        payload: bytes,
        destination: PeerId,
        path_provider: PathProvider | None = None,
    ) -> None:
        if destination == self._self_id:
            raise TransportError("Cannot send a message to yourself.")
        if destination in self.offline_peers:
            raise TransportError(f"Destination {destination} is offline.")
        path = list(await path_provider()) if path_provider is not None else []
        self.validate_path(destination, path)
        message = DeliveredMessage(destination=destination, path=tuple(path), payload=payload)
        self.outbox.append(message)
        emit_runtime_log(
            f"sandbox delivered {len(payload)} bytes to {destination} via {len(path)} hop(s)",
            hooks=self.hooks,
        )

    @classmethod
    def from_config(
        cls,
        config: HoplineConfig,
        *,
        hooks: RuntimeHooks | None = None,
    ) -> tuple[SandboxNode, list[str]]:
        """Build a sandbox node; bad entries are skipped and reported as warnings."""

        warnings: list[str] = []
        self_id: PeerId | None = None
        if config.node.address:
            try:
                self_id = parse_peer_id(config.node.address)
            except HoplineError as exc:
                warnings.append(f"node.address ignored: {exc}")
        if self_id is None:
            self_id = PeerId.generate()

        channels: list[SandboxChannel] = []
        for index, entry in enumerate(config.sandbox.channels):
            try:
                channels.append(_channel_from_config(entry, self_id))
            except HoplineError as exc:
                warnings.append(f"sandbox.channels[{index}] ignored: {exc}")

        offline: list[PeerId] = []
        for value in config.sandbox.offline_peers:
            try:
                offline.append(parse_peer_id(value))
            except HoplineError as exc:
                warnings.append(f"sandbox.offline_peers entry ignored: {exc}")

        node = cls(self_id, max_hops=config.node.max_hops, channels=channels, offline_peers=offline, hooks=hooks)
        return node, warnings


def _channel_from_config(entry: SandboxChannelConfig, self_id: PeerId) -> SandboxChannel:
    party_a = parse_peer_id(entry.party_a) if entry.party_a else self_id
    party_b = parse_peer_id(entry.party_b) if entry.party_b else None
    if party_b is not None and party_a == party_b:
        raise HoplineError("a channel needs two different parties")
    status = entry.status if party_b is not None else CHANNEL_STATUS_PRE_OPENED
    return SandboxChannel(
        party_a=party_a,
        party_b=party_b,
        balance=entry.balance,
        balance_a=min(entry.balance_a, entry.balance),
        status=status,
        channel_id=entry.channel_id,
    )
