from __future__ import annotations

import asyncio
from collections.abc import Iterable

from hopline.line_input import LineInput
from hopline.node import SandboxChannel, SandboxNode
from hopline.peer_id import PeerId


WAIT_TIMEOUT_S = 2.0


def peer(byte: int) -> PeerId:
    """Deterministic test peer: 0x followed by the same byte twenty times."""

    return PeerId.from_address("0x" + f"{byte:02x}" * 20)


SELF = peer(0x11)
ALICE = peer(0x22)
BOB = peer(0x33)
CAROL = peer(0x44)
DAVE = peer(0x55)


async def wait_until_awaiting(line_input: LineInput, *, timeout: float = WAIT_TIMEOUT_S) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not line_input.awaiting_line:
        if loop.time() > deadline:
            raise AssertionError("nobody started reading from the line input")
        await asyncio.sleep(0)


async def feed_lines(line_input: LineInput, lines: Iterable[str | None]) -> None:
    """Submit each line once a takeover is waiting for it."""

    for line in lines:
        await wait_until_awaiting(line_input)
        await line_input.submit(line)


class StaticDirectory:
    def __init__(self, self_id: PeerId, links: dict[PeerId, list[PeerId]] | None = None) -> None:
        self._self_id = self_id
        self.links = links or {}
        self.queries: list[PeerId] = []

    @property
    def self_id(self) -> PeerId:
        return self._self_id

    async def open_channel_peers(self, peer: PeerId) -> list[PeerId]:
        self.queries.append(peer)
        return list(self.links.get(peer, []))


def chain_node(*, max_hops: int = 3, offline: Iterable[PeerId] = ()) -> SandboxNode:
    """SELF - ALICE - BOB - CAROL, all open."""

    channels = [
        SandboxChannel(party_a=SELF, party_b=ALICE, balance=10, balance_a=4),
        SandboxChannel(party_a=ALICE, party_b=BOB, balance=10, balance_a=5),
        SandboxChannel(party_a=BOB, party_b=CAROL, balance=10, balance_a=5),
    ]
    return SandboxNode(SELF, max_hops=max_hops, channels=channels, offline_peers=offline)
