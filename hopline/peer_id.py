from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
import re
import secrets

from .ens import looks_like_ens_name
from .errors import InvalidPeerIdentifier


_PEER_ADDRESS_RE = re.compile(r"^0x[a-fA-F0-9]{40}$")

EnsResolver = Callable[[str], str]


@dataclass(frozen=True)
class PeerId:
    """A network participant, named by its checksummed 20-byte address.

    Build instances through :func:`parse_peer_id` or :meth:`from_address` so the
    address is always normalised; equality then ignores the input's casing.
    """

    address: str

    @classmethod
    def from_address(cls, value: str) -> PeerId:
        from web3 import Web3

        return cls(str(Web3.to_checksum_address(value)))

    @classmethod
    def generate(cls) -> PeerId:
        return cls.from_address("0x" + secrets.token_hex(20))

    def to_bytes(self) -> bytes:
        return bytes.fromhex(self.address[2:])

    def __str__(self) -> str:
        return self.address


def parse_peer_id(
    text: str,
    *,
    aliases: Mapping[str, PeerId] | None = None,
    resolve_ens: EnsResolver | None = None,
) -> PeerId:
    """Parse operator input into a PeerId.

    Accepts an alias name, a 0x address (mixed case must carry a valid
    checksum), or an ENS name when ``resolve_ens`` is provided.
    """

    from web3 import Web3

    value = (text or "").strip()
    if not value:
        raise InvalidPeerIdentifier("Peer id is empty.")

    if aliases and value in aliases:
        return aliases[value]

    if looks_like_ens_name(value):
        if resolve_ens is None:
            raise InvalidPeerIdentifier(f"ENS names are not enabled here: {value}")
        value = resolve_ens(value).strip()

    if not _PEER_ADDRESS_RE.match(value):
        raise InvalidPeerIdentifier(
            f"Invalid peer id '{value}': expected an alias or 0x followed by 40 hex characters."
        )
    digits = value[2:]
    if digits != digits.lower() and digits != digits.upper() and not Web3.is_checksum_address(value):
        raise InvalidPeerIdentifier(f"Invalid peer id '{value}': checksum mismatch.")
    return PeerId(str(Web3.to_checksum_address(value)))
