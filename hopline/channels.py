from __future__ import annotations

from .formatting import get_padding_length, move_decimal_point, style_value
from .node import ChannelInfo, Node, is_party_a
from .peer_id import PeerId


BALANCE_DECIMALS = 18
CHANNEL_FIELDS = ("Channel", "CounterParty", "Status", "Total Balance", "My Balance")


def format_channel(
    *,
    channel_id: str,
    total_balance: str,
    my_balance: str,
    peer_id: str | None = None,
    status: str | None = None,
) -> str:
    values = [
        style_value(channel_id, "hash"),
        style_value(peer_id, "peerId") if peer_id else style_value("pre-opened", "muted"),
        style_value(status, "highlight") if status else style_value("UNKNOWN", "muted"),
        style_value(total_balance, "number"),
        style_value(my_balance, "number"),
    ]
    padding = get_padding_length(CHANNEL_FIELDS)
    return "".join(f"\n{name.ljust(padding)}:  {value}" for name, value in zip(CHANNEL_FIELDS, values))


def my_channel_balance(self_id: PeerId, channel: ChannelInfo) -> int:
    if channel.counterparty is None:
        return 0
    if is_party_a(self_id, channel.counterparty):
        return channel.balance_a
    return channel.balance - channel.balance_a


def describe_channel(self_id: PeerId, channel: ChannelInfo) -> str:
    if channel.counterparty is None:
        return format_channel(channel_id=channel.channel_id, total_balance="0", my_balance="0")
    return format_channel(
        channel_id=channel.channel_id,
        total_balance=move_decimal_point(channel.balance, -BALANCE_DECIMALS),
        my_balance=move_decimal_point(my_channel_balance(self_id, channel), -BALANCE_DECIMALS),
        peer_id=str(channel.counterparty),
        status=channel.status,
    )


async def list_open_channels(node: Node) -> str:
    """Render every channel the local node takes part in."""

    try:
        channels = await node.open_channels()
        if not channels:
            return "\nNo open channels found."
        return "\n\n".join(describe_channel(node.self_id, channel) for channel in channels)
    except Exception as exc:  # noqa: BLE001
        return style_value(str(exc), "failure")
