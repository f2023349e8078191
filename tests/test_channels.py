from __future__ import annotations

import asyncio
import unittest

from hopline.channels import describe_channel, format_channel, list_open_channels, my_channel_balance
from hopline.formatting import plain_text
from hopline.node import ChannelInfo, SandboxChannel, SandboxNode
from tests.helpers import ALICE, BOB, SELF


ONE_TOKEN = 10**18


class _BrokenNode:
    self_id = SELF

    async def open_channels(self):
        raise RuntimeError("node unreachable")


class TestChannelListing(unittest.TestCase):
    def test_format_channel_rows(self) -> None:
        text = plain_text(
            format_channel(
                channel_id="0xabc",
                total_balance="1.5",
                my_balance="0.5",
                peer_id=str(ALICE),
                status="OPEN",
            )
        )

        expected = "".join(
            [
                "\n" + "Channel".ljust(14) + ":  0xabc",
                "\n" + "CounterParty".ljust(14) + f":  {ALICE}",
                "\n" + "Status".ljust(14) + ":  OPEN",
                "\n" + "Total Balance".ljust(14) + ":  1.5",
                "\n" + "My Balance".ljust(14) + ":  0.5",
            ]
        )
        self.assertEqual(expected, text)

    def test_pre_opened_channel_placeholders(self) -> None:
        text = plain_text(describe_channel(SELF, ChannelInfo(channel_id="0xdef", counterparty=None)))

        self.assertIn("CounterParty  :  pre-opened", text)
        self.assertIn("Status        :  UNKNOWN", text)
        self.assertIn("Total Balance :  0", text)
        self.assertIn("My Balance    :  0", text)

    def test_my_balance_depends_on_party_side(self) -> None:
        channel = ChannelInfo(channel_id="0x1", counterparty=ALICE, balance=10, balance_a=3)
        self.assertEqual(3, my_channel_balance(SELF, channel))

        reverse = ChannelInfo(channel_id="0x2", counterparty=SELF, balance=10, balance_a=3)
        self.assertEqual(7, my_channel_balance(ALICE, reverse))

    def test_lists_sandbox_channels_with_shifted_balances(self) -> None:
        node = SandboxNode(
            SELF,
            channels=[
                SandboxChannel(party_a=SELF, party_b=ALICE, balance=2 * ONE_TOKEN, balance_a=ONE_TOKEN // 2),
                SandboxChannel(party_a=BOB, party_b=SELF, balance=ONE_TOKEN, balance_a=ONE_TOKEN // 4),
                SandboxChannel(party_a=ALICE, party_b=BOB, balance=ONE_TOKEN),
            ],
        )

        text = plain_text(asyncio.run(list_open_channels(node)))
        blocks = text.split("\n\n\n")

        self.assertEqual(2, len(blocks))
        self.assertIn("Total Balance :  2", blocks[0])
        self.assertIn("My Balance    :  0.5", blocks[0])
        self.assertIn(f"CounterParty  :  {BOB}", blocks[1])
        self.assertIn("My Balance    :  0.75", blocks[1])

    def test_empty_listing(self) -> None:
        self.assertEqual("\nNo open channels found.", asyncio.run(list_open_channels(SandboxNode(SELF))))

    def test_node_errors_become_one_failure_line(self) -> None:
        result = asyncio.run(list_open_channels(_BrokenNode()))
        self.assertEqual("[red]node unreachable[/red]", result)


if __name__ == "__main__":
    unittest.main()
