from __future__ import annotations

import asyncio
from pathlib import Path
from tempfile import TemporaryDirectory
import unittest

from hopline.commands import ChatSession, ChatState, chat_state_from_config
from hopline.config import HoplineConfig, load_hopline_toml
from hopline.formatting import plain_text
from hopline.line_input import LineInput
from tests.helpers import ALICE, BOB, CAROL, SELF, chain_node, feed_lines


class TestChatSession(unittest.TestCase):
    def setUp(self) -> None:
        self.node = chain_node(max_hops=3)
        self.line_input = LineInput(prompt="hopline> ")
        self.said: list[str] = []

    def _session(self, **state) -> ChatSession:
        return ChatSession(
            node=self.node,
            line_input=self.line_input,
            say=self.said.append,
            state=ChatState(**state),
        )

    def _run_with_lines(self, session: ChatSession, command: str, lines) -> str | None:
        async def scenario():
            result, _ = await asyncio.gather(session.execute(command), feed_lines(self.line_input, lines))
            return result

        return asyncio.run(scenario())

    def test_help_lists_every_command(self) -> None:
        text = plain_text(asyncio.run(self._session().execute("help")))
        for name in ("help", "openChannels", "send", "sendFancy", "alias", "settings", "myAddress", "quit"):
            self.assertIn(name, text)

    def test_unknown_and_empty_commands(self) -> None:
        session = self._session()
        self.assertIn("Unknown command", asyncio.run(session.execute("teleport now")))
        self.assertIsNone(asyncio.run(session.execute("   ")))

    def test_commands_are_case_insensitive_and_accept_slash(self) -> None:
        text = plain_text(asyncio.run(self._session().execute("/MYADDRESS")))
        self.assertEqual(f"Your address: {SELF}", text)

    def test_send_delivers_directly(self) -> None:
        result = asyncio.run(self._session().execute(f"send {str(CAROL).lower()} hello there"))

        self.assertEqual(f"Message sent to {CAROL}.", plain_text(result))
        self.assertEqual("hello there", self.node.outbox[0].text)
        self.assertEqual((), self.node.outbox[0].path)

    def test_send_with_recipient_prefix(self) -> None:
        asyncio.run(self._session(include_recipient=True).execute(f"send {CAROL} hi"))
        self.assertEqual(f"{SELF}:hi", self.node.outbox[0].text)

    def test_send_usage_and_bad_peer(self) -> None:
        session = self._session()
        self.assertIn("usage", asyncio.run(session.execute("send")))
        self.assertIn("Invalid peer id", plain_text(asyncio.run(session.execute("send nobody hi"))))
        self.assertEqual([], self.node.outbox)

    def test_transport_failure_is_one_failure_line(self) -> None:
        result = asyncio.run(self._session().execute(f"send {SELF} hi"))
        self.assertTrue(result.startswith("[red]"))
        self.assertIn("yourself", result)

    def test_send_fancy_with_manual_routing_uses_selected_path(self) -> None:
        session = self._session(routing="manual", aliases={"alice": ALICE})

        result = self._run_with_lines(session, f"sendFancy {BOB}", ["through alice", "alice", ""])

        self.assertEqual(f"Message sent to {BOB}.", plain_text(result))
        self.assertEqual((ALICE,), self.node.outbox[0].path)
        self.assertEqual("through alice", self.node.outbox[0].text)
        said = plain_text("\n".join(self.said))
        self.assertIn("Type your message and press ENTER to send:", said)
        self.assertIn("Please select intermediate node 1:", said)
        self.assertIn("Please select intermediate node 2:", said)
        self.assertEqual("hopline> ", self.line_input.prompt)

    def test_send_fancy_reports_invalid_manual_path(self) -> None:
        session = self._session(routing="manual")

        result = self._run_with_lines(session, f"sendFancy {CAROL}", ["hi", str(BOB), ""])

        self.assertIn("No open channel", plain_text(result))
        self.assertEqual([], self.node.outbox)

    def test_send_fancy_direct_routing_skips_selection(self) -> None:
        session = self._session(routing="direct")

        result = self._run_with_lines(session, f"sendFancy {CAROL}", ["hi"])

        self.assertEqual(f"Message sent to {CAROL}.", plain_text(result))
        self.assertFalse(any("intermediate node" in line for line in self.said))

    def test_send_fancy_cancelled_at_end_of_input(self) -> None:
        result = self._run_with_lines(self._session(), f"sendFancy {CAROL}", [None])
        self.assertEqual("Message cancelled.", plain_text(result))
        self.assertEqual([], self.node.outbox)

    def test_send_fancy_rejects_bad_target_without_prompting(self) -> None:
        result = asyncio.run(self._session().execute("sendFancy nobody"))
        self.assertIn("Invalid peer id", plain_text(result))
        self.assertEqual([], self.said)

    def test_open_channels_and_quit(self) -> None:
        session = self._session()
        self.assertIn("CounterParty", plain_text(asyncio.run(session.execute("openChannels"))))
        self.assertEqual("bye.", asyncio.run(session.execute("quit")))
        self.assertTrue(session.quit_requested)

    def test_completion(self) -> None:
        session = self._session(aliases={"alice": ALICE})

        self.assertEqual(["send", "sendFancy", "settings"], session.complete("se"))
        self.assertEqual(["send alice"], session.complete("send al"))
        self.assertIn(f"sendFancy {BOB}", session.complete("sendFancy 0x33"))
        self.assertEqual([], session.complete(f"send {ALICE} "))
        self.assertEqual([], session.complete("help x"))

    def test_alias_and_settings_persist(self) -> None:
        with TemporaryDirectory() as tmp:
            path = Path(tmp) / "hopline.toml"
            session = ChatSession(node=self.node, line_input=self.line_input, say=self.said.append, config_path=path)

            asyncio.run(session.execute(f"alias {str(ALICE).lower()} alice"))
            asyncio.run(session.execute("settings routing auto"))
            asyncio.run(session.execute("settings includeRecipient"))
            asyncio.run(session.execute("settings allowSelfHop off"))
            listing = plain_text(asyncio.run(session.execute("alias")))
            shown = plain_text(asyncio.run(session.execute("settings")))

            cfg, warn = load_hopline_toml(path)

        self.assertIn(f"alice :  {ALICE}", listing)
        self.assertIn("routing          :  auto", shown)
        self.assertEqual("", warn)
        self.assertEqual(str(ALICE), cfg.aliases["alice"])
        self.assertEqual("auto", cfg.chat.routing)
        self.assertTrue(cfg.chat.include_recipient)
        self.assertFalse(cfg.chat.allow_self_hop)

    def test_settings_reject_bad_values(self) -> None:
        session = self._session()
        self.assertIn("routing must be one of", asyncio.run(session.execute("settings routing teleport")))
        self.assertIn("Unknown setting", asyncio.run(session.execute("settings colour red")))
        self.assertIn("Invalid alias name", asyncio.run(session.execute(f"alias {ALICE} 9lives")))
        self.assertEqual("manual", session.state.routing)

    def test_boolean_settings_reject_unknown_values(self) -> None:
        with TemporaryDirectory() as tmp:
            path = Path(tmp) / "hopline.toml"
            session = ChatSession(node=self.node, line_input=self.line_input, say=self.said.append, config_path=path)

            reply = asyncio.run(session.execute("settings allowSelfHop maybe"))
            other = asyncio.run(session.execute("settings includeRecipient sometimes"))
            written = path.exists()

        self.assertIn("allowSelfHop must be true or false", reply)
        self.assertIn("includeRecipient must be true or false", other)
        self.assertFalse(session.state.allow_self_hop)
        self.assertFalse(session.state.include_recipient)
        self.assertFalse(written)

    def test_state_from_config_skips_bad_aliases(self) -> None:
        config = HoplineConfig(aliases={"alice": str(ALICE), "ghost": "0x1234"})
        state, warnings = chat_state_from_config(config)
        self.assertEqual({"alice": ALICE}, state.aliases)
        self.assertEqual(1, len(warnings))


if __name__ == "__main__":
    unittest.main()
