"""Chat commands shared by the readline REPL and the textual app.

Hosts feed each typed line to :meth:`ChatSession.execute` (usually through the
default line handler of the shared :class:`LineInput`) and print whatever it
returns. Output strings are rich markup.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
import re

from .config import ROUTING_MODES, HoplineConfig, parse_flag, set_toml_value
from .errors import HoplineError, InvalidPeerIdentifier, TransportError
from .formatting import encode_message, get_padding_length, style_value
from .line_input import LineInput
from .channels import list_open_channels
from .node import Node, PathProvider
from .path_selector import PathSelector
from .peer_id import EnsResolver, PeerId, parse_peer_id
from .runtime_log import RuntimeHooks, emit_runtime_log


COMMAND_SPECS: tuple[tuple[str, str], ...] = (
    ("help", "Shows this help page"),
    ("openChannels", "Lists your currently open channels"),
    ("send", "Sends a message to another party: send <peer> <message>"),
    ("sendFancy", "Asks for the message, then sends it with the current routing: sendFancy <peer>"),
    ("alias", "Lists aliases, or names a peer: alias <peer> <name>"),
    ("settings", "Shows or changes settings: settings [includeRecipient|routing|allowSelfHop] [value]"),
    ("myAddress", "Shows your peer address"),
    ("quit", "Leaves the chat"),
)
PEER_ARGUMENT_COMMANDS = {"send", "sendfancy"}
SETTING_KEYS = {
    "includerecipient": "includeRecipient",
    "routing": "routing",
    "allowselfhop": "allowSelfHop",
}
_ALIAS_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_-]{0,31}$")
_SEND_USAGE_RE = re.compile(r"^(\S+)\s+(.+)$", re.DOTALL)


@dataclass
class ChatState:
    aliases: dict[str, PeerId] = field(default_factory=dict)
    include_recipient: bool = False
    routing: str = "manual"
    allow_self_hop: bool = False


def chat_state_from_config(config: HoplineConfig) -> tuple[ChatState, list[str]]:
    warnings: list[str] = []
    aliases: dict[str, PeerId] = {}
    for name, value in config.aliases.items():
        try:
            aliases[name] = parse_peer_id(value)
        except HoplineError as exc:
            warnings.append(f"alias {name} ignored: {exc}")
    state = ChatState(
        aliases=aliases,
        include_recipient=config.chat.include_recipient,
        routing=config.chat.routing,
        allow_self_hop=config.chat.allow_self_hop,
    )
    return state, warnings


def _parse_command(text: str) -> tuple[str, str]:
    value = text.strip()
    if value.startswith("/"):
        value = value[1:].lstrip()
    if not value:
        return "", ""
    parts = value.split(maxsplit=1)
    cmd = parts[0].lower()
    rest = parts[1].strip() if len(parts) > 1 else ""
    return cmd, rest


def _command_completion_matches(query: str) -> list[str]:
    needle = query.strip().lower()
    return [name for name, _summary in COMMAND_SPECS if name.lower().startswith(needle)]


class ChatSession:
    def __init__(
        self,
        *,
        node: Node,
        line_input: LineInput,
        say: Callable[[str], None],
        state: ChatState | None = None,
        config_path: Path | None = None,
        resolve_ens: EnsResolver | None = None,
        hooks: RuntimeHooks | None = None,
    ) -> None:
        self.node = node
        self.line_input = line_input
        self.say = say
        self.state = state or ChatState()
        self.config_path = config_path
        self.resolve_ens = resolve_ens
        self.hooks = hooks
        self.quit_requested = False
        self._handlers = {
            "help": self.cmd_help,
            "openchannels": self.cmd_open_channels,
            "send": self.cmd_send,
            "sendfancy": self.cmd_send_fancy,
            "alias": self.cmd_alias,
            "settings": self.cmd_settings,
            "myaddress": self.cmd_my_address,
            "quit": self.cmd_quit,
            "exit": self.cmd_quit,
        }

    def parse_peer(self, text: str) -> PeerId:
        return parse_peer_id(text, aliases=self.state.aliases, resolve_ens=self.resolve_ens)

    def path_selector(self) -> PathSelector:
        return PathSelector(
            directory=self.node,
            line_input=self.line_input,
            parse_peer=self.parse_peer,
            say=self.say,
            allow_self_hop=self.state.allow_self_hop,
            hooks=self.hooks,
        )

    async def execute(self, line: str) -> str | None:
        cmd, rest = _parse_command(line)
        if not cmd:
            return None
        handler = self._handlers.get(cmd)
        if handler is None:
            return style_value(f"Unknown command '{cmd}'. Type 'help' for a list of commands.", "failure")
        emit_runtime_log(f"command {cmd}", hooks=self.hooks)
        try:
            return await handler(rest)
        except HoplineError as exc:
            return style_value(str(exc), "failure")

    def complete(self, line: str) -> list[str]:
        if " " not in line.lstrip():
            return _command_completion_matches(line)
        cmd, rest = _parse_command(line)
        if cmd not in PEER_ARGUMENT_COMMANDS or " " in rest or (rest and line.endswith(" ")):
            return []
        prefix = line[: len(line) - len(rest)] if rest else line
        options = list(self.state.aliases) + [str(peer) for peer in self.node.known_peers()]
        return [f"{prefix}{option}" for option in options if option.startswith(rest)]

    def compose(self, message: str) -> bytes:
        if self.state.include_recipient:
            message = f"{self.node.self_id}:{message}"
        return encode_message(message)

    async def cmd_help(self, _rest: str) -> str:
        padding = get_padding_length(name for name, _summary in COMMAND_SPECS)
        return "\n".join(
            f"{style_value(name.ljust(padding), 'highlight')} {style_value(summary)}" for name, summary in COMMAND_SPECS
        )

    async def cmd_open_channels(self, _rest: str) -> str:
        return await list_open_channels(self.node)

    async def cmd_my_address(self, _rest: str) -> str:
        return f"Your address: {style_value(str(self.node.self_id), 'peerId')}"

    async def cmd_quit(self, _rest: str) -> str:
        self.quit_requested = True
        return "bye."

    async def cmd_send(self, rest: str) -> str:
        match = _SEND_USAGE_RE.match(rest)
        if not match:
            return style_value("usage: send <peer> <message>", "failure")
        peer = self.parse_peer(match.group(1))
        return await self._deliver(peer, match.group(2), path_provider=None)

    async def cmd_send_fancy(self, rest: str) -> str | None:
        target = rest.split(maxsplit=1)[0] if rest else ""
        if not target:
            return style_value("usage: sendFancy <peer>", "failure")
        try:
            peer = self.parse_peer(target)
        except InvalidPeerIdentifier as exc:
            return style_value(str(exc), "failure")

        self.say(style_value("Type your message and press ENTER to send:", "highlight"))
        message = await self.line_input.question("")
        if message is None:
            return style_value("Message cancelled.", "failure")

        self.say(f"Sending message to {style_value(target, 'peerId')} ...")
        path_provider = None
        if self.state.routing == "manual":
            path_provider = self.path_selector().path_provider(peer, self.node.max_hops)
        return await self._deliver(peer, message, path_provider=path_provider)

    async def send(self, peer: PeerId, message: str, *, path_provider: PathProvider | None = None) -> None:
        """Hand one message to the node; any node failure surfaces as TransportError."""

        try:
            await self.node.send_message(self.compose(message), peer, path_provider)
        except TransportError:
            raise
        except Exception as exc:  # noqa: BLE001
            raise TransportError(str(exc)) from exc
        emit_runtime_log(f"message sent to {peer}", hooks=self.hooks)

    async def _deliver(self, peer: PeerId, message: str, *, path_provider: PathProvider | None) -> str:
        try:
            await self.send(peer, message, path_provider=path_provider)
        except TransportError as exc:
            emit_runtime_log(f"send to {peer} failed: {exc}", level="warn", hooks=self.hooks)
            return style_value(str(exc), "failure")
        return style_value(f"Message sent to {peer}.", "success")

    async def cmd_alias(self, rest: str) -> str:
        parts = rest.split()
        if not parts:
            if not self.state.aliases:
                return "No aliases set."
            padding = get_padding_length(self.state.aliases)
            return "\n".join(
                f"{name.ljust(padding)}:  {style_value(str(peer), 'peerId')}"
                for name, peer in sorted(self.state.aliases.items())
            )
        if len(parts) != 2:
            return style_value("usage: alias <peer> <name>", "failure")
        peer_text, name = parts
        if not _ALIAS_NAME_RE.match(name):
            return style_value(f"Invalid alias name '{name}'.", "failure")
        peer = self.parse_peer(peer_text)
        self.state.aliases[name] = peer
        self._persist("aliases", name, f'"{peer}"')
        return f"Set alias {style_value(name, 'highlight')} -> {style_value(str(peer), 'peerId')}"

    def _settings_text(self) -> str:
        rows = [
            ("includeRecipient", "true" if self.state.include_recipient else "false"),
            ("routing", self.state.routing),
            ("allowSelfHop", "true" if self.state.allow_self_hop else "false"),
        ]
        padding = get_padding_length(name for name, _value in rows)
        return "\n".join(f"{name.ljust(padding)}:  {style_value(value, 'highlight')}" for name, value in rows)

    async def cmd_settings(self, rest: str) -> str:
        parts = rest.split()
        if not parts:
            return self._settings_text()
        key = SETTING_KEYS.get(parts[0].lower())
        value = parts[1] if len(parts) > 1 else ""
        if key is None:
            return style_value(f"Unknown setting '{parts[0]}'. Known: {', '.join(SETTING_KEYS.values())}", "failure")

        if key == "routing":
            mode = value.lower()
            if mode not in ROUTING_MODES:
                return style_value(f"routing must be one of {', '.join(ROUTING_MODES)}", "failure")
            self.state.routing = mode
            self._persist("chat", "routing", f'"{mode}"')
            return f"routing set to {style_value(mode, 'highlight')}"

        current = self.state.include_recipient if key == "includeRecipient" else self.state.allow_self_hop
        enabled = parse_flag(value) if value else not current
        if enabled is None:
            return style_value(f"{key} must be true or false (or omitted to toggle)", "failure")
        if key == "includeRecipient":
            self.state.include_recipient = enabled
            self._persist("chat", "include_recipient", "true" if enabled else "false")
        else:
            self.state.allow_self_hop = enabled
            self._persist("chat", "allow_self_hop", "true" if enabled else "false")
        return f"{key} set to {style_value('true' if enabled else 'false', 'highlight')}"

    def _persist(self, section: str, key: str, literal: str) -> None:
        if self.config_path is None:
            return
        ok, summary = set_toml_value(self.config_path, section, key, literal)
        emit_runtime_log(summary, level="info" if ok else "warn", hooks=self.hooks)
