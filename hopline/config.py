from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
import tomllib


ROUTING_MODES = ("direct", "manual", "auto")
DEFAULT_MAX_HOPS = 3
MAX_HOPS_LIMIT = 8


def _as_int(value, *, default: int) -> int:
    try:
        return int(value)
    except Exception:  # noqa: BLE001
        return int(default)


def parse_flag(value: str) -> bool | None:
    lowered = value.strip().lower()
    if lowered in {"1", "true", "yes", "y", "on"}:
        return True
    if lowered in {"0", "false", "no", "n", "off"}:
        return False
    return None


def _as_bool(value, *, default: bool) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    if isinstance(value, str):
        flag = parse_flag(value)
        if flag is not None:
            return flag
    return bool(default)


def _as_str_list(value) -> list[str]:
    if isinstance(value, list):
        return [item.strip() for item in value if isinstance(item, str) and item.strip()]
    if isinstance(value, str) and value.strip():
        return [value.strip()]
    return []


def _as_routing(value, *, default: str) -> str:
    if isinstance(value, str) and value.strip().lower() in ROUTING_MODES:
        return value.strip().lower()
    return default


@dataclass(frozen=True)
class NodeConfig:
    address: str = ""
    max_hops: int = DEFAULT_MAX_HOPS


@dataclass(frozen=True)
class ChatConfig:
    include_recipient: bool = False
    routing: str = "manual"
    allow_self_hop: bool = False


@dataclass(frozen=True)
class EnsConfig:
    enabled: bool = False
    rpc_urls: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class SandboxChannelConfig:
    party_a: str = ""
    party_b: str = ""
    balance: int = 0
    balance_a: int = 0
    status: str = "OPEN"
    channel_id: str = ""


@dataclass(frozen=True)
class SandboxConfig:
    channels: list[SandboxChannelConfig] = field(default_factory=list)
    offline_peers: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class HoplineConfig:
    node: NodeConfig = field(default_factory=NodeConfig)
    chat: ChatConfig = field(default_factory=ChatConfig)
    ens: EnsConfig = field(default_factory=EnsConfig)
    aliases: dict[str, str] = field(default_factory=dict)
    sandbox: SandboxConfig = field(default_factory=SandboxConfig)


def _parse_channels(raw) -> list[SandboxChannelConfig]:
    if not isinstance(raw, list):
        return []
    channels: list[SandboxChannelConfig] = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        channels.append(
            SandboxChannelConfig(
                party_a=str(item.get("party_a") or "").strip(),
                party_b=str(item.get("party_b") or "").strip(),
                balance=max(0, _as_int(item.get("balance"), default=0)),
                balance_a=max(0, _as_int(item.get("balance_a"), default=0)),
                status=str(item.get("status") or SandboxChannelConfig.status).strip().upper(),
                channel_id=str(item.get("channel_id") or "").strip(),
            )
        )
    return channels


def load_hopline_toml(path: Path) -> tuple[HoplineConfig, str]:
    """Load workspace config from hopline.toml.

    Returns (config, warning). Warning is empty on success.
    """

    if not path.exists():
        return HoplineConfig(), ""

    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except Exception as exc:  # noqa: BLE001
        return HoplineConfig(), f"hopline.toml parse failed: {exc}"

    node = data.get("node") if isinstance(data.get("node"), dict) else {}
    chat = data.get("chat") if isinstance(data.get("chat"), dict) else {}
    ens = data.get("ens") if isinstance(data.get("ens"), dict) else {}
    aliases = data.get("aliases") if isinstance(data.get("aliases"), dict) else {}
    sandbox = data.get("sandbox") if isinstance(data.get("sandbox"), dict) else {}

    max_hops = _as_int(node.get("max_hops"), default=NodeConfig.max_hops)
    cfg = HoplineConfig(
        node=NodeConfig(
            address=str(node.get("address") or "").strip(),
            max_hops=min(MAX_HOPS_LIMIT, max(1, max_hops)),
        ),
        chat=ChatConfig(
            include_recipient=_as_bool(chat.get("include_recipient"), default=ChatConfig.include_recipient),
            routing=_as_routing(chat.get("routing"), default=ChatConfig.routing),
            allow_self_hop=_as_bool(chat.get("allow_self_hop"), default=ChatConfig.allow_self_hop),
        ),
        ens=EnsConfig(
            enabled=_as_bool(ens.get("enabled"), default=EnsConfig.enabled),
            rpc_urls=_as_str_list(ens.get("rpc_urls")),
        ),
        aliases={
            str(name).strip(): str(value).strip()
            for name, value in aliases.items()
            if str(name).strip() and isinstance(value, str) and value.strip()
        },
        sandbox=SandboxConfig(
            channels=_parse_channels(sandbox.get("channels")),
            offline_peers=_as_str_list(sandbox.get("offline_peers")),
        ),
    )
    return cfg, ""


def set_toml_value(path: Path, section: str, key: str, literal: str) -> tuple[bool, str]:
    """Write ``key = literal`` into ``[section]``, creating either as needed."""

    line = f"{key} = {literal}"
    header = f"[{section}]"

    if not path.exists():
        try:
            path.write_text(f"{header}\n{line}\n", encoding="utf-8")
        except Exception as exc:  # noqa: BLE001
            return False, f"failed writing hopline.toml: {exc}"
        return True, f"{section}.{key} set to {literal} (new file)"

    try:
        text = path.read_text(encoding="utf-8")
    except Exception as exc:  # noqa: BLE001
        return False, f"failed reading hopline.toml: {exc}"

    lines = text.splitlines()
    section_start = None
    for idx, raw in enumerate(lines):
        if raw.strip() == header:
            section_start = idx
            break

    if section_start is None:
        if lines and lines[-1].strip():
            lines.append("")
        lines.append(header)
        lines.append(line)
    else:
        section_end = len(lines)
        for idx in range(section_start + 1, len(lines)):
            stripped = lines[idx].strip()
            if stripped.startswith("[") and stripped.endswith("]"):
                section_end = idx
                break

        target_idx = None
        for idx in range(section_start + 1, section_end):
            name = lines[idx].split("=", 1)[0].strip()
            if name == key:
                target_idx = idx
                break

        if target_idx is not None:
            lines[target_idx] = line
        else:
            lines.insert(section_start + 1, line)

    updated = "\n".join(lines) + "\n"
    try:
        path.write_text(updated, encoding="utf-8")
    except Exception as exc:  # noqa: BLE001
        return False, f"failed writing hopline.toml: {exc}"
    return True, f"{section}.{key} set to {literal}"


def explain_config(config: HoplineConfig, *, path: Path | None = None) -> str:
    location = str(path) if path is not None else "hopline.toml"
    rpc_urls = ", ".join(config.ens.rpc_urls) if config.ens.rpc_urls else "(public defaults)"
    lines = [
        f"hopline.toml guide ({location})",
        "",
        "[node]",
        f"- address: local peer address used by the sandbox node (current: {config.node.address or '(generated per run)'})",
        f"- max_hops: total path length including sender and destination (current: {config.node.max_hops})",
        "",
        "[chat]",
        f"- include_recipient: prefix messages with your address (current: {'true' if config.chat.include_recipient else 'false'})",
        f"- routing: one of {', '.join(ROUTING_MODES)} (current: {config.chat.routing})",
        f"- allow_self_hop: accept your own address as a relay (current: {'true' if config.chat.allow_self_hop else 'false'})",
        "",
        "[ens]",
        f"- enabled: accept .eth names wherever a peer is expected (current: {'true' if config.ens.enabled else 'false'})",
        f"- rpc_urls: Ethereum RPC endpoints for ENS lookups (current: {rpc_urls})",
        "",
        "[aliases]",
        f"- name = \"0x...\" pairs (current: {len(config.aliases)})",
        "",
        "[[sandbox.channels]]",
        f"- party_a/party_b/balance/balance_a/status (current: {len(config.sandbox.channels)} channels)",
    ]
    return "\n".join(lines)
