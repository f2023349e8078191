from __future__ import annotations

import json
from typing import Any
from urllib.parse import quote
from urllib.request import Request, urlopen

from .errors import InvalidPeerIdentifier


DEFAULT_ENS_RPC_URL = "https://ethereum.publicnode.com"
DEFAULT_ENS_RPC_URLS = [DEFAULT_ENS_RPC_URL, "https://eth.llamarpc.com"]
ENS_LOOKUP_TIMEOUT_S = 10


def looks_like_ens_name(text: str) -> bool:
    value = text.strip().lower()
    return value.endswith(".eth") and len(value) > len(".eth")


def _lookup_web3bio(name: str) -> str:
    endpoint = f"https://api.web3.bio/ns/{quote(name)}"
    request = Request(endpoint, headers={"Content-Type": "application/json"}, method="GET")
    with urlopen(request, timeout=ENS_LOOKUP_TIMEOUT_S) as response:
        if response.status >= 400:
            raise RuntimeError(f"web3.bio returned {response.status} {response.reason}")
        data = response.read()
    results: Any = json.loads(data.decode("utf-8"))
    first = results[0] if isinstance(results, list) and results else {}
    address = first.get("address") if isinstance(first, dict) else None
    if not isinstance(address, str) or not address:
        raise RuntimeError(f"web3.bio did not resolve {name}")
    return address


def _lookup_rpc(name: str, rpc_url: str) -> str | None:
    from web3 import Web3

    web3 = Web3(Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": ENS_LOOKUP_TIMEOUT_S}))
    if not web3.is_connected():
        raise RuntimeError(f"Unable to reach ENS RPC at {rpc_url}")
    address = web3.ens.address(name)
    return str(address) if address else None


def resolve_ens_name(name: str, rpc_urls: list[str] | None = None) -> str:
    """Resolve an ENS name to an address.

    RPC endpoints are tried in order; web3.bio is the last resort. Raises
    InvalidPeerIdentifier when nothing resolves.
    """

    cleaned = name.strip()
    urls = list(rpc_urls) if rpc_urls else list(DEFAULT_ENS_RPC_URLS)
    last_error: Exception | None = None
    for rpc_url in urls:
        try:
            address = _lookup_rpc(cleaned, rpc_url)
        except Exception as exc:  # noqa: BLE001
            last_error = exc
            continue
        if address:
            return address
        last_error = RuntimeError(f"ENS name did not resolve: {cleaned}")
    try:
        return _lookup_web3bio(cleaned)
    except Exception as exc:  # noqa: BLE001
        raise InvalidPeerIdentifier(
            f"ENS resolution failed via {', '.join(urls)}: {last_error}; web3.bio error: {exc}"
        ) from exc
