"""Wallet provider capability and its adapters.

A ``WalletProvider`` is the one place that knows how to reach a signing
wallet. Chain reads and writes receive a provider explicitly instead of
probing for one, which keeps them substitutable in tests.

Adapters are tried in a fixed order (``WALLET_ADAPTER_ORDER``). Detecting
which of them are usable is a side-effecting probe; choosing among the ones
that reported present is the pure function ``select_wallet``.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from eth_account import Account
from eth_account.signers.local import LocalAccount
from web3 import Web3

from neurapay.core.errors import NeuraPayError, WalletNotConnectedError
from neurapay.core.settings import Settings, settings

logger = logging.getLogger(__name__)

# EIP-1193 / EIP-3326 error codes
USER_REJECTED_REQUEST = 4001
UNRECOGNIZED_CHAIN = 4902
METHOD_NOT_FOUND = -32601

WALLET_ADAPTER_ORDER: tuple[str, ...] = ("local", "node")


class WalletRpcError(NeuraPayError):
    """A wallet JSON-RPC request returned an error object."""

    def __init__(self, method: str, code: int | None, message: str) -> None:
        self.method = method
        self.code = code
        self.message = message
        super().__init__(f"{method} failed ({code}): {message}")


@dataclass(frozen=True)
class NetworkConfig:
    """Identity of the chain the marketplace runs on."""

    chain_id: int
    chain_name: str
    rpc_url: str
    currency_symbol: str = "AVAX"
    decimals: int = 18
    explorer_url: str | None = None

    @property
    def chain_id_hex(self) -> str:
        return hex(self.chain_id)

    def to_add_chain_params(self) -> dict[str, Any]:
        """Parameters for ``wallet_addEthereumChain``."""
        params: dict[str, Any] = {
            "chainId": self.chain_id_hex,
            "chainName": self.chain_name,
            "nativeCurrency": {
                "name": self.currency_symbol,
                "symbol": self.currency_symbol,
                "decimals": self.decimals,
            },
            "rpcUrls": [self.rpc_url],
        }
        if self.explorer_url:
            params["blockExplorerUrls"] = [self.explorer_url]
        return params


def load_network_config(config: Settings | None = None) -> NetworkConfig:
    """Build the network description from settings."""
    config = config or settings
    return NetworkConfig(
        chain_id=config.chain_id,
        chain_name=config.chain_name,
        rpc_url=config.chain_rpc_url,
        currency_symbol=config.chain_currency_symbol,
        explorer_url=config.chain_explorer_url,
    )


def _http_web3(rpc_url: str, timeout: float | None = None) -> Web3:
    timeout = timeout if timeout is not None else settings.chain_http_timeout_seconds
    return Web3(Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": timeout}))


class WalletProvider(ABC):
    """Capability interface every wallet adapter implements."""

    name: str = ""

    @abstractmethod
    def is_present(self) -> bool:
        """Return True if the adapter can currently reach a wallet."""

    @abstractmethod
    def request_accounts(self) -> list[str]:
        """Return the accounts the wallet exposes, first one active."""

    @abstractmethod
    def get_chain_id(self) -> int:
        """Return the chain id the wallet is connected to."""

    @abstractmethod
    def switch_network(self, network: NetworkConfig) -> None:
        """Point the wallet at ``network``."""

    @abstractmethod
    def send_transaction(self, tx: dict[str, Any]) -> str:
        """Sign and broadcast ``tx``; return the transaction hash as hex."""

    @property
    @abstractmethod
    def web3(self) -> Web3:
        """Connection the wallet uses, also usable for reads."""


class LocalKeyWalletProvider(WalletProvider):
    """Signs locally with an eth-account key; broadcasts over plain RPC.

    The key comes from ``WALLET_PRIVATE_KEY`` (environment or ``.env``) and is
    never read from or written to a key file.
    """

    name = "local"

    def __init__(
        self,
        account: LocalAccount | None,
        rpc_url: str | None = None,
        *,
        web3: Web3 | None = None,
    ) -> None:
        self._account = account
        self._web3 = web3 or _http_web3(rpc_url or settings.chain_rpc_url)

    @classmethod
    def from_private_key(
        cls, private_key: str | None, rpc_url: str | None = None
    ) -> LocalKeyWalletProvider:
        """Create the adapter from a hex key; a missing key yields an absent adapter."""
        if not private_key or not private_key.strip():
            return cls(None, rpc_url)
        key = private_key.strip()
        if not key.startswith("0x"):
            key = "0x" + key
        return cls(Account.from_key(key), rpc_url)

    @property
    def web3(self) -> Web3:
        return self._web3

    @property
    def address(self) -> str | None:
        return self._account.address if self._account is not None else None

    def is_present(self) -> bool:
        return self._account is not None

    def request_accounts(self) -> list[str]:
        if self._account is None:
            return []
        return [self._account.address]

    def get_chain_id(self) -> int:
        return int(self._web3.eth.chain_id)

    def switch_network(self, network: NetworkConfig) -> None:
        # A local key signs for any chain; switching means talking to its RPC.
        if self.get_chain_id() == network.chain_id:
            return
        self._web3 = _http_web3(network.rpc_url)

    def send_transaction(self, tx: dict[str, Any]) -> str:
        if self._account is None:
            raise WalletNotConnectedError("no local key configured")
        w3 = self._web3
        tx = dict(tx)
        tx.setdefault("from", self._account.address)
        tx.setdefault("chainId", self.get_chain_id())
        if "nonce" not in tx:
            tx["nonce"] = w3.eth.get_transaction_count(self._account.address, "pending")
        if "gas" not in tx:
            tx["gas"] = w3.eth.estimate_gas(tx)
        if "gasPrice" not in tx and "maxFeePerGas" not in tx:
            tx["gasPrice"] = w3.eth.gas_price
        signed = self._account.sign_transaction(tx)
        tx_hash = w3.eth.send_raw_transaction(signed.raw_transaction)
        return Web3.to_hex(tx_hash)


class NodeWalletProvider(WalletProvider):
    """Node- or wallet-managed accounts reached over JSON-RPC.

    Speaks the same requests a browser wallet does (``eth_requestAccounts``,
    ``wallet_switchEthereumChain``, ``wallet_addEthereumChain``), so it works
    against wallets that expose an RPC endpoint as well as dev nodes.
    """

    name = "node"

    def __init__(self, rpc_url: str | None = None, *, web3: Web3 | None = None) -> None:
        if web3 is None and rpc_url is None:
            raise ValueError("NodeWalletProvider needs an rpc_url or a Web3 instance")
        self._web3 = web3 or _http_web3(rpc_url or "")

    @property
    def web3(self) -> Web3:
        return self._web3

    def _rpc(self, method: str, params: list[Any]) -> Any:
        response = self._web3.provider.make_request(method, params)  # type: ignore[arg-type]
        error = response.get("error")
        if error:
            if isinstance(error, dict):
                raise WalletRpcError(method, error.get("code"), str(error.get("message", "")))
            raise WalletRpcError(method, None, str(error))
        return response.get("result")

    def is_present(self) -> bool:
        try:
            return bool(self._web3.is_connected())
        except Exception:  # pragma: no cover - network failure
            return False

    def request_accounts(self) -> list[str]:
        try:
            accounts = self._rpc("eth_requestAccounts", [])
        except WalletRpcError as err:
            if err.code != METHOD_NOT_FOUND:
                raise
            # Plain nodes do not know eth_requestAccounts.
            accounts = self._rpc("eth_accounts", [])
        return [str(account) for account in accounts or []]

    def get_chain_id(self) -> int:
        return int(self._web3.eth.chain_id)

    def switch_network(self, network: NetworkConfig) -> None:
        try:
            self._rpc("wallet_switchEthereumChain", [{"chainId": network.chain_id_hex}])
        except WalletRpcError as err:
            if err.code == UNRECOGNIZED_CHAIN:
                self._rpc("wallet_addEthereumChain", [network.to_add_chain_params()])
                return
            if err.code == METHOD_NOT_FOUND and self.get_chain_id() == network.chain_id:
                return
            raise

    def send_transaction(self, tx: dict[str, Any]) -> str:
        tx_hash = self._web3.eth.send_transaction(tx)  # type: ignore[arg-type]
        return Web3.to_hex(tx_hash)


def build_wallet_providers(config: Settings | None = None) -> list[WalletProvider]:
    """Instantiate every configured adapter in preference order."""
    config = config or settings
    providers: list[WalletProvider] = [
        LocalKeyWalletProvider.from_private_key(config.wallet_private_key, config.chain_rpc_url)
    ]
    if config.wallet_node_rpc_url:
        providers.append(NodeWalletProvider(config.wallet_node_rpc_url))
    return providers


def detect_wallets(providers: Sequence[WalletProvider]) -> list[str]:
    """Probe each adapter and return the names of those that are present."""
    present: list[str] = []
    for provider in providers:
        try:
            if provider.is_present():
                present.append(provider.name)
        except Exception as exc:  # pragma: no cover - adapter probe failure
            logger.debug("Wallet adapter %s probe failed: %s", provider.name, exc)
    return present


def select_wallet(
    present: Sequence[str],
    order: Sequence[str] = WALLET_ADAPTER_ORDER,
    preferred: str | None = None,
) -> str | None:
    """Pick an adapter name from those reported present.

    ``preferred`` wins when it is present; otherwise the first present name in
    ``order`` is chosen. Names outside ``order`` are never selected.
    """
    available = set(present)
    if preferred and preferred in available and preferred in order:
        return preferred
    for name in order:
        if name in available:
            return name
    return None


def choose_wallet_provider(
    providers: Sequence[WalletProvider],
    preferred: str | None = None,
) -> WalletProvider | None:
    """Detect, select and return the adapter to use, or None if none is present."""
    by_name = {provider.name: provider for provider in providers}
    order = [provider.name for provider in providers]
    name = select_wallet(detect_wallets(providers), order=order, preferred=preferred)
    return by_name.get(name) if name else None


def connect_wallet(provider: WalletProvider | None, network: NetworkConfig) -> str:
    """Request accounts, move the wallet to ``network`` and return the active account."""
    if provider is None or not provider.is_present():
        raise WalletNotConnectedError("no wallet adapter is available")
    accounts = provider.request_accounts()
    if not accounts:
        raise WalletNotConnectedError(f"{provider.name} wallet exposed no accounts")
    provider.switch_network(network)
    logger.info("Connected %s wallet %s on chain %d", provider.name, accounts[0], network.chain_id)
    return accounts[0]
