"""Read and write access to the service-access contract.

``ChainReader`` wraps the read-only contract calls (catalog, access flag and
expiry) and ``ChainWriter`` submits ``payForService`` through a wallet
provider and waits for confirmation. Both are synchronous; async callers run
them with ``asyncio.to_thread``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any

from web3 import Web3
from web3.exceptions import BadFunctionCallOutput, ContractLogicError, TimeExhausted

from neurapay.core.errors import (
    AlreadyHasAccessError,
    ChainReadError,
    InsufficientFundsError,
    InsufficientPaymentError,
    NeuraPayError,
    PaymentError,
    PaymentFailedError,
    PaymentRejectedByUserError,
    WalletNotConnectedError,
    WrongNetworkError,
)
from neurapay.core.settings import settings
from neurapay.services.wallet import (
    USER_REJECTED_REQUEST,
    NetworkConfig,
    WalletProvider,
    WalletRpcError,
    load_network_config,
)

logger = logging.getLogger(__name__)

TX_STATUS_SUCCESS = 1


class ServiceNotFoundError(ChainReadError):
    """The contract has no service with the requested id."""

    user_message = "Service not found."


ACCESS_CONTRACT_ABI: list[dict[str, Any]] = [
    {
        "anonymous": False,
        "inputs": [
            {"indexed": True, "internalType": "address", "name": "user", "type": "address"},
            {"indexed": True, "internalType": "uint256", "name": "serviceId", "type": "uint256"},
            {"indexed": False, "internalType": "uint256", "name": "amount", "type": "uint256"},
        ],
        "name": "AccessGranted",
        "type": "event",
    },
    {
        "inputs": [{"internalType": "uint256", "name": "_serviceId", "type": "uint256"}],
        "name": "payForService",
        "outputs": [],
        "stateMutability": "payable",
        "type": "function",
    },
    {
        "inputs": [{"internalType": "uint256", "name": "_serviceId", "type": "uint256"}],
        "name": "getService",
        "outputs": [
            {"internalType": "uint256", "name": "id", "type": "uint256"},
            {"internalType": "string", "name": "name", "type": "string"},
            {"internalType": "string", "name": "category", "type": "string"},
            {"internalType": "string", "name": "description", "type": "string"},
            {"internalType": "uint256", "name": "price", "type": "uint256"},
            {"internalType": "address", "name": "provider", "type": "address"},
            {"internalType": "bool", "name": "active", "type": "bool"},
        ],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [
            {"internalType": "address", "name": "_user", "type": "address"},
            {"internalType": "uint256", "name": "_serviceId", "type": "uint256"},
        ],
        "name": "hasAccess",
        "outputs": [{"internalType": "bool", "name": "", "type": "bool"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [
            {"internalType": "address", "name": "_user", "type": "address"},
            {"internalType": "uint256", "name": "_serviceId", "type": "uint256"},
        ],
        "name": "getAccessExpiry",
        "outputs": [{"internalType": "uint256", "name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [],
        "name": "serviceCount",
        "outputs": [{"internalType": "uint256", "name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
]


@dataclass(frozen=True)
class ChainConfig:
    """Immutable configuration for contract access."""

    rpc_url: str
    chain_id: int
    contract_address: str
    timeout_seconds: float
    confirmation_timeout_seconds: float
    poll_interval_seconds: float
    network: NetworkConfig


def load_chain_config() -> ChainConfig:
    """Build configuration object from global settings."""
    return ChainConfig(
        rpc_url=settings.chain_rpc_url,
        chain_id=settings.chain_id,
        contract_address=settings.contract_address,
        timeout_seconds=float(settings.chain_http_timeout_seconds),
        confirmation_timeout_seconds=float(settings.payment_confirmation_timeout_seconds),
        poll_interval_seconds=float(settings.payment_poll_interval_seconds),
        network=load_network_config(),
    )


@dataclass(frozen=True)
class ServiceListing:
    """A service as registered on the contract."""

    id: int
    name: str
    category: str
    description: str
    price: Decimal
    price_wei: int
    provider_address: str
    active: bool

    @property
    def price_display(self) -> str:
        """Price in native currency as a plain decimal string."""
        return format(self.price.normalize(), "f")

    @classmethod
    def from_contract_tuple(cls, values: Any) -> ServiceListing:
        service_id, name, category, description, price_wei, provider, active = values
        return cls(
            id=int(service_id),
            name=str(name),
            category=str(category),
            description=str(description),
            price=Decimal(Web3.from_wei(int(price_wei), "ether")),
            price_wei=int(price_wei),
            provider_address=str(provider),
            active=bool(active),
        )


@dataclass(frozen=True)
class PaymentReceipt:
    """Confirmed payment transaction."""

    tx_hash: str
    block_number: int
    status: int


def parse_price(price: Decimal | str) -> Decimal:
    """Parse a native-currency price, rejecting non-positive or malformed values."""
    try:
        value = price if isinstance(price, Decimal) else Decimal(str(price).strip())
    except InvalidOperation as exc:
        raise ValueError(f"invalid price: {price!r}") from exc
    if not value.is_finite() or value <= 0:
        raise ValueError(f"price must be a positive decimal, got {price!r}")
    return value


def _checksum(address: str) -> str:
    return Web3.to_checksum_address(address.strip().lower())


def _error_code_and_message(exc: BaseException) -> tuple[int | None, str]:
    code = getattr(exc, "code", None)
    message = str(exc)
    rpc_response = getattr(exc, "rpc_response", None)
    if isinstance(rpc_response, dict) and isinstance(rpc_response.get("error"), dict):
        error = rpc_response["error"]
        return (
            error.get("code") if isinstance(error.get("code"), int) else None,
            str(error.get("message", message)),
        )
    for arg in getattr(exc, "args", ()):
        if isinstance(arg, dict):
            code = arg.get("code", code)
            message = str(arg.get("message", message))
            break
    if not isinstance(code, int):
        code = None
    return code, message


def classify_payment_error(exc: BaseException) -> NeuraPayError:
    """Map a wallet or node failure raised during payment onto the error taxonomy."""
    if isinstance(exc, (PaymentError, WalletNotConnectedError, WrongNetworkError)):
        return exc
    code, message = _error_code_and_message(exc)
    if isinstance(exc, WalletRpcError):
        code, message = exc.code, exc.message
    lowered = message.lower()

    if code == USER_REJECTED_REQUEST or "user rejected" in lowered or "user denied" in lowered:
        return PaymentRejectedByUserError(message)
    if "insufficient funds" in lowered:
        return InsufficientFundsError(message)
    if "already has access" in lowered:
        return AlreadyHasAccessError(message)
    if "insufficient payment" in lowered:
        return InsufficientPaymentError(message)
    return PaymentFailedError(message or exc.__class__.__name__)


def _http_web3(config: ChainConfig) -> Web3:
    return Web3(Web3.HTTPProvider(config.rpc_url, request_kwargs={"timeout": config.timeout_seconds}))


class ChainReader:
    """Read-only contract queries.

    Reads go to the configured RPC endpoint. When that endpoint is unreachable
    and a wallet provider was supplied, the wallet's own connection is used
    instead. Every read first confirms the connection is on the expected chain.
    """

    def __init__(
        self,
        config: ChainConfig | None = None,
        *,
        web3: Web3 | None = None,
        wallet_provider: WalletProvider | None = None,
    ) -> None:
        self.config = config or load_chain_config()
        self._web3 = web3 or _http_web3(self.config)
        self._wallet_provider = wallet_provider

    def _connection(self) -> Web3:
        try:
            if self._web3.is_connected():
                return self._web3
        except Exception as exc:  # pragma: no cover - network failure
            logger.debug("RPC connectivity probe failed: %s", exc)

        if self._wallet_provider is not None and self._wallet_provider.is_present():
            logger.warning(
                "RPC endpoint %s unreachable; reading through %s wallet",
                self.config.rpc_url,
                self._wallet_provider.name,
            )
            return self._wallet_provider.web3

        raise ChainReadError(f"RPC endpoint {self.config.rpc_url} is unreachable")

    def _contract(self) -> Any:
        w3 = self._connection()
        try:
            chain_id = int(w3.eth.chain_id)
        except Exception as exc:
            raise ChainReadError(f"could not read chain id: {exc}") from exc
        if chain_id != self.config.chain_id:
            raise WrongNetworkError(self.config.chain_id, chain_id)
        return w3.eth.contract(address=_checksum(self.config.contract_address), abi=ACCESS_CONTRACT_ABI)

    def _call(self, function_name: str, *args: Any) -> Any:
        contract = self._contract()
        try:
            return getattr(contract.functions, function_name)(*args).call()
        except Exception as exc:
            raise ChainReadError(f"{function_name} call failed: {exc}") from exc

    def service_count(self) -> int:
        return int(self._call("serviceCount"))

    def get_service(self, service_id: int) -> ServiceListing:
        try:
            values = self._call("getService", int(service_id))
        except ChainReadError as exc:
            if isinstance(exc.__cause__, (BadFunctionCallOutput, ContractLogicError)):
                raise ServiceNotFoundError(f"service {service_id} does not exist") from exc
            raise
        try:
            return ServiceListing.from_contract_tuple(values)
        except (TypeError, ValueError) as exc:
            raise ChainReadError(f"malformed getService result: {exc}") from exc

    def get_service_catalog(self) -> list[ServiceListing]:
        """Return the active services, in contract order."""
        listings = [self.get_service(index) for index in range(self.service_count())]
        return [listing for listing in listings if listing.active]

    def has_access(self, wallet: str, service_id: int) -> bool:
        try:
            address = _checksum(wallet)
        except ValueError as exc:
            raise ChainReadError(f"invalid wallet address {wallet!r}") from exc
        return bool(self._call("hasAccess", address, int(service_id)))

    def get_access_expiry(self, wallet: str, service_id: int) -> int:
        """Return the on-chain expiry in unix seconds, or 0 when the contract has none."""
        try:
            address = _checksum(wallet)
        except ValueError as exc:
            raise ChainReadError(f"invalid wallet address {wallet!r}") from exc
        try:
            return int(self._call("getAccessExpiry", address, int(service_id)))
        except ChainReadError as exc:
            if isinstance(exc.__cause__, (BadFunctionCallOutput, ContractLogicError)):
                return 0
            raise


class ChainWriter:
    """Submits payments through a signing wallet provider."""

    def __init__(
        self,
        wallet_provider: WalletProvider | None,
        config: ChainConfig | None = None,
    ) -> None:
        self.wallet_provider = wallet_provider
        self.config = config or load_chain_config()

    def _require_wallet(self) -> tuple[WalletProvider, str]:
        provider = self.wallet_provider
        if provider is None or not provider.is_present():
            raise WalletNotConnectedError("no wallet adapter is available")
        try:
            accounts = provider.request_accounts()
            chain_id = provider.get_chain_id()
        except Exception as exc:
            raise classify_payment_error(exc) from exc
        if not accounts:
            raise WalletNotConnectedError(f"{provider.name} wallet exposed no accounts")
        if chain_id != self.config.chain_id:
            raise WrongNetworkError(self.config.chain_id, chain_id)
        return provider, accounts[0]

    def pay(self, service_id: int, price: Decimal | str) -> PaymentReceipt:
        """Pay ``price`` for ``service_id`` and block until the receipt arrives."""
        amount = parse_price(price)
        provider, account = self._require_wallet()
        w3 = provider.web3
        contract = w3.eth.contract(address=_checksum(self.config.contract_address), abi=ACCESS_CONTRACT_ABI)

        try:
            tx = contract.functions.payForService(int(service_id)).build_transaction(
                {"from": account, "value": Web3.to_wei(amount, "ether")}
            )
            tx_hash = provider.send_transaction(tx)
        except Exception as exc:
            error = classify_payment_error(exc)
            logger.warning("Payment for service %s failed before submission: %s", service_id, error)
            raise error from exc

        logger.info("Submitted payment %s for service %s from %s", tx_hash, service_id, account)

        try:
            receipt = w3.eth.wait_for_transaction_receipt(
                tx_hash,
                timeout=self.config.confirmation_timeout_seconds,
                poll_latency=self.config.poll_interval_seconds,
            )
        except TimeExhausted as exc:
            raise PaymentFailedError("timeout", tx_hash=tx_hash, may_still_confirm=True) from exc
        except Exception as exc:
            raise PaymentFailedError(str(exc), tx_hash=tx_hash) from exc

        status = int(receipt["status"])
        if status != TX_STATUS_SUCCESS:
            raise PaymentFailedError("transaction reverted", tx_hash=tx_hash)

        return PaymentReceipt(tx_hash=tx_hash, block_number=int(receipt["blockNumber"]), status=status)


class _ChainReaderSingleton:
    """Singleton wrapper for ChainReader."""

    _instance: ChainReader | None = None

    @classmethod
    def get_instance(cls) -> ChainReader:
        if cls._instance is None:
            cls._instance = ChainReader()
        return cls._instance


def get_chain_reader() -> ChainReader:
    """Return a singleton chain reader instance."""
    return _ChainReaderSingleton.get_instance()
