"""Tests for the contract reader and writer."""

from decimal import Decimal
from unittest.mock import MagicMock

import pytest
from web3.exceptions import BadFunctionCallOutput, ContractLogicError, TimeExhausted

from neurapay.core.errors import (
    AlreadyHasAccessError,
    ChainReadError,
    InsufficientFundsError,
    InsufficientPaymentError,
    PaymentFailedError,
    PaymentRejectedByUserError,
    WalletNotConnectedError,
    WrongNetworkError,
)
from neurapay.services.chain import (
    ChainConfig,
    ChainReader,
    ChainWriter,
    ServiceNotFoundError,
    classify_payment_error,
    parse_price,
)
from neurapay.services.wallet import NetworkConfig, WalletRpcError

CHAIN_ID = 43113
CONTRACT = "0x8b145549ae006dd1e8440cf50f8ee77ed6f94bd7"
USER = "0x00000000000000000000000000000000000000ab"
PROVIDER = "0x0000000000000000000000000000000000000001"
TX_HASH = "0x" + "ab" * 32


def _config() -> ChainConfig:
    return ChainConfig(
        rpc_url="http://rpc.invalid",
        chain_id=CHAIN_ID,
        contract_address=CONTRACT,
        timeout_seconds=1.0,
        confirmation_timeout_seconds=5.0,
        poll_interval_seconds=0.1,
        network=NetworkConfig(chain_id=CHAIN_ID, chain_name="Fuji", rpc_url="http://rpc.invalid"),
    )


def _web3(chain_id: int = CHAIN_ID, connected: bool = True) -> tuple[MagicMock, MagicMock]:
    w3 = MagicMock()
    w3.is_connected.return_value = connected
    w3.eth.chain_id = chain_id
    contract = MagicMock()
    w3.eth.contract.return_value = contract
    return w3, contract


def _service_tuple(service_id: int, *, active: bool = True, price_wei: int = 10**16) -> tuple:
    return (service_id, f"Model {service_id}", "text", "desc", price_wei, PROVIDER, active)


# --- reader -----------------------------------------------------------------


def test_catalog_returns_only_active_services() -> None:
    w3, contract = _web3()
    contract.functions.serviceCount.return_value.call.return_value = 3
    contract.functions.getService.side_effect = lambda service_id: MagicMock(
        call=MagicMock(return_value=_service_tuple(service_id, active=service_id != 1))
    )

    catalog = ChainReader(_config(), web3=w3).get_service_catalog()

    assert [listing.id for listing in catalog] == [0, 2]
    assert catalog[0].price == Decimal("0.01")
    assert catalog[0].price_display == "0.01"
    assert catalog[0].provider_address == PROVIDER


def test_reads_reject_wrong_network() -> None:
    w3, _ = _web3(chain_id=1)

    with pytest.raises(WrongNetworkError) as excinfo:
        ChainReader(_config(), web3=w3).has_access(USER, 0)

    assert excinfo.value.actual_chain_id == 1


def test_read_failure_becomes_chain_read_error() -> None:
    w3, contract = _web3()
    contract.functions.hasAccess.return_value.call.side_effect = ConnectionError("reset")

    with pytest.raises(ChainReadError):
        ChainReader(_config(), web3=w3).has_access(USER, 0)


def test_has_access_uses_checksummed_address() -> None:
    w3, contract = _web3()
    contract.functions.hasAccess.return_value.call.return_value = True

    assert ChainReader(_config(), web3=w3).has_access(USER.upper().replace("0X", "0x"), 4) is True
    address, service_id = contract.functions.hasAccess.call_args.args
    assert address.lower() == USER
    assert service_id == 4


def test_invalid_wallet_is_a_read_error() -> None:
    w3, _ = _web3()

    with pytest.raises(ChainReadError):
        ChainReader(_config(), web3=w3).has_access("0xabc", 0)


def test_missing_expiry_function_reads_as_zero() -> None:
    w3, contract = _web3()
    contract.functions.getAccessExpiry.return_value.call.side_effect = BadFunctionCallOutput("empty")

    assert ChainReader(_config(), web3=w3).get_access_expiry(USER, 0) == 0


def test_expiry_is_returned_as_int() -> None:
    w3, contract = _web3()
    contract.functions.getAccessExpiry.return_value.call.return_value = 4600

    assert ChainReader(_config(), web3=w3).get_access_expiry(USER, 0) == 4600


def test_unknown_service_raises_not_found() -> None:
    w3, contract = _web3()
    contract.functions.getService.return_value.call.side_effect = ContractLogicError(
        "execution reverted: Service does not exist"
    )

    with pytest.raises(ServiceNotFoundError):
        ChainReader(_config(), web3=w3).get_service(99)


def test_falls_back_to_wallet_connection_when_rpc_is_down() -> None:
    rpc, _ = _web3(connected=False)
    wallet_w3, contract = _web3()
    contract.functions.serviceCount.return_value.call.return_value = 5
    wallet = MagicMock()
    wallet.is_present.return_value = True
    wallet.web3 = wallet_w3

    assert ChainReader(_config(), web3=rpc, wallet_provider=wallet).service_count() == 5
    rpc.eth.contract.assert_not_called()


def test_rpc_down_without_wallet_is_a_read_error() -> None:
    rpc, _ = _web3(connected=False)

    with pytest.raises(ChainReadError):
        ChainReader(_config(), web3=rpc).service_count()


# --- writer -----------------------------------------------------------------


def _wallet(chain_id: int = CHAIN_ID, accounts: list[str] | None = None) -> tuple[MagicMock, MagicMock]:
    w3, contract = _web3(chain_id=chain_id)
    contract.functions.payForService.return_value.build_transaction.return_value = {"to": CONTRACT}
    w3.eth.wait_for_transaction_receipt.return_value = {"status": 1, "blockNumber": 77}
    wallet = MagicMock()
    wallet.name = "fake"
    wallet.is_present.return_value = True
    wallet.request_accounts.return_value = [USER] if accounts is None else accounts
    wallet.get_chain_id.return_value = chain_id
    wallet.send_transaction.return_value = TX_HASH
    wallet.web3 = w3
    return wallet, contract


def test_pay_returns_receipt() -> None:
    wallet, contract = _wallet()

    receipt = ChainWriter(wallet, _config()).pay(2, "0.01")

    assert receipt.tx_hash == TX_HASH
    assert receipt.block_number == 77
    params = contract.functions.payForService.return_value.build_transaction.call_args.args[0]
    assert params["value"] == 10**16
    assert params["from"] == USER
    contract.functions.payForService.assert_called_once_with(2)


def test_pay_without_wallet_raises() -> None:
    with pytest.raises(WalletNotConnectedError):
        ChainWriter(None, _config()).pay(0, "0.01")


def test_pay_without_accounts_raises() -> None:
    wallet, _ = _wallet(accounts=[])

    with pytest.raises(WalletNotConnectedError):
        ChainWriter(wallet, _config()).pay(0, "0.01")


def test_pay_on_wrong_network_raises() -> None:
    wallet, _ = _wallet(chain_id=1)

    with pytest.raises(WrongNetworkError):
        ChainWriter(wallet, _config()).pay(0, "0.01")
    wallet.send_transaction.assert_not_called()


def test_pay_rejects_bad_price() -> None:
    wallet, _ = _wallet()

    with pytest.raises(ValueError):
        ChainWriter(wallet, _config()).pay(0, "-1")


def test_user_rejection_is_classified() -> None:
    wallet, _ = _wallet()
    wallet.send_transaction.side_effect = WalletRpcError("eth_sendTransaction", 4001, "User denied")

    with pytest.raises(PaymentRejectedByUserError):
        ChainWriter(wallet, _config()).pay(0, "0.01")


def test_revert_for_existing_access_is_classified() -> None:
    wallet, contract = _wallet()
    contract.functions.payForService.return_value.build_transaction.side_effect = ContractLogicError(
        "execution reverted: Already has access"
    )

    with pytest.raises(AlreadyHasAccessError):
        ChainWriter(wallet, _config()).pay(0, "0.01")


def test_confirmation_timeout_may_still_confirm() -> None:
    wallet, _ = _wallet()
    wallet.web3.eth.wait_for_transaction_receipt.side_effect = TimeExhausted("slow")

    with pytest.raises(PaymentFailedError) as excinfo:
        ChainWriter(wallet, _config()).pay(0, "0.01")

    assert excinfo.value.reason == "timeout"
    assert excinfo.value.may_still_confirm is True
    assert excinfo.value.tx_hash == TX_HASH
    assert "may still confirm" in excinfo.value.user_message


def test_reverted_receipt_fails() -> None:
    wallet, _ = _wallet()
    wallet.web3.eth.wait_for_transaction_receipt.return_value = {"status": 0, "blockNumber": 5}

    with pytest.raises(PaymentFailedError) as excinfo:
        ChainWriter(wallet, _config()).pay(0, "0.01")

    assert excinfo.value.may_still_confirm is False


@pytest.mark.parametrize(
    ("error", "expected"),
    [
        (ValueError({"code": -32000, "message": "insufficient funds for gas * price + value"}), InsufficientFundsError),
        (ContractLogicError("execution reverted: Insufficient payment"), InsufficientPaymentError),
        (RuntimeError("user rejected transaction"), PaymentRejectedByUserError),
        (RuntimeError("nonce too low"), PaymentFailedError),
    ],
)
def test_classify_payment_error(error: Exception, expected: type) -> None:
    assert isinstance(classify_payment_error(error), expected)


def test_classify_passes_payment_errors_through() -> None:
    original = AlreadyHasAccessError("x")

    assert classify_payment_error(original) is original


@pytest.mark.parametrize("value", ["0", "-0.5", "abc", "NaN"])
def test_parse_price_rejects_invalid(value: str) -> None:
    with pytest.raises(ValueError):
        parse_price(value)
