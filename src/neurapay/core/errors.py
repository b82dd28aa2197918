"""Error taxonomy for payment, tracking and access checks.

Payment errors (``PaymentError`` and subclasses, plus ``WalletNotConnectedError``
and ``WrongNetworkError``) are fatal to the operation that raised them and carry
a message meant to be shown to the user as is. ``TrackingError`` and
``ChainReadError`` are recovered by callers during reconciliation.
"""

from __future__ import annotations


class NeuraPayError(RuntimeError):
    """Base exception for all NeuraPay failures."""

    user_message = "Something went wrong. Please try again."

    def __init__(self, detail: str | None = None) -> None:
        self.detail = detail
        super().__init__(detail or self.user_message)


class WalletNotConnectedError(NeuraPayError):
    """No connected wallet (or no account) is available for signing."""

    user_message = "Connect a wallet to continue."


class WrongNetworkError(NeuraPayError):
    """The connected network does not match the expected chain id."""

    user_message = "Your wallet is on the wrong network. Switch to the supported test network."

    def __init__(self, expected_chain_id: int, actual_chain_id: int | None) -> None:
        self.expected_chain_id = expected_chain_id
        self.actual_chain_id = actual_chain_id
        super().__init__(
            f"expected chain id {expected_chain_id}, connected to {actual_chain_id}"
        )


class PaymentError(NeuraPayError):
    """Base class for failures of the payment transaction itself."""

    user_message = "Payment failed. Please try again."


class PaymentRejectedByUserError(PaymentError):
    """The wallet owner declined to sign the transaction."""

    user_message = "You rejected the transaction in your wallet."


class InsufficientFundsError(PaymentError):
    """The paying account cannot cover price plus gas."""

    user_message = "Insufficient funds to cover the price and network fee."


class AlreadyHasAccessError(PaymentError):
    """The contract refused the payment because access is still active."""

    user_message = "You already have active access to this service."


class InsufficientPaymentError(PaymentError):
    """The value sent is below the service price."""

    user_message = "The amount sent is below the service price."


class PaymentFailedError(PaymentError):
    """Generic submission or confirmation failure."""

    def __init__(
        self,
        reason: str,
        *,
        tx_hash: str | None = None,
        may_still_confirm: bool = False,
    ) -> None:
        self.reason = reason
        self.tx_hash = tx_hash
        self.may_still_confirm = may_still_confirm
        super().__init__(reason)

    @property
    def user_message(self) -> str:  # type: ignore[override]
        if self.may_still_confirm:
            return (
                "Timed out waiting for confirmation. The transaction may still confirm; "
                "reload later to re-check your access."
            )
        return f"Payment failed: {self.reason}"


class TrackingError(NeuraPayError):
    """The access tracker could not record or report a grant."""

    user_message = "Could not record access."


class ChainReadError(NeuraPayError):
    """A read-only contract query failed."""

    user_message = "Could not read from the blockchain."


class AccessExpiredError(NeuraPayError):
    """A grant exists but its window has passed."""

    user_message = "Your access has expired. Please purchase again."


class ServiceNotAvailableError(NeuraPayError):
    """The AI relay has no integration for the requested service."""

    user_message = "This service is not available."


__all__ = [
    "NeuraPayError",
    "WalletNotConnectedError",
    "WrongNetworkError",
    "PaymentError",
    "PaymentRejectedByUserError",
    "InsufficientFundsError",
    "AlreadyHasAccessError",
    "InsufficientPaymentError",
    "PaymentFailedError",
    "TrackingError",
    "ChainReadError",
    "AccessExpiredError",
    "ServiceNotAvailableError",
]
