"""Wallet deduction."""
from typing import NamedTuple


class WalletResult(NamedTuple):
    wallet_amount: int
    remaining: int


def apply_wallet(amount_after_discount: int, wallet_balance: int, wallet_applied: bool) -> WalletResult:
    """
    Deduct the wallet from the post-discount amount.

    A balance smaller than the amount is used in full; a larger one only
    covers the amount. Nothing is deducted when the wallet is off or empty.
    """
    amount = max(0, amount_after_discount)
    if wallet_applied and wallet_balance > 0:
        wallet_amount = min(wallet_balance, amount)
    else:
        wallet_amount = 0
    return WalletResult(wallet_amount=wallet_amount, remaining=max(0, amount - wallet_amount))
