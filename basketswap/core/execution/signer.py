"""Signing surface used by the submitter."""

from abc import ABC, abstractmethod

from eth_account import Account
from eth_account.signers.local import LocalAccount

from .models import PendingTransaction


class Signer(ABC):
    """Anything that can sign a PendingTransaction for one address."""

    @property
    @abstractmethod
    def address(self) -> str:
        ...

    @abstractmethod
    def sign_transaction(self, tx: PendingTransaction) -> str:
        """Return the signed raw transaction as 0x-prefixed hex."""


class LocalAccountSigner(Signer):
    """Signs with a private key held in memory."""

    def __init__(self, private_key: str) -> None:
        if not private_key:
            raise ValueError("A private key is required for local signing")
        self._account: LocalAccount = Account.from_key(private_key)

    @property
    def address(self) -> str:
        return self._account.address

    def sign_transaction(self, tx: PendingTransaction) -> str:
        signed = self._account.sign_transaction(tx.to_dict())
        raw_tx = getattr(signed, "raw_transaction", None)
        if raw_tx is None:
            raw_tx = getattr(signed, "rawTransaction", None)
        if raw_tx is None:
            raise RuntimeError("SignedTransaction missing raw transaction bytes")
        return "0x" + bytes(raw_tx).hex()
