"""Wallet data models."""

from dataclasses import dataclass


@dataclass(frozen=True)
class WalletInfo:
    """An operational wallet owned by the wallet pool.

    ``encrypted_key`` is the ciphertext handed to the key store on each
    dispatch; plaintext signing material never lives on this record.
    """

    wallet_id: str
    address: str
    encrypted_key: str = ""
    active: bool = True
    is_creator: bool = False

    @classmethod
    def from_dict(cls, data: dict) -> "WalletInfo":
        return cls(
            wallet_id=str(data.get("id") or data.get("wallet_id") or data["address"]),
            address=str(data["address"]),
            encrypted_key=str(data.get("encrypted_key", "")),
            active=bool(data.get("active", True)),
            is_creator=bool(data.get("is_creator", False)),
        )


@dataclass(frozen=True)
class WalletBalance:
    """SOL and token balance of one wallet at read time."""

    sol: float
    tokens: float
