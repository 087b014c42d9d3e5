"""Keccak256 personal-sign hashing and recoverable secp256k1 signatures."""

from __future__ import annotations

import logging
import re
from typing import Union

from eth_account import Account
from eth_account.messages import encode_defunct
from web3 import Web3

from .errors import CryptoError

LOGGER = logging.getLogger(__name__)

PREAMBLE = "\x19Ethereum Signed Message:\n"
SIGNATURE_LENGTH = 65
RECOVERY_ID_OFFSET = 27  # v = recovery id + 27
_HEX_SIGNATURE = re.compile(r"0x[0-9a-fA-F]*")


class Signer:
    """Signing capability built from a private key held only in memory."""

    __slots__ = ("_account",)

    def __init__(self, account):
        self._account = account

    @classmethod
    def from_key(cls, private_key: Union[str, bytes]) -> "Signer":
        try:
            return cls(Account.from_key(private_key))
        except Exception as err:
            # The message of the underlying error may echo the key.
            raise CryptoError(f"invalid private key ({type(err).__name__})") from None

    @property
    def address(self) -> str:
        return self._account.address

    def sign(self, message: str) -> str:
        signed = self._account.sign_message(encode_defunct(text=message))
        rsv = signed.r.to_bytes(32, "big") + signed.s.to_bytes(32, "big") + bytes([signed.v])
        return "0x" + rsv.hex()

    def __repr__(self) -> str:
        return f"Signer(address={self.address!r})"


SignerLike = Union[Signer, str, bytes]


def as_signer(key: SignerLike | None) -> Signer:
    if key is None:
        raise CryptoError("no signing key available")
    if isinstance(key, Signer):
        return key
    return Signer.from_key(key)


def hash_message(message: str) -> str:
    data = message.encode("utf-8")
    digest = Web3.keccak(PREAMBLE.encode("utf-8") + str(len(data)).encode("ascii") + data)
    return "0x" + bytes(digest).hex()


def hash_matches(message: str, candidate_hash: str) -> bool:
    return hash_message(message) == candidate_hash


def sign(message: str, private_key: SignerLike) -> str:
    return as_signer(private_key).sign(message)


def address_of(private_key: SignerLike) -> str:
    return as_signer(private_key).address


def to_checksum_address(address: str) -> str:
    try:
        return Web3.to_checksum_address(address)
    except Exception as err:
        raise CryptoError(f"invalid address: {address!r}") from err


def split_signature(signature: str) -> tuple[int, int, int]:
    """Decode a hex signature into ``(v, r, s)``."""
    if not isinstance(signature, str):
        raise CryptoError(f"signature must be a hex string, got {type(signature).__name__}")
    if not _HEX_SIGNATURE.fullmatch(signature):
        raise CryptoError("signature is not valid hex")

    digits = len(signature) - 2
    if digits != 2 * SIGNATURE_LENGTH:
        raise CryptoError(f"signature must be {SIGNATURE_LENGTH} bytes (got {digits} hex digits)")

    raw = bytes.fromhex(signature[2:])
    v = raw[64]
    if v - RECOVERY_ID_OFFSET not in (0, 1):
        raise CryptoError(f"invalid recovery id: v={v}")

    return v, int.from_bytes(raw[:32], "big"), int.from_bytes(raw[32:64], "big")


def recover_address(message: str, signature: str) -> str:
    v, r, s = split_signature(signature)
    try:
        return Account.recover_message(encode_defunct(text=message), vrs=(v, r, s))
    except Exception as err:
        raise CryptoError(f"public key recovery failed: {err}") from err


def verify(message: str, claimed_address: str, signature: str) -> bool:
    try:
        return recover_address(message, signature) == claimed_address
    except Exception as err:
        LOGGER.debug("signature rejected: %s", err)
        return False
