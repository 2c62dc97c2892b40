"""Hashing, Ed25519 key management, Merkle trees and simple symmetric helpers."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from itertools import cycle
from typing import Any

from Crypto.Hash import keccak
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)

_KEY_LENGTH = 32
_SIGNATURE_LENGTH = 64


class CryptoError(Exception):
    """Raised when a cryptographic operation cannot be carried out."""


def keccak256(data: bytes) -> bytes:
    """Return the Keccak-256 digest of ``data``."""
    return keccak.new(digest_bits=256, data=bytes(data)).digest()


def _public_bytes(key: Ed25519PrivateKey) -> bytes:
    return key.public_key().public_bytes(
        serialization.Encoding.Raw, serialization.PublicFormat.Raw
    )


def _private_bytes(key: Ed25519PrivateKey) -> bytes:
    return key.private_bytes(
        serialization.Encoding.Raw,
        serialization.PrivateFormat.Raw,
        serialization.NoEncryption(),
    )


def _block_signing_data(block: Any) -> bytes:
    return (
        f"{block.height}{int(block.timestamp.timestamp())}"
        f"{block.previous_hash}{block.merkle_root}{block.validator}"
    ).encode()


@dataclass
class KeyPair:
    """A raw private/public key pair."""

    private_key: bytes
    public_key: bytes


@dataclass
class DigitalSignature:
    """An Ed25519 signature over the Keccak-256 hash of a message."""

    signature: bytes
    public_key: bytes
    message_hash: bytes


def _build_levels(leaves: list[str]) -> list[list[str]]:
    """Build every level of a Merkle tree from hex leaf hashes, leaves first."""
    levels = [list(leaves)]
    current = levels[0]
    while len(current) > 1:
        pairs = zip(current[0::2], current[1::2] + [current[-1]] * (len(current) % 2))
        current = [CryptoManager.hash_sha256((left + right).encode()) for left, right in pairs]
        levels.append(current)
    return levels


@dataclass
class MerkleTree:
    """A binary Merkle tree over hex-encoded hashes."""

    root: str = ""
    leaves: list[str] = field(default_factory=list)
    nodes: list[list[str]] = field(default_factory=list)

    @classmethod
    def from_data(cls, data: list[bytes]) -> MerkleTree:
        """Hash each item and build the tree over the results."""
        return CryptoManager().create_merkle_tree(data)

    @classmethod
    def from_hashes(cls, hashes: list[str]) -> MerkleTree:
        """Build the tree directly over the given leaf strings."""
        if not hashes:
            return cls()
        levels = _build_levels(hashes)
        return cls(root=levels[-1][0], leaves=list(hashes), nodes=levels)

    def get_proof(self, index: int) -> list[str]:
        """Return the sibling hashes needed to prove the leaf at ``index``."""
        proof = []
        for level in self.nodes:
            if len(level) <= 1:
                break
            sibling = index + 1 if index % 2 == 0 else index - 1
            if sibling < len(level):
                proof.append(level[sibling])
            index //= 2
        return proof

    def verify_proof(self, leaf: str, proof: list[str], index: int) -> bool:
        """Check that ``leaf`` at ``index`` hashes up to the root via ``proof``."""
        current = leaf
        for sibling in proof:
            combined = current + sibling if index % 2 == 0 else sibling + current
            current = CryptoManager.hash_sha256(combined.encode())
            index //= 2
        return current == self.root


class CryptoManager:
    """Holds named Ed25519 signing keys and offers hashing helpers."""

    def __init__(self) -> None:
        self._keypairs: dict[str, Ed25519PrivateKey] = {}

    def _key(self, identifier: str) -> Ed25519PrivateKey:
        try:
            return self._keypairs[identifier]
        except KeyError:
            raise CryptoError("Keypair not found") from None

    def generate_keypair(self, identifier: str) -> bytes:
        """Create a new signing key under ``identifier``; return its public key."""
        key = Ed25519PrivateKey.generate()
        self._keypairs[identifier] = key
        return _public_bytes(key)

    def sign_message(self, identifier: str, message: bytes) -> DigitalSignature:
        """Sign the Keccak-256 hash of ``message`` with the named key."""
        key = self._key(identifier)
        message_hash = self.hash_data(message)
        return DigitalSignature(
            signature=key.sign(message_hash),
            public_key=_public_bytes(key),
            message_hash=message_hash,
        )

    def verify_signature(self, signature: DigitalSignature, message: bytes) -> bool:
        """Return whether ``signature`` is valid for ``message``."""
        if len(signature.public_key) != _KEY_LENGTH:
            raise CryptoError("Invalid public key length")
        if len(signature.signature) != _SIGNATURE_LENGTH:
            raise CryptoError("Invalid signature length")
        try:
            public_key = Ed25519PublicKey.from_public_bytes(bytes(signature.public_key))
        except ValueError as exc:
            raise CryptoError(f"Invalid public key: {exc}") from exc

        message_hash = self.hash_data(message)
        if message_hash != bytes(signature.message_hash):
            return False
        try:
            public_key.verify(bytes(signature.signature), message_hash)
        except InvalidSignature:
            return False
        return True

    def hash_data(self, data: bytes) -> bytes:
        """Return the Keccak-256 digest of ``data``."""
        return keccak256(data)

    def sign_data(self, data: bytes) -> str:
        """Sign raw ``data`` with the first stored key; return the hex signature."""
        if not self._keypairs:
            raise CryptoError("No keypairs available for signing")
        key = next(iter(self._keypairs.values()))
        return key.sign(bytes(data)).hex()

    def create_merkle_tree(self, data: list[bytes]) -> MerkleTree:
        """Build a Merkle tree whose leaves are the hex hashes of ``data``."""
        if not data:
            return MerkleTree()
        leaves = [self.hash_data(item).hex() for item in data]
        levels = _build_levels(leaves)
        return MerkleTree(root=levels[-1][0], leaves=leaves, nodes=levels)

    def derive_key(self, seed: bytes, path: str) -> bytes:
        """Derive a 32-byte key from a seed and a derivation path."""
        return keccak256(bytes(seed) + path.encode())

    def encrypt_data(self, data: bytes, key: bytes) -> bytes:
        """XOR ``data`` with the first 32 bytes of ``key``."""
        if len(key) < _KEY_LENGTH:
            raise CryptoError("Key too short")
        return bytes(b ^ k for b, k in zip(data, cycle(key[:_KEY_LENGTH])))

    def decrypt_data(self, encrypted_data: bytes, key: bytes) -> bytes:
        """Reverse :meth:`encrypt_data`."""
        return self.encrypt_data(encrypted_data, key)

    @staticmethod
    def hash_sha256(data: bytes) -> str:
        """Return the hex Keccak-256 digest of ``data``."""
        return keccak256(data).hex()

    @staticmethod
    def generate_random_bytes(length: int) -> bytes:
        """Return ``length`` bytes from the operating system's random source."""
        return os.urandom(length)

    def verify_keypair(self, identifier: str, public_key_bytes: bytes) -> bool:
        """Return whether the named key has the given public key."""
        return _public_bytes(self._key(identifier)) == bytes(public_key_bytes)

    def get_public_key(self, identifier: str) -> bytes:
        """Return the public key of the named key."""
        return _public_bytes(self._key(identifier))

    def import_keypair(self, identifier: str, private_key_bytes: bytes) -> bytes:
        """Store a raw 32-byte private key under ``identifier``; return its public key."""
        if len(private_key_bytes) != _KEY_LENGTH:
            raise CryptoError("Invalid private key length")
        key = Ed25519PrivateKey.from_private_bytes(bytes(private_key_bytes))
        self._keypairs[identifier] = key
        return _public_bytes(key)

    def export_private_key(self, identifier: str) -> bytes:
        """Return the raw private key stored under ``identifier``."""
        return _private_bytes(self._key(identifier))

    def clear_keypair(self, identifier: str) -> bool:
        """Remove the named key; return whether it existed."""
        return self._keypairs.pop(identifier, None) is not None

    def list_keypairs(self) -> list[str]:
        """Return the identifiers of all stored keys."""
        return list(self._keypairs)

    def sign_block(self, block: Any) -> str:
        """Sign a block's height, timestamp, parent hash, Merkle root and validator."""
        return self.sign_data(_block_signing_data(block))

    def verify_block_signature(self, block: Any) -> bool:
        """Return whether the block's hex signature was made by one of the stored keys."""
        try:
            signature = bytes.fromhex(block.signature)
        except (AttributeError, TypeError, ValueError):
            return False
        data = _block_signing_data(block)
        for key in self._keypairs.values():
            try:
                key.public_key().verify(signature, data)
            except InvalidSignature:
                continue
            return True
        return False

    def create_shared_secret(self, our_private_key: bytes, their_public_key: bytes) -> bytes:
        """Hash the concatenation of a private and a public key into a shared secret."""
        return self.hash_data(bytes(our_private_key) + bytes(their_public_key))