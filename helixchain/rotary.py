"""The rotary validator set: proposer selection, voting torque and block hashing."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from dataclasses import replace

from .consensus import Block, ConsensusVote, Transaction, Validator
from .crypto import CryptoManager, MerkleTree

logger = logging.getLogger(__name__)

EMPTY_MERKLE_ROOT = "empty"

_GENESIS = (
    ("genesis_validator_1", 10000, 40.0, 0.92),
    ("genesis_validator_2", 8000, 35.0, 0.88),
    ("genesis_validator_3", 12000, 45.0, 0.95),
)


def calculate_merkle_root(transactions: Iterable[Transaction]) -> str:
    """Return the Merkle root over transaction hashes, or ``"empty"`` if there are none."""
    hashes = [tx.hash.encode() for tx in transactions]
    if not hashes:
        return EMPTY_MERKLE_ROOT
    return MerkleTree.from_data(hashes).root


def compute_block_hash(block: Block) -> str:
    """Hash the compact JSON form of ``block`` with its hash and signature blanked."""
    unsigned = replace(block, hash="", signature="")
    payload = json.dumps(unsigned.to_dict(), separators=(",", ":"), ensure_ascii=False)
    return CryptoManager.hash_sha256(payload.encode())


def genesis_validators() -> list[Validator]:
    """Return the validators the network starts with."""
    return [
        Validator(address=address, stake=stake, beta_angle=beta, efficiency=efficiency)
        for address, stake, beta, efficiency in _GENESIS
    ]


class ValidatorRegistry:
    """The set of validators known to the consensus engine, keyed by address."""

    def __init__(self, validators: Iterable[Validator] = ()) -> None:
        self._validators: dict[str, Validator] = {}
        for validator in validators:
            self.add_validator(validator)

    def __len__(self) -> int:
        return len(self._validators)

    def __contains__(self, address: object) -> bool:
        return address in self._validators

    def add_validator(self, validator: Validator) -> None:
        """Add or replace a validator; raise ValueError if it fails self-lock validation."""
        if not validator.validate_self_lock():
            raise ValueError("Validator fails self-lock validation")
        self._validators[validator.address] = validator

    def update_validator(self, validator: Validator) -> None:
        """Replace a validator's record; raise ValueError if it fails self-lock validation."""
        self.add_validator(validator)

    def remove_validator(self, address: str) -> None:
        """Remove the validator with ``address`` if present."""
        self._validators.pop(address, None)

    def get_validator(self, address: str) -> Validator | None:
        """Return the validator with ``address``, if any."""
        return self._validators.get(address)

    def get_validators(self) -> list[Validator]:
        """Return all known validators."""
        return list(self._validators.values())

    def is_validator_active(self, address: str) -> bool:
        """Return whether the validator exists and is active."""
        validator = self._validators.get(address)
        return validator is not None and validator.is_active

    def get_validator_count(self) -> int:
        """Return the number of known validators."""
        return len(self._validators)

    def get_active_validator_count(self) -> int:
        """Return the number of active validators."""
        return sum(1 for v in self._validators.values() if v.is_active)

    def initialize_genesis_validators(self) -> None:
        """Add the genesis validators."""
        for validator in genesis_validators():
            self.add_validator(validator)
        logger.info("Initialised %d genesis validators", len(_GENESIS))

    def select_block_proposer(self, network_load: float) -> Validator:
        """Return the eligible validator with the highest torque; raise ValueError if none."""
        best: Validator | None = None
        best_torque = 0.0
        for validator in self._validators.values():
            if not validator.can_vote(network_load):
                continue
            torque = validator.calculate_torque(network_load)
            if torque > best_torque:
                best, best_torque = validator, torque
        if best is None:
            raise ValueError("No eligible validators found")
        return best

    def calculate_voting_torque(self, network_load: float) -> float:
        """Return the summed torque of every validator able to vote."""
        return sum(
            v.calculate_torque(network_load)
            for v in self._validators.values()
            if v.can_vote(network_load)
        )

    def process_vote(self, vote: ConsensusVote, network_load: float) -> Validator:
        """Accept a vote and return its validator; raise if unknown or lacking torque."""
        validator = self._validators.get(vote.validator_address)
        if validator is None:
            raise KeyError("Unknown validator")
        if not validator.can_vote(network_load):
            raise ValueError("Validator cannot vote with current torque")
        return validator

    def total_stake(self) -> int:
        """Return the combined stake of all validators."""
        return sum(v.stake for v in self._validators.values())