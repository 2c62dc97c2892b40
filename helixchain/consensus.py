"""Consensus data types: validators, transactions, blocks and round state."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)

MIN_VOTING_TORQUE = 8.0
_FRICTION_ANGLE_DEGREES = 8.5
_FRICTION_COEFFICIENT = 0.15


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _format_timestamp(moment: datetime) -> str:
    """Render a UTC RFC 3339 timestamp with 0, 3 or 6 fractional digits."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    moment = moment.astimezone(timezone.utc)
    text = moment.strftime("%Y-%m-%dT%H:%M:%S")
    micro = moment.microsecond
    if micro == 0:
        fraction = ""
    elif micro % 1000 == 0:
        fraction = f".{micro // 1000:03d}"
    else:
        fraction = f".{micro:06d}"
    return f"{text}{fraction}Z"


def _parse_timestamp(text: str) -> datetime:
    moment = datetime.fromisoformat(text)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


class VoteType(Enum):
    """The stage of a consensus vote."""

    PREVOTE = "Prevote"
    PRECOMMIT = "Precommit"
    COMMIT = "Commit"


@dataclass
class Validator:
    """A staking validator whose voting power is expressed as torque."""

    address: str
    stake: int
    beta_angle: float
    efficiency: float
    last_active: datetime = field(default_factory=_utcnow)
    is_active: bool = True

    def calculate_torque(self, network_load: float) -> float:
        """Return the validator's torque under ``network_load``; zero if load is not positive."""
        if network_load <= 0.0:
            return 0.0
        beta = math.radians(self.beta_angle)
        return self.stake * math.sin(beta) / network_load * self.efficiency

    def can_vote(self, network_load: float) -> bool:
        """Return whether the validator is active and has enough torque to vote."""
        return self.is_active and self.calculate_torque(network_load) >= MIN_VOTING_TORQUE

    def validate_self_lock(self) -> bool:
        """Check tan(friction angle) <= mu * sec(beta)."""
        friction = math.radians(_FRICTION_ANGLE_DEGREES)
        return math.tan(friction) <= _FRICTION_COEFFICIENT / math.cos(
            math.radians(self.beta_angle)
        )


@dataclass(kw_only=True)
class Transaction:
    """A transfer waiting for or included in a block."""

    hash: str
    sender: str
    recipient: str
    amount: int
    gas_price: int
    gas_limit: int
    nonce: int
    data: bytes = b""
    signature: str = ""
    timestamp: datetime = field(default_factory=_utcnow)

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-ready mapping in canonical field order."""
        return {
            "hash": self.hash,
            "from": self.sender,
            "to": self.recipient,
            "amount": self.amount,
            "gas_price": self.gas_price,
            "gas_limit": self.gas_limit,
            "nonce": self.nonce,
            "data": list(self.data),
            "signature": self.signature,
            "timestamp": _format_timestamp(self.timestamp),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Transaction:
        """Build a transaction from :meth:`to_dict` output; raise ValueError if malformed."""
        try:
            return cls(
                hash=str(data["hash"]),
                sender=str(data["from"]),
                recipient=str(data["to"]),
                amount=int(data["amount"]),
                gas_price=int(data["gas_price"]),
                gas_limit=int(data["gas_limit"]),
                nonce=int(data["nonce"]),
                data=bytes(data["data"]),
                signature=str(data["signature"]),
                timestamp=_parse_timestamp(data["timestamp"]),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise ValueError(f"invalid transaction: {exc}") from exc


@dataclass(kw_only=True)
class Block:
    """A block proposed by a validator."""

    hash: str
    previous_hash: str
    height: int
    timestamp: datetime = field(default_factory=_utcnow)
    transactions: list[Transaction] = field(default_factory=list)
    validator: str
    signature: str = ""
    merkle_root: str
    torque: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-ready mapping in canonical field order."""
        return {
            "hash": self.hash,
            "previous_hash": self.previous_hash,
            "height": self.height,
            "timestamp": _format_timestamp(self.timestamp),
            "transactions": [tx.to_dict() for tx in self.transactions],
            "validator": self.validator,
            "signature": self.signature,
            "merkle_root": self.merkle_root,
            "torque": float(self.torque),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Block:
        """Build a block from :meth:`to_dict` output; raise ValueError if malformed."""
        try:
            return cls(
                hash=str(data["hash"]),
                previous_hash=str(data["previous_hash"]),
                height=int(data["height"]),
                timestamp=_parse_timestamp(data["timestamp"]),
                transactions=[Transaction.from_dict(tx) for tx in data["transactions"]],
                validator=str(data["validator"]),
                signature=str(data["signature"]),
                merkle_root=str(data["merkle_root"]),
                torque=float(data["torque"]),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise ValueError(f"invalid block: {exc}") from exc


@dataclass
class NetworkStatus:
    """A summary of the validator set and chain height."""

    network_load: float
    total_stake: int
    active_validators: int
    total_validators: int
    current_height: int


@dataclass
class ConsensusVote:
    """A validator's vote on a block."""

    validator_address: str
    block_hash: str
    vote_type: VoteType
    signature: str
    timestamp: datetime = field(default_factory=_utcnow)


@dataclass
class ConsensusState:
    """The height, round, mempool and validator set of the consensus process."""

    current_height: int = 0
    last_block_hash: str = "genesis"
    pending_transactions: list[Transaction] = field(default_factory=list)
    active_validators: dict[str, Validator] = field(default_factory=dict)
    current_round: int = 0
    running: bool = False

    def start(self) -> None:
        """Begin the consensus process at the current height."""
        logger.info("Starting consensus state at height %d", self.current_height)
        self.running = True

    def stop(self) -> None:
        """Stop the consensus process and drop pending transactions."""
        logger.info("Stopping consensus state at height %d", self.current_height)
        self.pending_transactions.clear()
        self.running = False

    def add_transaction(self, transaction: Transaction) -> None:
        """Queue a transaction."""
        self.pending_transactions.append(transaction)

    def remove_transaction(self, tx_hash: str) -> Transaction | None:
        """Remove and return the first pending transaction with ``tx_hash``, if any."""
        for position, tx in enumerate(self.pending_transactions):
            if tx.hash == tx_hash:
                return self.pending_transactions.pop(position)
        return None

    def update_height(self, height: int, block_hash: str) -> None:
        """Move to a new height and reset the round."""
        self.current_height = height
        self.last_block_hash = block_hash
        self.current_round = 0

    def add_validator(self, validator: Validator) -> None:
        """Add or replace a validator by address."""
        self.active_validators[validator.address] = validator

    def remove_validator(self, address: str) -> None:
        """Remove a validator if present."""
        self.active_validators.pop(address, None)

    def get_validator(self, address: str) -> Validator | None:
        """Return the validator with ``address``, if any."""
        return self.active_validators.get(address)

    def increment_round(self) -> None:
        """Advance to the next round at the current height."""
        self.current_round += 1