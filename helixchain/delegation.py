"""Validator registration, stake delegation, reward distribution and slashing."""

from __future__ import annotations

import copy
import os
import threading
import time
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum

from .crypto import keccak256

MAX_COMMISSION_RATE = 10_000  # basis points: 10000 == 100%
_ASSUMED_NETWORK_STAKE = 100_000_000
_BASE_EPOCH_REWARD = 1_000_000
_NETWORK_PERFORMANCE = 0.95
_INFLATION_RATE = 0.05
_DEACTIVATION_THRESHOLD = 0.1
_REACTIVATION_THRESHOLD = 0.5
_SLASH_FACTOR = 0.5


class DelegationError(Exception):
    """Base class for delegation failures."""

    message = "Delegation failed"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.message)


class ValidatorNotFoundError(DelegationError):
    message = "Validator not found"


class DelegationNotFoundError(DelegationError):
    message = "Delegation not found"


class ValidatorInactiveError(DelegationError):
    message = "Validator is inactive"


class InsufficientStakeError(DelegationError):
    message = "Insufficient stake"


class ExceedsMaxStakeError(DelegationError):
    message = "Exceeds maximum stake"


class InvalidCommissionRateError(DelegationError):
    message = "Invalid commission rate"


class AlreadyUndelegatedError(DelegationError):
    message = "Already undelegated"


class SlashingReason(Enum):
    """Why a validator was slashed."""

    DOUBLE_SIGNING = "DoubleSigning"
    DOWNTIME = "Downtime"
    INVALID_BLOCK = "InvalidBlock"
    INVALID_VOTE = "InvalidVote"
    OTHER = "Other"


def _now() -> int:
    return int(time.time())


@dataclass
class Validator:
    """A validator that accepts delegated stake."""

    address: str
    name: str
    description: str
    commission_rate: int
    min_stake: int
    max_stake: int
    total_stake: int = 0
    delegators: set[str] = field(default_factory=set)
    active: bool = True
    created_at: int = field(default_factory=_now)
    last_reward_at: int = 0
    performance_score: float = 1.0


@dataclass
class Delegation:
    """Stake placed by a delegator with a validator."""

    validator_address: str
    delegator_address: str
    amount: int
    start_time: int = field(default_factory=_now)
    end_time: int | None = None
    rewards_claimed: int = 0
    last_claim_time: int = 0


@dataclass
class Reward:
    """A reward paid to a delegator for one epoch."""

    validator_address: str
    delegator_address: str
    amount: int
    timestamp: int
    epoch: int
    transaction_hash: str


@dataclass
class SlashingEvent:
    """A record of a validator being penalised."""

    validator_address: str
    reason: SlashingReason
    amount: int
    timestamp: int
    evidence: str
    reason_detail: str = ""


def _delegation_key(validator_address: str, delegator_address: str) -> str:
    return f"{validator_address}:{delegator_address}"


def _transaction_hash() -> str:
    payload = os.urandom(32) + str(_now()).encode()
    return f"0x{keccak256(payload).hex()}"


def _epoch_rewards(epoch: int) -> int:
    return int(_BASE_EPOCH_REWARD * _NETWORK_PERFORMANCE * _INFLATION_RATE)


def _check_commission(rate: int) -> None:
    if rate > MAX_COMMISSION_RATE:
        raise InvalidCommissionRateError()


class DelegationManager:
    """Tracks validators, delegations, rewards and slashing events."""

    def __init__(self, epoch_duration: timedelta = timedelta(hours=24)) -> None:
        self.epoch_duration = epoch_duration
        self.current_epoch = 0
        self._validators: dict[str, Validator] = {}
        self._delegations: dict[str, Delegation] = {}
        self._rewards: list[Reward] = []
        self._slashing_events: list[SlashingEvent] = []
        self._lock = threading.RLock()

    def _validator(self, address: str) -> Validator:
        try:
            return self._validators[address]
        except KeyError:
            raise ValidatorNotFoundError() from None

    def register_validator(
        self,
        address: str,
        name: str,
        description: str,
        commission_rate: int,
        min_stake: int,
        max_stake: int,
    ) -> Validator:
        """Register (or replace) a validator; commission is in basis points."""
        _check_commission(commission_rate)
        validator = Validator(
            address=address,
            name=name,
            description=description,
            commission_rate=commission_rate,
            min_stake=min_stake,
            max_stake=max_stake,
        )
        with self._lock:
            self._validators[address] = validator
            return copy.deepcopy(validator)

    def delegate(
        self, validator_address: str, delegator_address: str, amount: int
    ) -> Delegation:
        """Delegate ``amount`` to a validator."""
        with self._lock:
            validator = self._validator(validator_address)
            if not validator.active:
                raise ValidatorInactiveError()
            if amount < validator.min_stake:
                raise InsufficientStakeError()
            if validator.total_stake + amount > validator.max_stake:
                raise ExceedsMaxStakeError()

            delegation = Delegation(
                validator_address=validator_address,
                delegator_address=delegator_address,
                amount=amount,
            )
            self._delegations[_delegation_key(validator_address, delegator_address)] = delegation
            validator.total_stake += amount
            validator.delegators.add(delegator_address)
            return copy.deepcopy(delegation)

    def undelegate(self, validator_address: str, delegator_address: str) -> Delegation:
        """End a delegation and withdraw its stake from the validator."""
        with self._lock:
            delegation = self._delegations.get(
                _delegation_key(validator_address, delegator_address)
            )
            if delegation is None:
                raise DelegationNotFoundError()
            if delegation.end_time is not None:
                raise AlreadyUndelegatedError()
            delegation.end_time = _now()

            validator = self._validator(validator_address)
            validator.total_stake -= delegation.amount
            validator.delegators.discard(delegator_address)
            return copy.deepcopy(delegation)

    def _validator_rewards(self, validator: Validator, total_rewards: int) -> dict[str, int]:
        rewards: dict[str, int] = {}
        if validator.total_stake == 0:
            return rewards

        share = (validator.total_stake / _ASSUMED_NETWORK_STAKE) * total_rewards
        commission = (share * validator.commission_rate) / MAX_COMMISSION_RATE
        delegator_share = share - commission

        if validator.address in validator.delegators:
            rewards[validator.address] = int(commission)

        for delegator in validator.delegators:
            delegation = self._delegations.get(_delegation_key(validator.address, delegator))
            if delegation is None or delegation.end_time is not None:
                continue
            rewards[delegator] = int(
                (delegation.amount / validator.total_stake) * delegator_share
            )
        return rewards

    def distribute_rewards(self, epoch: int) -> list[Reward]:
        """Pay this epoch's rewards to every delegator of every active validator."""
        total_rewards = _epoch_rewards(epoch)
        paid: list[Reward] = []
        with self._lock:
            for validator in self._validators.values():
                if not validator.active or validator.total_stake == 0:
                    continue
                for delegator, amount in self._validator_rewards(validator, total_rewards).items():
                    reward = Reward(
                        validator_address=validator.address,
                        delegator_address=delegator,
                        amount=amount,
                        timestamp=_now(),
                        epoch=epoch,
                        transaction_hash=_transaction_hash(),
                    )
                    delegation = self._delegations.get(
                        _delegation_key(validator.address, delegator)
                    )
                    if delegation is not None:
                        delegation.rewards_claimed += amount
                        delegation.last_claim_time = reward.timestamp
                    self._rewards.append(reward)
                    paid.append(copy.copy(reward))
        return paid

    def slash_validator(
        self,
        validator_address: str,
        reason: SlashingReason | str,
        amount: int,
        evidence: str,
    ) -> SlashingEvent:
        """Halve a validator's performance score and record the event.

        A plain string reason is recorded as ``SlashingReason.OTHER`` with that text.
        """
        detail = ""
        if not isinstance(reason, SlashingReason):
            reason, detail = SlashingReason.OTHER, str(reason)
        with self._lock:
            validator = self._validator(validator_address)
            if not validator.active:
                raise ValidatorInactiveError()
            event = SlashingEvent(
                validator_address=validator_address,
                reason=reason,
                amount=amount,
                timestamp=_now(),
                evidence=evidence,
                reason_detail=detail,
            )
            validator.performance_score *= _SLASH_FACTOR
            if validator.performance_score < _DEACTIVATION_THRESHOLD:
                validator.active = False
            self._slashing_events.append(event)
            return copy.copy(event)

    def get_validator_info(self, address: str) -> Validator:
        """Return a snapshot of the validator with ``address``."""
        with self._lock:
            return copy.deepcopy(self._validator(address))

    def get_delegation_info(self, validator_address: str, delegator_address: str) -> Delegation:
        """Return a snapshot of a delegation."""
        with self._lock:
            delegation = self._delegations.get(
                _delegation_key(validator_address, delegator_address)
            )
            if delegation is None:
                raise DelegationNotFoundError()
            return copy.deepcopy(delegation)

    def get_total_network_stake(self) -> int:
        """Return the stake delegated across all validators."""
        with self._lock:
            return sum(v.total_stake for v in self._validators.values())

    def get_all_validators(self) -> list[Validator]:
        """Return snapshots of every validator."""
        with self._lock:
            return copy.deepcopy(list(self._validators.values()))

    def get_active_validators(self) -> list[Validator]:
        """Return snapshots of the active validators."""
        with self._lock:
            return copy.deepcopy([v for v in self._validators.values() if v.active])

    def get_delegation_rewards(
        self, validator_address: str, delegator_address: str
    ) -> list[Reward]:
        """Return every reward paid for one delegation."""
        with self._lock:
            return [
                copy.copy(r)
                for r in self._rewards
                if r.validator_address == validator_address
                and r.delegator_address == delegator_address
            ]

    def get_validator_slashing_history(self, validator_address: str) -> list[SlashingEvent]:
        """Return every slashing event of a validator, oldest first."""
        with self._lock:
            return [
                copy.copy(e)
                for e in self._slashing_events
                if e.validator_address == validator_address
            ]

    def update_validator_performance(
        self, validator_address: str, performance_delta: float
    ) -> None:
        """Adjust a performance score within 0..1, deactivating if it falls below 0.1."""
        with self._lock:
            validator = self._validator(validator_address)
            validator.performance_score = min(
                max(validator.performance_score + performance_delta, 0.0), 1.0
            )
            if validator.performance_score < _DEACTIVATION_THRESHOLD:
                validator.active = False

    def reactivate_validator(self, validator_address: str) -> None:
        """Reactivate a validator whose performance score is at least 0.5."""
        with self._lock:
            validator = self._validator(validator_address)
            if validator.performance_score < _REACTIVATION_THRESHOLD:
                raise ValidatorInactiveError()
            validator.active = True

    def update_commission_rate(self, validator_address: str, new_rate: int) -> None:
        """Change a validator's commission, in basis points."""
        _check_commission(new_rate)
        with self._lock:
            self._validator(validator_address).commission_rate = new_rate

    def get_epoch_statistics(self, epoch: int) -> dict[str, int]:
        """Summarise the rewards paid in ``epoch``."""
        with self._lock:
            rewards = [r for r in self._rewards if r.epoch == epoch]
        per_validator: defaultdict[str, int] = defaultdict(int)
        for reward in rewards:
            per_validator[reward.validator_address] += 1
        return {
            "total_rewards": sum(r.amount for r in rewards),
            "validator_count": len(per_validator),
            "delegator_count": len({r.delegator_address for r in rewards}),
            "transaction_count": len(rewards),
        }