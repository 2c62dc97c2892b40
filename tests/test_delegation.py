import pytest

from helixchain.delegation import (
    AlreadyUndelegatedError,
    DelegationError,
    DelegationManager,
    DelegationNotFoundError,
    ExceedsMaxStakeError,
    InsufficientStakeError,
    InvalidCommissionRateError,
    SlashingReason,
    ValidatorInactiveError,
    ValidatorNotFoundError,
)


@pytest.fixture
def manager():
    mgr = DelegationManager()
    mgr.register_validator("val1", "Validator One", "first", 1000, 100, 100_000_000)
    return mgr


def test_register_validator_defaults(manager):
    info = manager.get_validator_info("val1")
    assert info.name == "Validator One"
    assert info.total_stake == 0
    assert info.active is True
    assert info.performance_score == 1.0
    assert info.delegators == set()


def test_register_rejects_commission_above_maximum():
    mgr = DelegationManager()
    with pytest.raises(InvalidCommissionRateError):
        mgr.register_validator("v", "n", "d", 10001, 1, 10)
    assert mgr.get_all_validators() == []


def test_error_message_and_hierarchy():
    with pytest.raises(DelegationError, match="Validator not found"):
        DelegationManager().get_validator_info("missing")


def test_delegate_updates_stake(manager):
    delegation = manager.delegate("val1", "alice", 500)
    assert delegation.amount == 500
    assert delegation.end_time is None
    info = manager.get_validator_info("val1")
    assert info.total_stake == 500
    assert "alice" in info.delegators
    assert manager.get_total_network_stake() == 500


def test_delegate_errors(manager):
    with pytest.raises(ValidatorNotFoundError):
        manager.delegate("nobody", "alice", 500)
    with pytest.raises(InsufficientStakeError):
        manager.delegate("val1", "alice", 99)
    with pytest.raises(ExceedsMaxStakeError):
        manager.delegate("val1", "alice", 100_000_001)


def test_undelegate_and_twice(manager):
    manager.delegate("val1", "alice", 500)
    ended = manager.undelegate("val1", "alice")
    assert ended.end_time is not None
    info = manager.get_validator_info("val1")
    assert info.total_stake == 0
    assert "alice" not in info.delegators
    with pytest.raises(AlreadyUndelegatedError):
        manager.undelegate("val1", "alice")


def test_undelegate_unknown(manager):
    with pytest.raises(DelegationNotFoundError):
        manager.undelegate("val1", "bob")
    with pytest.raises(DelegationNotFoundError):
        manager.get_delegation_info("val1", "bob")


def test_rewards_are_proportional_to_stake():
    mgr = DelegationManager()
    mgr.register_validator("v", "n", "d", 0, 1, 100_000_000)
    mgr.delegate("v", "a", 25_000_000)
    mgr.delegate("v", "b", 75_000_000)
    rewards = {r.delegator_address: r.amount for r in mgr.distribute_rewards(1)}
    assert rewards["a"] * 3 == rewards["b"]
    assert rewards["a"] + rewards["b"] == 47500


def test_full_commission_leaves_nothing_for_delegators():
    mgr = DelegationManager()
    mgr.register_validator("v", "n", "d", 10000, 1, 100_000_000)
    mgr.delegate("v", "a", 1_000_000)
    rewards = mgr.distribute_rewards(1)
    assert [r.amount for r in rewards] == [0]


def test_rewards_recorded_on_delegation(manager):
    manager.delegate("val1", "alice", 10_000_000)
    rewards = manager.distribute_rewards(7)
    assert len(rewards) == 1
    reward = rewards[0]
    assert reward.epoch == 7
    assert reward.transaction_hash.startswith("0x")
    assert len(reward.transaction_hash) == 66
    delegation = manager.get_delegation_info("val1", "alice")
    assert delegation.rewards_claimed == reward.amount
    assert delegation.last_claim_time == reward.timestamp
    history = manager.get_delegation_rewards("val1", "alice")
    assert [r.transaction_hash for r in history] == [reward.transaction_hash]


def test_epoch_statistics(manager):
    manager.delegate("val1", "alice", 10_000_000)
    manager.delegate("val1", "bob", 5_000_000)
    rewards = manager.distribute_rewards(3)
    stats = manager.get_epoch_statistics(3)
    assert stats["transaction_count"] == len(rewards) == 2
    assert stats["validator_count"] == 1
    assert stats["delegator_count"] == 2
    assert stats["total_rewards"] == sum(r.amount for r in rewards)
    assert manager.get_epoch_statistics(4)["transaction_count"] == 0


def test_no_rewards_for_validator_without_stake(manager):
    assert manager.distribute_rewards(1) == []


def test_slashing_deactivates_and_blocks(manager):
    for _ in range(4):
        manager.slash_validator("val1", SlashingReason.DOWNTIME, 10, "evidence")
    info = manager.get_validator_info("val1")
    assert info.performance_score == pytest.approx(0.0625)
    assert info.active is False
    with pytest.raises(ValidatorInactiveError):
        manager.slash_validator("val1", SlashingReason.DOWNTIME, 10, "evidence")
    with pytest.raises(ValidatorInactiveError):
        manager.delegate("val1", "alice", 500)
    assert len(manager.get_validator_slashing_history("val1")) == 4
    assert manager.get_active_validators() == []


def test_slash_with_custom_reason(manager):
    event = manager.slash_validator("val1", "late votes", 5, "log")
    assert event.reason is SlashingReason.OTHER
    assert event.reason_detail == "late votes"
    assert manager.get_validator_info("val1").performance_score == 0.5


def test_reactivation_requires_performance(manager):
    manager.update_validator_performance("val1", -0.95)
    assert manager.get_validator_info("val1").active is False
    with pytest.raises(ValidatorInactiveError):
        manager.reactivate_validator("val1")
    manager.update_validator_performance("val1", 5.0)
    assert manager.get_validator_info("val1").performance_score == 1.0
    manager.reactivate_validator("val1")
    assert manager.get_validator_info("val1").active is True


def test_update_commission_rate(manager):
    manager.update_commission_rate("val1", 2500)
    assert manager.get_validator_info("val1").commission_rate == 2500
    with pytest.raises(InvalidCommissionRateError):
        manager.update_commission_rate("val1", 10001)
    with pytest.raises(ValidatorNotFoundError):
        manager.update_commission_rate("ghost", 10)


def test_snapshots_do_not_alias_state(manager):
    info = manager.get_validator_info("val1")
    info.delegators.add("mallory")
    info.total_stake = 999
    fresh = manager.get_validator_info("val1")
    assert fresh.delegators == set()
    assert fresh.total_stake == 0