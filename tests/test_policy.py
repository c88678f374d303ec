"""Tests for policy.py and the org policy store."""

import sys, os
sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

import pytest

from errors import ValidationError
from policy import DisputeConfig
from server.directory import PolicyStore


def test_defaults():
    config = DisputeConfig()
    assert config.dispute_mediation_hours == 24
    assert config.dispute_response_hours == 48
    assert config.dispute_appeal_hours == 48
    assert config.dispute_cooldown_days == 7
    assert config.appeal_seconds == 48 * 3600
    assert config.cooldown_seconds == 7 * 86400


def test_partial_override_keeps_other_defaults():
    config = DisputeConfig.from_dict({"dispute_appeal_hours": 12, "xp_dispute_stake": 50})
    assert config.dispute_appeal_hours == 12
    assert config.dispute_response_hours == 48


def test_none_overrides_mean_defaults():
    assert DisputeConfig.from_dict(None) == DisputeConfig()
    assert DisputeConfig.from_dict({"dispute_appeal_hours": None}) == DisputeConfig()


@pytest.mark.parametrize("value", ["12", True, -1, [1]])
def test_bad_override_rejected(value):
    with pytest.raises(ValidationError):
        DisputeConfig.from_dict({"dispute_appeal_hours": value})


def test_to_dict_round_trips():
    config = DisputeConfig(dispute_cooldown_days=3)
    assert DisputeConfig.from_dict(config.to_dict()) == config


def test_policy_store_per_org():
    policy = PolicyStore(":memory:")
    assert policy.get_config() == DisputeConfig()
    policy.set_config({"dispute_cooldown_days": 1}, org="acme")
    assert policy.get_config("acme").dispute_cooldown_days == 1
    assert policy.get_config().dispute_cooldown_days == 7
    policy.set_config({"dispute_cooldown_days": 2}, org="acme")
    assert policy.get_config("acme").dispute_cooldown_days == 2
    policy.close()


def test_policy_store_rejects_bad_values():
    policy = PolicyStore(":memory:")
    with pytest.raises(ValidationError):
        policy.set_config({"dispute_mediation_hours": -5})
    assert policy.get_config() == DisputeConfig()
    policy.close()
