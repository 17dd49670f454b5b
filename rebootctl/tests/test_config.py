import pytest

from rebootctl.config import Config, RebootPolicy
from rebootctl.modules.errors import ValidationError


def test_policy_defaults():
    policy = RebootPolicy()
    assert policy.ready_attempts == 30
    assert policy.access_attempts == 12
    assert policy.retry_interval == 10
    assert policy.drain_retries == 3
    assert policy.parallel_defaults == {"master": 1, "infra": 1, "worker": 2, "other": 1}


def test_policy_from_config(monkeypatch):
    monkeypatch.setattr(Config, "WORKER_PARALLEL_DEFAULT", 4)
    monkeypatch.setattr(Config, "DRAIN_RETRY_COUNT", 5)
    policy = RebootPolicy.from_config()
    assert policy.parallel_defaults["worker"] == 4
    assert policy.drain_retries == 5


def test_non_positive_settings_rejected(monkeypatch):
    monkeypatch.setattr(Config, "RETRY_INTERVAL", 0)
    with pytest.raises(ValidationError, match="RETRY_INTERVAL"):
        RebootPolicy.from_config()


@pytest.mark.parametrize("seconds,attempts", [(300, 30), (600, 60), (25, 2), (5, 1)])
def test_ready_timeout_override(seconds, attempts):
    policy = RebootPolicy().with_ready_timeout(seconds)
    assert policy.ready_attempts == attempts
    assert policy.access_attempts == 12


def test_ready_timeout_must_be_positive():
    with pytest.raises(ValidationError):
        RebootPolicy().with_ready_timeout(0)
