from unittest.mock import MagicMock

import pytest

from pool_discovery.celery.celery_app import celery_app
from pool_discovery.scheduler import dispatcher


@pytest.fixture
def locker(monkeypatch):
    mock = MagicMock()
    mock.lock.return_value = MagicMock(name="lock")
    monkeypatch.setattr(dispatcher, "LOCKER", mock)
    return mock


@pytest.fixture
def discovery(monkeypatch):
    report = MagicMock(success=True, window=(100, 200))
    report.total.side_effect = lambda counter: {"pools_added": 4, "events_scanned": 9}[counter]
    mock = MagicMock(return_value=report)
    monkeypatch.setattr(dispatcher, "run_discovery", mock)
    return mock


def test_discover_pools_runs_under_lock(locker, discovery):
    result = dispatcher.discover_pools.run(days_back=2, min_liquidity_usd=20_000)

    assert result == {"status": "ok", "window": [100, 200], "pools_added": 4, "events_scanned": 9}
    config = discovery.call_args.args[0]
    assert config.days_back == 2
    assert config.min_liquidity_usd == 20_000
    assert discovery.call_args.kwargs["install_signals"] is False
    locker.unlock.assert_called_once_with(locker.lock.return_value)


def test_discover_pools_skips_when_lock_is_held(locker, discovery):
    locker.lock.return_value = False

    assert dispatcher.discover_pools.run() == {"status": "skipped"}
    discovery.assert_not_called()


def test_lock_released_when_discovery_fails(locker, discovery):
    discovery.side_effect = RuntimeError("rpc down")

    with pytest.raises(RuntimeError):
        dispatcher.discover_pools.run()
    locker.unlock.assert_called_once()


def test_beat_schedule_targets_discovery_queue():
    entry = celery_app.conf.beat_schedule["periodic-pool-discovery"]

    assert entry["task"] == "discover_pools"
    assert entry["options"] == {"queue": "discovery"}
