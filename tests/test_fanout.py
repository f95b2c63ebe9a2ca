"""Tests for concurrent fan-out deployment."""
import threading

import pytest

from labdeploy.core.actions import build_action
from labdeploy.core.fanout import FanoutDeployer
from labdeploy.exceptions import ValidationError
from labdeploy.models import Host, RunStatus, TaskOutcome
from labdeploy.services.topology_service import TopologyRegistry


@pytest.fixture
def run_image():
    return build_action("run-container", image="example/x:1")


def test_one_failure_does_not_affect_others(transport, executor, plain_hosts, run_image):
    transport.fail("10.0.1.2", code=125)

    summary = FanoutDeployer(executor, max_workers=3, timeout=5).deploy(plain_hosts, run_image)

    assert (summary.total, summary.succeeded, summary.failed) == (3, 2, 1)
    assert summary.status == RunStatus.DEGRADED
    assert summary.outcome_for("h1").outcome == TaskOutcome.SUCCESS
    assert summary.outcome_for("h3").outcome == TaskOutcome.SUCCESS
    assert summary.outcome_for("h2").reason == "command-failed (exit 125)"
    assert len(transport.commands_for("10.0.1.1")) == 1
    assert len(transport.commands_for("10.0.1.3")) == 1


def test_every_host_appears_once_in_input_order(transport, executor, run_image):
    hosts = [Host(id=f"n{i}", address=f"10.0.2.{i}") for i in range(10)]
    transport.timeout("10.0.2.4")
    transport.unreachable("10.0.2.7")

    summary = FanoutDeployer(executor, max_workers=3, timeout=5).deploy(hosts, run_image)

    assert summary.total == 10
    assert [t.host_id for t in summary.tasks] == [h.id for h in hosts]
    assert summary.outcome_for("n4").reason == "timeout"
    assert summary.outcome_for("n7").reason == "unreachable"
    assert summary.exit_code == 1


def test_all_success(executor, plain_hosts, run_image):
    summary = FanoutDeployer(executor, timeout=5).deploy(plain_hosts, run_image)
    assert summary.status == RunStatus.SUCCESS
    assert summary.exit_code == 0
    assert all(t.attempt == 1 for t in summary.tasks)


def test_empty_host_list(executor, run_image):
    summary = FanoutDeployer(executor, timeout=5).deploy([], run_image)
    assert summary.total == 0
    assert summary.exit_code == 0


def test_duplicate_hosts_rejected_before_running(transport, executor, run_image):
    hosts = [Host(id="a", address="10.0.3.1"), Host(id="a", address="10.0.3.2")]

    with pytest.raises(ValidationError):
        FanoutDeployer(executor, timeout=5).deploy(hosts, run_image)

    assert transport.calls == []


def test_parallelism_is_bounded(transport, executor, run_image):
    hosts = [Host(id=f"n{i}", address=f"10.0.4.{i}") for i in range(6)]
    active = []
    peak = []
    lock = threading.Lock()
    original = transport.respond

    def tracking_respond(address, command, timeout):
        with lock:
            active.append(address)
            peak.append(len(active))
        try:
            transport.delay = 0.02
            return original(address, command, timeout)
        finally:
            with lock:
                active.remove(address)

    transport.respond = tracking_respond

    summary = FanoutDeployer(executor, max_workers=2, timeout=5).deploy(hosts, run_image)

    assert summary.succeeded == 6
    assert max(peak) <= 2


def test_retries_only_transport_failures(transport, executor, plain_hosts, run_image):
    transport.timeout("10.0.1.1")
    transport.fail("10.0.1.2", code=1)

    summary = FanoutDeployer(executor, timeout=5, retries=2).deploy(plain_hosts, run_image)

    assert summary.outcome_for("h1").attempt == 3
    assert summary.outcome_for("h1").outcome == TaskOutcome.FAILED
    assert summary.outcome_for("h2").attempt == 1
    assert len(transport.commands_for("10.0.1.1")) == 3
    assert len(transport.commands_for("10.0.1.2")) == 1


def test_retry_can_recover(transport, executor, run_image):
    host = Host(id="flaky", address="10.0.5.1")
    attempts = []

    def flaky(address, command):
        attempts.append(address)
        if len(attempts) == 1:
            raise TimeoutError("slow")
        from labdeploy.models import ExecResult

        return ExecResult(returncode=0, host=address)

    transport.rules.append(("10.0.5.1", None, flaky))

    summary = FanoutDeployer(executor, timeout=5, retries=1).deploy([host], run_image)

    assert summary.outcome_for("flaky").outcome == TaskOutcome.SUCCESS
    assert summary.outcome_for("flaky").attempt == 2


def test_reachability_recorded(transport, executor, plain_hosts, run_image):
    registry = TopologyRegistry(plain_hosts)
    transport.unreachable("10.0.1.1")
    transport.fail("10.0.1.2")

    FanoutDeployer(executor, timeout=5, registry=registry).deploy(plain_hosts, run_image)

    assert registry.get("h1").reachable is False
    assert registry.get("h2").reachable is True
    assert registry.get("h3").reachable is True


def test_cancelled_run_skips_unstarted_tasks(transport, executor, plain_hosts, run_image):
    cancel = threading.Event()
    cancel.set()

    summary = FanoutDeployer(executor, timeout=5, cancel_event=cancel).deploy(plain_hosts, run_image)

    assert summary.skipped == 3
    assert {t.reason for t in summary.tasks} == {"cancelled"}
    assert transport.calls == []


def test_cancel_mid_run_lets_in_flight_finish(transport, executor, run_image):
    hosts = [Host(id=f"n{i}", address=f"10.0.6.{i}") for i in range(4)]
    cancel = threading.Event()

    def cancel_after_first(address, command):
        cancel.set()
        from labdeploy.models import ExecResult

        return ExecResult(returncode=0, host=address)

    transport.rules.append(("10.0.6.0", None, cancel_after_first))

    summary = FanoutDeployer(executor, max_workers=1, timeout=5, cancel_event=cancel).deploy(
        hosts, run_image
    )

    assert summary.outcome_for("n0").outcome == TaskOutcome.SUCCESS
    assert summary.skipped == 3
    assert summary.total == 4


def test_interrupt_drains_pool_and_returns_tasks(transport, executor, plain_hosts, run_image):
    def interrupt(address, command):
        raise KeyboardInterrupt

    transport.rules.append(("10.0.1.1", None, interrupt))
    cancel = threading.Event()

    summary = FanoutDeployer(executor, max_workers=1, timeout=5, cancel_event=cancel).deploy(
        plain_hosts, run_image
    )

    assert cancel.is_set()
    assert summary.total == 3
    assert summary.outcome_for("h1").reason == "interrupted"
    assert [summary.outcome_for(h).reason for h in ("h2", "h3")] == ["cancelled", "cancelled"]
    assert transport.commands_for("10.0.1.2") == []


@pytest.mark.parametrize(
    "kwargs", [{"max_workers": 0}, {"retries": -1}, {"timeout": 0}]
)
def test_invalid_settings(executor, kwargs):
    with pytest.raises(ValidationError):
        FanoutDeployer(executor, **kwargs)
