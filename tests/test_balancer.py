"""Tests for load-balancer config rendering and publishing."""
import pytest

from labdeploy.constants import NOTE_NO_BALANCER
from labdeploy.core.balancer import LoadBalancerSynthesizer, load_template
from labdeploy.exceptions import ConfigurationError
from labdeploy.models import Host, HostRole, RunStatus, TaskOutcome
from labdeploy.services.topology_service import TopologyRegistry

BALANCER = "10.0.0.5"


@pytest.fixture
def registry(control_host, worker_hosts, balancer_host):
    return TopologyRegistry([control_host, *worker_hosts, balancer_host])


@pytest.fixture
def synthesizer(executor):
    return LoadBalancerSynthesizer(executor, timeout=5)


def server_lines(text):
    return [line.strip() for line in text.splitlines() if line.strip().startswith("server ")]


def test_render_lists_workers_only(synthesizer, registry):
    text = synthesizer.render(registry)

    assert server_lines(text) == [
        "server w1 10.0.0.11:8080 check",
        "server w2 10.0.0.12:8080 check",
    ]
    assert "bind *:80" in text
    assert "cp1" not in text
    assert "lb1" not in text


def test_render_is_deterministic(synthesizer, registry):
    assert synthesizer.render(registry) == synthesizer.render(registry)


def test_added_worker_appears_once(synthesizer, registry):
    registry.add_host(Host(id="w3", address="10.0.0.13", role=HostRole.WORKER))

    lines = server_lines(synthesizer.render(registry))

    assert lines.count("server w3 10.0.0.13:80 check") == 1
    assert len(lines) == 3


def test_render_without_workers(synthesizer, balancer_host):
    text = synthesizer.render(TopologyRegistry([balancer_host]))
    assert server_lines(text) == []
    assert "no worker hosts registered" in text


def test_custom_frontend_port(executor, registry):
    text = LoadBalancerSynthesizer(executor, frontend_port=8443).render(registry)
    assert "bind *:8443" in text


def test_missing_template(tmp_path):
    with pytest.raises(ConfigurationError):
        load_template(tmp_path / "missing.j2")


def test_custom_template(tmp_path, executor, registry):
    path = tmp_path / "servers.j2"
    path.write_text("{% for s in servers %}{{ s.id }} {% endfor %}")

    text = LoadBalancerSynthesizer(executor, template=load_template(path)).render(registry)

    assert text == "w1 w2 "


def test_configure_publishes_and_reloads(transport, synthesizer, registry):
    summary = synthesizer.configure(registry)

    assert summary.status == RunStatus.SUCCESS
    assert summary.outcome_for("lb1").outcome == TaskOutcome.SUCCESS
    write, reload = transport.commands_for(BALANCER)
    assert write.argv == ("sudo", "-n", "tee", "/etc/haproxy/haproxy.cfg")
    assert write.stdin == synthesizer.render(registry)
    assert reload.argv == ("sudo", "-n", "systemctl", "reload", "haproxy")


def test_publish_is_idempotent(transport, synthesizer, registry):
    synthesizer.configure(registry)
    synthesizer.configure(registry)

    writes = [c.stdin for c in transport.commands_for(BALANCER) if "tee" in c.argv]
    assert len(writes) == 2
    assert writes[0] == writes[1]


def test_no_balancer_is_a_noop(transport, synthesizer, control_host, worker_hosts):
    summary = synthesizer.configure(TopologyRegistry([control_host, *worker_hosts]))

    assert summary.total == 0
    assert summary.notes == [NOTE_NO_BALANCER]
    assert summary.exit_code == 0
    assert transport.calls == []


def test_failed_reload_is_recorded(transport, synthesizer, registry):
    transport.fail(BALANCER, code=1, stderr="haproxy: config invalid", match="reload")

    summary = synthesizer.configure(registry)

    assert summary.status == RunStatus.DEGRADED
    assert summary.outcome_for("lb1").reason == "command-failed (exit 1)"


def test_unreachable_balancer_does_not_stop_others(transport, synthesizer, registry):
    registry.add_host(Host(id="lb2", address="10.0.0.6", role=HostRole.BALANCER))
    transport.unreachable(BALANCER)

    summary = synthesizer.configure(registry)

    assert summary.outcome_for("lb1").reason == "unreachable"
    assert summary.outcome_for("lb2").outcome == TaskOutcome.SUCCESS


def test_restrict_to_balancer_ids(transport, synthesizer, registry):
    registry.add_host(Host(id="lb2", address="10.0.0.6", role=HostRole.BALANCER))

    summary = synthesizer.configure(registry, balancer_ids=["lb2"])

    assert [t.host_id for t in summary.tasks] == ["lb2"]
    assert transport.commands_for(BALANCER) == []


def test_empty_backend_note(transport, synthesizer, balancer_host):
    summary = synthesizer.configure(TopologyRegistry([balancer_host]))

    assert summary.succeeded == 1
    assert "no worker hosts registered, backend is empty" in summary.notes
