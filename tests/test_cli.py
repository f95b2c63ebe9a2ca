"""End-to-end tests for the command-line interface."""
import json

import pytest
from click.testing import CliRunner

from labdeploy import __version__
from labdeploy.base import InventoryCommand
from labdeploy.main import cli
from labdeploy.services.state_service import StateService


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def fake_ssh(transport, monkeypatch, kubeadm_join_line):
    """Route every command through the scripted transport."""
    transport.reply("10.0.0.10", kubeadm_join_line, match="token create")
    monkeypatch.setattr(
        InventoryCommand, "transport_factory", staticmethod(lambda ssh: transport)
    )
    return transport


@pytest.fixture
def saved_state(labdeploy_home):
    """State kept for the labdeploy.yml inventory."""
    return StateService(labdeploy_home / "state" / "labdeploy")


@pytest.fixture
def invoke(runner, inventory_file):
    def run(*args, inventory=True):
        argv = list(args)
        if inventory:
            argv[1:1] = ["-i", str(inventory_file)]
        return runner.invoke(cli, argv)

    return run


def test_version(runner):
    result = runner.invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_help_lists_commands(runner):
    result = runner.invoke(cli, ["--help"])
    assert result.exit_code == 0
    for name in ("bootstrap", "deploy", "balancer:configure", "hosts:list"):
        assert name in result.output


class TestBootstrap:
    def test_json_summary(self, fake_ssh, invoke):
        result = invoke("bootstrap", "--json")

        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["status"] == "success"
        assert data["stage"] == "ready"
        assert [t["host"] for t in data["tasks"]] == ["w1", "w2"]

    def test_state_persisted(self, fake_ssh, invoke, saved_state):
        invoke("bootstrap", "--json")

        registry = saved_state.load_topology()
        assert registry.control_plane.id == "cp1"
        assert len(saved_state.load_credentials()) == 1

    def test_worker_failure_exits_non_zero(self, fake_ssh, invoke):
        fake_ssh.fail("10.0.0.12", code=1, match="kubeadm join")

        result = invoke("bootstrap", "--json")

        assert result.exit_code == 1
        data = json.loads(result.output)
        assert data["status"] == "degraded"
        assert data["failed"] == 1

    def test_explicit_hosts_override_inventory(self, fake_ssh, invoke):
        result = invoke("bootstrap", "-w", "w1", "--json")

        assert result.exit_code == 0, result.output
        assert [t["host"] for t in json.loads(result.output)["tasks"]] == ["w1"]
        assert fake_ssh.commands_for("10.0.0.12") == []

    def test_dry_run_touches_nothing(self, transport, invoke, saved_state):
        result = invoke("bootstrap", "--dry-run", "--json")

        assert result.exit_code == 0, result.output
        assert transport.calls == []
        assert saved_state.files() == []

    def test_console_summary(self, fake_ssh, invoke):
        result = invoke("bootstrap")

        assert result.exit_code == 0, result.output
        assert "SUCCESS" in result.output
        assert "abcdef.0123456789abcdef" not in result.output

    def test_unknown_worker(self, fake_ssh, invoke):
        result = invoke("bootstrap", "-w", "w9", "--json")

        assert result.exit_code == 1
        assert "w9" in json.loads(result.output)["error"]


class TestDeploy:
    def test_one_host_fails(self, fake_ssh, invoke):
        fake_ssh.fail("10.0.0.12", code=125)

        result = invoke("deploy", "run-container", "--image", "nginx:1.27", "--role", "worker", "--json")

        assert result.exit_code == 1
        data = json.loads(result.output)
        assert (data["total"], data["succeeded"], data["failed"]) == (2, 1, 1)
        assert data["tasks"][1]["reason"] == "command-failed (exit 125)"

    def test_run_command(self, fake_ssh, invoke):
        result = invoke("deploy", "run-command", "-H", "w1", "--json", "--", "uptime", "-a")

        assert result.exit_code == 0, result.output
        assert fake_ssh.lines_for("10.0.0.11") == ["uptime -a"]

    def test_missing_parameter(self, fake_ssh, invoke):
        result = invoke("deploy", "run-container", "-H", "w1", "--json")

        assert result.exit_code == 1
        assert "--image" in json.loads(result.output)["error"]
        assert fake_ssh.calls == []

    def test_unknown_action(self, invoke):
        result = invoke("deploy", "format-disks", "-H", "w1")
        assert result.exit_code == 2


class TestBalancer:
    def test_render(self, invoke):
        result = invoke("balancer:render")

        assert result.exit_code == 0, result.output
        assert "server w1 10.0.0.11:8080 check" in result.output
        assert "server w2 10.0.0.12:8080 check" in result.output

    def test_configure(self, fake_ssh, invoke):
        result = invoke("balancer:configure", "--json")

        assert result.exit_code == 0, result.output
        assert json.loads(result.output)["tasks"][0]["host"] == "lb1"
        assert "tee" in fake_ssh.lines_for("10.0.0.5")[0]


class TestListings:
    def test_hosts_list_json(self, invoke):
        result = invoke("hosts:list", "--json")

        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert [h["id"] for h in data["inventory"]] == ["cp1", "w1", "w2", "lb1"]
        assert data["topology"] == []

    def test_credentials_redacted(self, fake_ssh, invoke):
        invoke("bootstrap", "--json")

        result = invoke("credentials:list", "--json")

        assert result.exit_code == 0, result.output
        assert "abcdef.0123456789abcdef" not in result.output
        assert json.loads(result.output)["credentials"][0]["issued_by"] == "cp1"


def test_missing_inventory(runner, tmp_path):
    result = runner.invoke(cli, ["hosts:list", "-i", str(tmp_path / "absent.yml")])
    assert result.exit_code == 1
    assert "Inventory file not found" in result.output


OTHER_INVENTORY_YAML = """\
ssh:
  user: ubuntu
defaults:
  timeout: 30
  runtime: kubeadm
  network_plugin: calico
hosts:
  - {id: cpB, address: 10.9.0.10, role: control-plane}
  - {id: wB, address: 10.9.0.11, role: worker, port: 8080}
  - {id: lbB, address: 10.9.0.5, role: balancer}
"""

OTHER_JOIN_LINE = (
    "kubeadm join 10.9.0.10:6443 --token bbbbbb.0123456789bbbbbb "
    "--discovery-token-ca-cert-hash sha256:feedface\n"
)


def interrupt(address, command):
    raise KeyboardInterrupt


class TestStateScope:
    @pytest.fixture
    def other_inventory(self, tmp_path):
        path = tmp_path / "other.yml"
        path.write_text(OTHER_INVENTORY_YAML)
        return path

    def test_two_inventories_bootstrap_independently(
        self, fake_ssh, invoke, runner, other_inventory, saved_state, labdeploy_home
    ):
        fake_ssh.reply("10.9.0.10", OTHER_JOIN_LINE, match="token create")

        first = invoke("bootstrap", "--json")
        second = runner.invoke(cli, ["bootstrap", "-i", str(other_inventory), "--json"])

        assert first.exit_code == 0, first.output
        assert second.exit_code == 0, second.output
        assert [t["host"] for t in json.loads(second.output)["tasks"]] == ["wB"]

        other_state = StateService(labdeploy_home / "state" / "other")
        assert other_state.load_topology().control_plane.id == "cpB"
        assert saved_state.load_topology().control_plane.id == "cp1"

        rendered = runner.invoke(cli, ["balancer:render", "-i", str(other_inventory)])
        assert rendered.exit_code == 0, rendered.output
        assert "server wB 10.9.0.11:8080 check" in rendered.output
        assert "10.0.0." not in rendered.output

    def test_credentials_listed_per_inventory(self, fake_ssh, invoke, runner, other_inventory):
        invoke("bootstrap", "--json")

        result = runner.invoke(cli, ["credentials:list", "-i", str(other_inventory), "--json"])

        assert result.exit_code == 0, result.output
        assert json.loads(result.output)["credentials"] == []

    def test_rerun_starts_fresh(self, fake_ssh, invoke, saved_state, kubeadm_join_line):
        fake_ssh.reply("10.0.0.11", kubeadm_join_line, match="token create")
        invoke("bootstrap", "--json")

        result = invoke("bootstrap", "-c", "w1", "-w", "w2", "--json")

        assert result.exit_code == 0, result.output
        assert saved_state.load_topology().control_plane.id == "w1"

    def test_resume_skips_init(self, fake_ssh, invoke):
        invoke("bootstrap", "--json")
        fake_ssh.calls.clear()

        result = invoke("bootstrap", "--resume", "-w", "w2", "--json")

        assert result.exit_code == 0, result.output
        assert fake_ssh.commands_for("10.0.0.10") == []
        assert "kubeadm join" in fake_ssh.lines_for("10.0.0.12")[0]


class TestCancellation:
    def test_interrupt_during_joins(self, fake_ssh, invoke, saved_state):
        fake_ssh.rules.append(("10.0.0.11", "kubeadm join", interrupt))

        result = invoke("bootstrap", "-p", "1", "--json")

        assert result.exit_code == 130
        data = json.loads(result.output)
        assert data["stage"] == "workers-joining"
        assert [t["host"] for t in data["tasks"]] == ["w1", "w2"]
        assert data["tasks"][1]["reason"] == "cancelled"
        assert len(saved_state.files()) == 2
        assert saved_state.load_topology().control_plane.id == "cp1"

    def test_interrupt_console_summary(self, fake_ssh, invoke):
        fake_ssh.rules.append(("10.0.0.11", "kubeadm join", interrupt))

        result = invoke("bootstrap", "-p", "1")

        assert result.exit_code == 130
        assert "cancelled by user" in result.output


class TestStateReset:
    def test_reset(self, fake_ssh, invoke, saved_state):
        invoke("bootstrap", "--json")

        result = invoke("state:reset", "--yes", "--json")

        assert result.exit_code == 0, result.output
        assert sorted(json.loads(result.output)["removed"]) == ["credentials.yml", "topology.yml"]
        assert saved_state.files() == []

    def test_declined_prompt_keeps_state(self, fake_ssh, invoke, runner, inventory_file, saved_state):
        invoke("bootstrap", "--json")

        result = runner.invoke(cli, ["state:reset", "-i", str(inventory_file)], input="n\n")

        assert result.exit_code == 0, result.output
        assert len(saved_state.files()) == 2

    def test_json_requires_yes(self, fake_ssh, invoke, saved_state):
        invoke("bootstrap", "--json")

        result = invoke("state:reset", "--json")

        assert result.exit_code == 1
        assert "--yes" in json.loads(result.output)["details"]["context"]
        assert len(saved_state.files()) == 2

    def test_nothing_to_reset(self, invoke):
        result = invoke("state:reset", "--yes", "--json")

        assert result.exit_code == 0, result.output
        assert json.loads(result.output)["removed"] == []
