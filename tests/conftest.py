"""Shared test fixtures for labdeploy tests."""
import threading
import time

import pytest

from labdeploy.models.command import Command
from labdeploy.models.host import Host, HostRole
from labdeploy.models.results import ExecResult
from labdeploy.services.remote_executor import RemoteExecutor
from labdeploy.services.ssh_service import Session, Transport

KUBEADM_JOIN_LINE = (
    "kubeadm join 10.0.0.10:6443 --token abcdef.0123456789abcdef "
    "--discovery-token-ca-cert-hash sha256:deadbeef\n"
)


class FakeSession(Session):
    def __init__(self, transport, address):
        self.transport = transport
        self.address = address

    def run(self, command, timeout):
        return self.transport.respond(self.address, command, timeout)


class FakeTransport(Transport):
    """
    Scripted transport.

    Rules are matched newest first on (address, substring of the remote
    command line). Unmatched commands succeed with empty output.
    """

    def __init__(self):
        self.rules = []
        self.unreachable_addresses = set()
        self.calls = []
        self.delay = 0.0
        self._lock = threading.Lock()

    def connect(self, address, user=None):
        if address in self.unreachable_addresses:
            raise ConnectionError(f"connect to {address} port 22: No route to host")
        return FakeSession(self, address)

    def respond(self, address, command, timeout):
        with self._lock:
            self.calls.append((address, command))
        if self.delay:
            time.sleep(self.delay)
        for rule_address, match, action in reversed(self.rules):
            if rule_address == address and (match is None or match in command.remote_string()):
                return action(address, command)
        return ExecResult(returncode=0, host=address, command=command.display())

    def reply(self, address, stdout, match=None):
        self.rules.append(
            (address, match, lambda a, c: ExecResult(returncode=0, stdout=stdout, host=a))
        )

    def fail(self, address, code=1, stderr="boom", match=None):
        self.rules.append(
            (address, match, lambda a, c: ExecResult(returncode=code, stderr=stderr, host=a))
        )

    def timeout(self, address, match=None):
        def raise_timeout(a, c):
            raise TimeoutError(f"timed out on {a}")

        self.rules.append((address, match, raise_timeout))

    def unreachable(self, address):
        self.unreachable_addresses.add(address)

    def commands_for(self, address):
        return [c for a, c in self.calls if a == address]

    def lines_for(self, address):
        return [c.remote_string() for c in self.commands_for(address)]


@pytest.fixture(autouse=True)
def labdeploy_home(tmp_path, monkeypatch):
    """Keep state and logs out of the real home directory."""
    home = tmp_path / "labdeploy-home"
    monkeypatch.setenv("LABDEPLOY_HOME", str(home))
    monkeypatch.delenv("LABDEPLOY_INVENTORY", raising=False)
    return home


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def executor(transport):
    return RemoteExecutor(transport)


@pytest.fixture
def control_host():
    return Host(id="cp1", address="10.0.0.10", role=HostRole.CONTROL_PLANE)


@pytest.fixture
def worker_hosts():
    return [
        Host(id="w1", address="10.0.0.11", role=HostRole.WORKER, port=8080),
        Host(id="w2", address="10.0.0.12", role=HostRole.WORKER, port=8080),
    ]


@pytest.fixture
def balancer_host():
    return Host(id="lb1", address="10.0.0.5", role=HostRole.BALANCER)


@pytest.fixture
def plain_hosts():
    return [
        Host(id="h1", address="10.0.1.1"),
        Host(id="h2", address="10.0.1.2"),
        Host(id="h3", address="10.0.1.3"),
    ]


@pytest.fixture
def echo_command():
    return Command.of("echo", "hello")


INVENTORY_YAML = """\
ssh:
  user: ubuntu
  key_path: ~/.ssh/id_ed25519
defaults:
  timeout: 30
  parallelism: 2
  runtime: kubeadm
  network_plugin: calico
hosts:
  - {id: cp1, address: 10.0.0.10, role: control-plane}
  - {id: w1, address: 10.0.0.11, role: worker, port: 8080}
  - {id: w2, address: 10.0.0.12, role: worker, port: 8080}
  - {id: lb1, address: 10.0.0.5, role: balancer}
"""


@pytest.fixture
def inventory_file(tmp_path):
    """Inventory with one control plane, two workers and a balancer."""
    path = tmp_path / "labdeploy.yml"
    path.write_text(INVENTORY_YAML)
    return path


@pytest.fixture
def kubeadm_join_line():
    return KUBEADM_JOIN_LINE
