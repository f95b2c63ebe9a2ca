"""Tests for persisted topology and credentials."""
import stat

import pytest

from labdeploy.exceptions import StateError
from labdeploy.models import CredentialKind, HostRole
from labdeploy.services.credential_service import CredentialManager
from labdeploy.services.state_service import StateService
from labdeploy.services.topology_service import TopologyRegistry
from labdeploy.utils import get_state_dir


@pytest.fixture
def state(tmp_path):
    return StateService(tmp_path / "state")


def test_empty_state(state):
    assert not state.has_state()
    assert len(state.load_topology()) == 0
    assert len(state.load_credentials()) == 0


def test_topology_round_trip(state, control_host, worker_hosts):
    registry = TopologyRegistry([control_host, *worker_hosts])
    registry.mark_reachable("w2", False)

    state.save_topology(registry)
    loaded = StateService(state.state_dir).load_topology()

    assert [h.id for h in loaded.hosts()] == ["cp1", "w1", "w2"]
    assert loaded.control_plane.id == "cp1"
    assert loaded.get("w2").reachable is False
    assert loaded.get("w1").role == HostRole.WORKER


def test_files_are_owner_only(state, control_host):
    credentials = CredentialManager()
    credentials.issue(CredentialKind.CLUSTER_JOIN, control_host)

    state.save_topology(TopologyRegistry([control_host]))
    state.save_credentials(credentials)

    for path in (state.topology_path, state.credentials_path):
        assert stat.S_IMODE(path.stat().st_mode) == 0o600


def test_credentials_round_trip(state, control_host):
    credentials = CredentialManager()
    issued = credentials.issue(CredentialKind.CLUSTER_JOIN, control_host)

    state.save_credentials(credentials)
    loaded = state.load_credentials().get(CredentialKind.CLUSTER_JOIN)

    assert loaded.secret == issued.secret
    assert loaded.issued_by == "cp1"


def test_empty_credentials_not_written(state):
    state.save_credentials(CredentialManager())
    assert not state.credentials_path.exists()


def test_corrupt_topology(state):
    state.state_dir.mkdir(parents=True)
    state.topology_path.write_text("hosts: [{id: a}]\n")

    with pytest.raises(StateError):
        state.load_topology()


def test_topology_with_two_control_planes(state):
    state.state_dir.mkdir(parents=True)
    state.topology_path.write_text(
        "hosts:\n"
        "  - {id: a, address: x, role: control-plane}\n"
        "  - {id: b, address: y, role: control-plane}\n"
    )

    with pytest.raises(StateError) as exc_info:
        state.load_topology()
    assert "Inconsistent" in exc_info.value.message


def test_empty_credentials_remove_stale_file(state, control_host):
    credentials = CredentialManager()
    credentials.issue(CredentialKind.CLUSTER_JOIN, control_host)
    state.save_credentials(credentials)

    state.save_credentials(CredentialManager())

    assert not state.credentials_path.exists()


def test_clear(state, control_host):
    credentials = CredentialManager()
    credentials.issue(CredentialKind.CLUSTER_JOIN, control_host)
    state.save_topology(TopologyRegistry([control_host]))
    state.save_credentials(credentials)

    removed = state.clear()

    assert sorted(p.name for p in removed) == ["credentials.yml", "topology.yml"]
    assert state.files() == []
    assert len(state.load_topology()) == 0


def test_state_dir_per_inventory(labdeploy_home):
    assert get_state_dir() == labdeploy_home / "state"
    assert get_state_dir("staging") == labdeploy_home / "state" / "staging"
