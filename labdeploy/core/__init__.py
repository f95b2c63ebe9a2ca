"""
labdeploy Orchestration Core

Bootstrap state machine, fan-out deployer, balancer synthesis and the
runtime/action command vocabularies they drive.
"""

from .actions import ACTIONS, DeployAction, build_action
from .balancer import LoadBalancerSynthesizer
from .bootstrap import BootstrapOrchestrator, BootstrapStage
from .fanout import FanoutDeployer
from .runtimes import RUNTIMES, ClusterRuntime, get_runtime

__all__ = [
    "ACTIONS",
    "DeployAction",
    "build_action",
    "LoadBalancerSynthesizer",
    "BootstrapOrchestrator",
    "BootstrapStage",
    "FanoutDeployer",
    "RUNTIMES",
    "ClusterRuntime",
    "get_runtime",
]
