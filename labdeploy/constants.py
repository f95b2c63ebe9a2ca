"""
labdeploy Constants

Centralized constants for magic values, defaults, and configuration.
"""

# Default SSH Configuration
DEFAULT_SSH_KEY_PATH = "~/.ssh/id_ed25519"
DEFAULT_SSH_USER = "root"
DEFAULT_SSH_PORT = 22
SSH_CONNECTION_TIMEOUT = 10

# ssh reserves exit status 255 for its own connection errors
SSH_TRANSPORT_ERROR_CODE = 255

# Default inventory / state locations
DEFAULT_INVENTORY_FILE = "labdeploy.yml"
INVENTORY_ENV_VAR = "LABDEPLOY_INVENTORY"
HOME_ENV_VAR = "LABDEPLOY_HOME"
DEFAULT_HOME_DIR = "~/.labdeploy"
STATE_DIR_NAME = "state"
LOGS_DIR_NAME = "logs"
TOPOLOGY_STATE_FILE = "topology.yml"
CREDENTIALS_STATE_FILE = "credentials.yml"

# Orchestration defaults
DEFAULT_COMMAND_TIMEOUT = 600
DEFAULT_PARALLELISM = 4
DEFAULT_RETRIES = 0
DEFAULT_RUNTIME = "kubeadm"

# Kubernetes Configuration
DEFAULT_POD_NETWORK_CIDR = "10.244.0.0/16"  # Flannel's default
KUBE_API_PORT = 6443
SWARM_PORT = 2377

# Network plugin manifests
CALICO_OPERATOR_MANIFEST = (
    "https://docs.projectcalico.org/manifests/tigera-operator.yaml"
)
CALICO_RESOURCES_MANIFEST = (
    "https://docs.projectcalico.org/manifests/custom-resources.yaml"
)
FLANNEL_MANIFEST = (
    "https://raw.githubusercontent.com/flannel-io/flannel/master/"
    "Documentation/kube-flannel.yml"
)
WEAVE_MANIFEST = "https://cloud.weave.works/k8s/net"

# Installer endpoints
DOCKER_INSTALL_URL = "https://get.docker.com"
K3S_INSTALL_URL = "https://get.k3s.io"
KUBERNETES_APT_REPO = "https://pkgs.k8s.io/core:/stable:/v1.29/deb/"
DOCKER_COMPOSE_RELEASES = "https://github.com/docker/compose/releases"

# Load balancer
DEFAULT_BALANCER_CONFIG_PATH = "/etc/haproxy/haproxy.cfg"
DEFAULT_BALANCER_RELOAD = ["systemctl", "reload", "haproxy"]
DEFAULT_BALANCER_FRONTEND_PORT = 80
DEFAULT_BACKEND_PORT = 80
BALANCER_TEMPLATE = "haproxy.cfg.j2"

# Log Configuration
LOG_DATE_FORMAT = "%Y-%m-%d"
LOG_DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S"

# Exit status of a run stopped by Ctrl-C (128 + SIGINT)
CANCELLED_EXIT_CODE = 130

# File Permissions
STATE_FILE_PERMISSIONS = 0o600
STATE_DIR_PERMISSIONS = 0o700

# Notes recorded in run summaries
NOTE_NO_BALANCER = "no balancer configured"
NOTE_NO_NETWORK_PLUGIN = "no network plugin selected, pod network will not be functional"
NOTE_JOINS_CANCELLED = "cancelled before every worker joined, rerun with --resume"
