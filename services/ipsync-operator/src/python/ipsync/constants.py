# Kubernetes NodeAddress type managed by the operator
ADDRESS_TYPE_EXTERNAL_IP = "ExternalIP"

# Configuration
CONFIG_SECTION = ("ipsync", "operator")

# Scheduling
MIN_INTERVAL_SECONDS = 30.0
DEFAULT_REQUEST_TIMEOUT_SECONDS = 10.0
DEFAULT_CONNECT_TIMEOUT_SECONDS = 5.0
