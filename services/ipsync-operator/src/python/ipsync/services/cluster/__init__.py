from .cluster_nodes_api import ClusterNodesApi
from .kubernetes_credentials import KubernetesCredentials, load_credentials
from .kubernetes_nodes_api import KubernetesNodesApi

__all__ = [
    "ClusterNodesApi",
    "KubernetesCredentials",
    "KubernetesNodesApi",
    "load_credentials",
]
