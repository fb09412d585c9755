"""Abstract access to the node objects of the cluster control plane.

The reconciler only needs to read the address list of one node and to replace
it with a merge-style patch; everything else about the cluster stays behind
this interface.
"""

import abc
from ipsync.models import NodeAddress


class ClusterNodesApi(abc.ABC):

    @abc.abstractmethod
    def verify_connection(self) -> str:
        """Check the control plane is reachable and return its version string."""
        ...

    @abc.abstractmethod
    def get_node_addresses(self, node_name: str) -> list[NodeAddress]:
        """Return every address of the node, in the order the cluster stores them.

        Raises:
            ItemNotFoundException: If the node does not exist.
        """
        ...

    @abc.abstractmethod
    def patch_node_addresses(self, node_name: str, addresses: list[NodeAddress], dry_run: bool) -> list[NodeAddress]:
        """Replace the address list of the node and return the resulting list.

        With ``dry_run`` the control plane validates the patch without
        persisting it.

        Raises:
            ItemNotFoundException: If the node does not exist.
            ConflictException: If the node changed concurrently and the patch was refused.
        """
        ...
