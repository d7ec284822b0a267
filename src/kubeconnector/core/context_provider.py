# src/kubeconnector/core/context_provider.py
"""
Derives the cluster identity and its node-group topology once per cycle.
"""

import logging
from typing import Dict, Optional

from ..models.cluster import ClusterContext, NodeGroupInfo, PlatformInfo, ProviderInfo
from ..models.connector import ClusterContextSpec
from .exceptions import CollectionError
from .k8s_client import API_ERRORS, ClientBundle, describe_api_error

logger = logging.getLogger(__name__)

# Checked in order; the first label present names the node group.
NODE_GROUP_LABELS = (
    "eks.amazonaws.com/nodegroup",
    "cloud.google.com/gke-nodepool",
    "kubernetes.azure.com/agentpool",
    "agentpool",
    "k8s.ovh.net/nodepool",
    "node-pool",
)

ZONE_LABEL = "topology.kubernetes.io/zone"

# provider -> ((metadata key, node label), ...)
PROVIDER_METADATA_LABELS = {
    "aws": (("instance_type", "node.kubernetes.io/instance-type"), ("availability_zone", ZONE_LABEL)),
    "gcp": (("machine_type", "beta.kubernetes.io/instance-type"), ("zone", ZONE_LABEL)),
    "azure": (("vm_size", "node.kubernetes.io/instance-type"), ("zone", ZONE_LABEL)),
}


def node_group_name(labels: Dict[str, str]) -> Optional[str]:
    for key in NODE_GROUP_LABELS:
        if labels.get(key):
            return labels[key]
    return None


def common_labels(current: Dict[str, str], other: Dict[str, str]) -> Dict[str, str]:
    """Keeps only the labels both maps carry with the same value."""
    return {key: value for key, value in current.items() if other.get(key) == value}


class ContextProvider:
    def __init__(self, clients: ClientBundle, spec: ClusterContextSpec):
        self.clients = clients
        self.spec = spec

    def _provider_metadata(self, labels: Dict[str, str]) -> Dict[str, str]:
        mapping = PROVIDER_METADATA_LABELS.get((self.spec.type or "").lower(), ())
        return {key: labels[label] for key, label in mapping if label in labels}

    async def get_context(self) -> ClusterContext:
        """
        Reads the server version and the node list.

        Raises:
            CollectionError: if either call fails; the cycle cannot continue without a context.
        """
        try:
            version = await self.clients.version.get_code()
            nodes = await self.clients.core_v1.list_node(watch=False)
        except API_ERRORS as e:
            raise CollectionError(f"failed to resolve cluster context: {describe_api_error(e)}") from e

        groups: Dict[str, NodeGroupInfo] = {}
        for node in nodes.items or []:
            labels = node.metadata.labels or {}
            name = node_group_name(labels)
            if name is None:
                continue

            group = groups.get(name)
            if group is None:
                node_info = node.status.node_info if node.status else None
                groups[name] = NodeGroupInfo(
                    name=name,
                    labels=dict(labels),
                    platform=PlatformInfo(
                        os=node_info.operating_system if node_info else "",
                        architecture=node_info.architecture if node_info else "",
                        version=node_info.kubelet_version if node_info else "",
                    ),
                    metadata=self._provider_metadata(labels),
                )
            else:
                group.labels = common_labels(group.labels, labels)

        context = ClusterContext(
            name=self.spec.name,
            kubernetes_version=version.git_version or "",
            provider=ProviderInfo(name=self.spec.type, region=self.spec.region, zone=self.spec.zone),
            labels=dict(self.spec.labels),
            node_groups=list(groups.values()),
            metadata=dict(self.spec.metadata),
        )
        logger.info(
            "Resolved context for cluster '%s' (%s, %d node group(s)).",
            context.name,
            context.kubernetes_version,
            len(context.node_groups),
        )
        return context
