# src/kubeconnector/models/cluster.py
"""
Cluster identity and node-group topology, recomputed every cycle.
"""

from typing import Any, Dict, List

from pydantic import Field

from .metrics import WireModel


class ProviderInfo(WireModel):
    name: str = ""
    region: str = ""
    zone: str = ""
    metadata: Dict[str, Any] = Field(default_factory=dict)


class PlatformInfo(WireModel):
    os: str = ""
    architecture: str = ""
    version: str = ""


class NodeGroupInfo(WireModel):
    """
    A provider-defined pool of nodes. `labels` only holds the labels every
    member carries with the same value.
    """

    name: str
    labels: Dict[str, str] = Field(default_factory=dict)
    platform: PlatformInfo = Field(default_factory=PlatformInfo)
    metadata: Dict[str, Any] = Field(default_factory=dict)


class ClusterContext(WireModel):
    name: str
    kubernetes_version: str = ""
    provider: ProviderInfo = Field(default_factory=ProviderInfo)
    labels: Dict[str, str] = Field(default_factory=dict)
    node_groups: List[NodeGroupInfo] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    def summary(self) -> Dict[str, Any]:
        """The compact context attached to event batches."""
        return {
            "name": self.name,
            "provider": self.provider.name,
            "region": self.provider.region,
            "zone": self.provider.zone,
            "labels": dict(self.labels),
        }
