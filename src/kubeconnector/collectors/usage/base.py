# src/kubeconnector/collectors/usage/base.py
"""
Interface shared by every point-in-time usage backend. Implementations raise
UsageSourceError when the backend as a whole cannot be reached, and simply
omit objects they have no data for.
"""

from abc import ABC, abstractmethod
from typing import Dict, Sequence, Tuple

from ...models.usage import PodUsage, UsageSample

PodKey = Tuple[str, str]


class UsageSource(ABC):
    name: str = "usage-source"

    @abstractmethod
    async def node_usage(self, names: Sequence[str]) -> Dict[str, UsageSample]:
        """Returns usage for the requested nodes, keyed by node name."""
        pass

    @abstractmethod
    async def pod_usage(self, keys: Sequence[PodKey]) -> Dict[PodKey, PodUsage]:
        """Returns per-container usage for the requested (namespace, pod) pairs."""
        pass

    async def close(self):
        pass
