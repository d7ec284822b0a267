# src/kubeconnector/collectors/usage/resolver.py

import logging
from typing import Dict, List, Optional, Sequence

from ...core.exceptions import UsageSourceError
from ...models.usage import PodUsage, UsageSample
from .base import PodKey, UsageSource

logger = logging.getLogger(__name__)


class UsageResolver:
    """
    Resolves usage from up to two sources. The primary source is queried
    first; the secondary is queried only for objects that still have a zero
    field and may only fill those zero fields. A value already provided by
    the primary is never overwritten.

    Without any source every object resolves to zero usage.
    """

    def __init__(self, primary: Optional[UsageSource] = None, secondary: Optional[UsageSource] = None):
        self.primary = primary
        self.secondary = secondary

    @property
    def sources(self) -> List[UsageSource]:
        return [source for source in (self.primary, self.secondary) if source is not None]

    async def resolve_nodes(self, names: Sequence[str]) -> Dict[str, UsageSample]:
        resolved = {name: UsageSample() for name in names}
        for source in self.sources:
            pending = [name for name, sample in resolved.items() if not sample.is_complete]
            if not pending:
                break
            try:
                samples = await source.node_usage(pending)
            except UsageSourceError as e:
                logger.warning("Usage source '%s' failed for nodes: %s", source.name, e)
                continue
            for name, sample in samples.items():
                if name in resolved:
                    resolved[name] = resolved[name].fill_gaps(sample)
        return resolved

    async def resolve_pods(self, keys: Sequence[PodKey]) -> Dict[PodKey, PodUsage]:
        resolved = {key: PodUsage() for key in keys}
        for source in self.sources:
            pending = [key for key, usage in resolved.items() if not usage.is_complete]
            if not pending:
                break
            try:
                usages = await source.pod_usage(pending)
            except UsageSourceError as e:
                logger.warning("Usage source '%s' failed for pods: %s", source.name, e)
                continue
            for key, usage in usages.items():
                if key in resolved:
                    resolved[key] = resolved[key].fill_gaps(usage)
        return resolved

    async def close(self):
        for source in self.sources:
            await source.close()
