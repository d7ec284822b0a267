# src/kubeconnector/collectors/workload_collector.py

import logging
from typing import List

from ..models.metrics import (
    DaemonSetStatus,
    DeploymentStatus,
    ResourceKind,
    ResourceMetrics,
    StatefulSetStatus,
    WorkloadCondition,
)
from .base_collector import BaseCollector

logger = logging.getLogger(__name__)


def _conditions(status) -> List[WorkloadCondition]:
    return [
        WorkloadCondition(type=c.type, status=c.status, reason=c.reason, message=c.message)
        for c in (status.conditions if status else None) or []
    ]


def _strategy_type(strategy):
    return strategy.type if strategy is not None else None


class WorkloadCollector(BaseCollector):
    """
    Replica counts, rollout strategy and conditions of Deployments,
    StatefulSets and DaemonSets. Status only, no usage or cost.
    """

    name = "workload-collector"
    description = "Collects status of Kubernetes workloads"

    async def collect(self) -> List[ResourceMetrics]:
        apps = self.clients.apps_v1
        deployments = await self._list("deployments", apps.list_deployment_for_all_namespaces)
        stateful_sets = await self._list("statefulsets", apps.list_stateful_set_for_all_namespaces)
        daemon_sets = await self._list("daemonsets", apps.list_daemon_set_for_all_namespaces)

        collected_at = self._now()
        records = []
        for obj in deployments:
            if self._included(obj.metadata.namespace):
                records.append(self._record(obj, ResourceKind.DEPLOYMENT, self._deployment_status(obj), collected_at))
        for obj in stateful_sets:
            if self._included(obj.metadata.namespace):
                status = self._stateful_set_status(obj)
                records.append(self._record(obj, ResourceKind.STATEFUL_SET, status, collected_at))
        for obj in daemon_sets:
            if self._included(obj.metadata.namespace):
                records.append(self._record(obj, ResourceKind.DAEMON_SET, self._daemon_set_status(obj), collected_at))

        logger.info("Collected %d workload record(s).", len(records))
        return records

    def _record(self, obj, kind: ResourceKind, status, collected_at) -> ResourceMetrics:
        return ResourceMetrics(
            name=obj.metadata.name,
            namespace=obj.metadata.namespace,
            kind=kind,
            labels=self._labels(obj.metadata.labels),
            collected_at=collected_at,
            status=status,
        )

    @staticmethod
    def _deployment_status(deployment) -> DeploymentStatus:
        spec, status = deployment.spec, deployment.status
        return DeploymentStatus(
            replicas=(status.replicas if status else None) or 0,
            available_replicas=(status.available_replicas if status else None) or 0,
            updated_replicas=(status.updated_replicas if status else None) or 0,
            ready_replicas=(status.ready_replicas if status else None) or 0,
            observed_generation=status.observed_generation if status else None,
            collision_count=status.collision_count if status else None,
            conditions=_conditions(status),
            strategy=_strategy_type(spec.strategy),
            min_ready_seconds=spec.min_ready_seconds or 0,
            revision_history_limit=spec.revision_history_limit,
        )

    @staticmethod
    def _stateful_set_status(stateful_set) -> StatefulSetStatus:
        spec, status = stateful_set.spec, stateful_set.status
        return StatefulSetStatus(
            replicas=(status.replicas if status else None) or 0,
            ready_replicas=(status.ready_replicas if status else None) or 0,
            current_replicas=(status.current_replicas if status else None) or 0,
            updated_replicas=(status.updated_replicas if status else None) or 0,
            observed_generation=status.observed_generation if status else None,
            conditions=_conditions(status),
            update_strategy=_strategy_type(spec.update_strategy),
            service_name=spec.service_name,
        )

    @staticmethod
    def _daemon_set_status(daemon_set) -> DaemonSetStatus:
        spec, status = daemon_set.spec, daemon_set.status
        return DaemonSetStatus(
            desired_number_scheduled=(status.desired_number_scheduled if status else None) or 0,
            current_number_scheduled=(status.current_number_scheduled if status else None) or 0,
            number_ready=(status.number_ready if status else None) or 0,
            updated_number_scheduled=(status.updated_number_scheduled if status else None) or 0,
            number_available=(status.number_available if status else None) or 0,
            number_unavailable=(status.number_unavailable if status else None) or 0,
            observed_generation=status.observed_generation if status else None,
            conditions=_conditions(status),
            update_strategy=_strategy_type(spec.update_strategy),
        )
