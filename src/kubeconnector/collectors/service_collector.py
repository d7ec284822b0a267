# src/kubeconnector/collectors/service_collector.py

import logging
from typing import List

from ..core.cost_model import CostModel
from ..core.k8s_client import ClientBundle
from ..models.connector import CollectorConfig
from ..models.metrics import NetworkMetrics, ResourceKind, ResourceMetrics, ServiceStatus
from ..utils.k8s_utils import object_key
from .base_collector import BaseCollector

logger = logging.getLogger(__name__)


class ServiceCollector(BaseCollector):
    """
    Collects endpoint readiness and external exposure of Services and prices
    them by type.
    """

    name = "service-collector"
    description = "Collects metrics for Kubernetes Services"

    def __init__(self, clients: ClientBundle, collector_config: CollectorConfig, cost_model: CostModel):
        super().__init__(clients, collector_config)
        self.cost_model = cost_model

    async def collect(self) -> List[ResourceMetrics]:
        core = self.clients.core_v1
        services = await self._list("services", core.list_service_for_all_namespaces)
        endpoints = await self._list("endpoints", core.list_endpoints_for_all_namespaces)
        endpoints_by_key = {object_key(ep.metadata.namespace, ep.metadata.name): ep for ep in endpoints}

        collected_at = self._now()
        records = []
        for service in services:
            namespace = service.metadata.namespace
            if not self._included(namespace):
                continue

            ready, not_ready = self._endpoint_counts(endpoints_by_key.get(object_key(namespace, service.metadata.name)))
            ingress = self._lb_ingress(service)
            external_ips = list(service.spec.external_ips or [])
            service_type = service.spec.type or "ClusterIP"
            session_affinity = service.spec.session_affinity

            records.append(
                ResourceMetrics(
                    name=service.metadata.name,
                    namespace=namespace,
                    kind=ResourceKind.SERVICE,
                    labels=self._labels(service.metadata.labels),
                    collected_at=collected_at,
                    network=NetworkMetrics(
                        tx_packets=ready,
                        tx_errors=not_ready,
                        rx_packets=1 if ingress or external_ips else 0,
                    ),
                    cost=self.cost_model.service_cost(
                        service_type,
                        ingress_count=len(ingress),
                        client_ip_affinity=session_affinity == "ClientIP",
                    ),
                    status=ServiceStatus(
                        type=service_type,
                        cluster_ip=service.spec.cluster_ip,
                        session_affinity=session_affinity,
                        external_ips=external_ips,
                        ready_endpoints=ready,
                        not_ready_endpoints=not_ready,
                    ),
                )
            )

        logger.info("Collected %d service record(s).", len(records))
        return records

    @staticmethod
    def _endpoint_counts(endpoints):
        if endpoints is None:
            return 0, 0
        ready = not_ready = 0
        for subset in endpoints.subsets or []:
            ready += len(subset.addresses or [])
            not_ready += len(subset.not_ready_addresses or [])
        return ready, not_ready

    @staticmethod
    def _lb_ingress(service) -> list:
        status = service.status
        if status is None or status.load_balancer is None:
            return []
        return list(status.load_balancer.ingress or [])
