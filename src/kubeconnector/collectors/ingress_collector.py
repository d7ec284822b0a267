# src/kubeconnector/collectors/ingress_collector.py

import logging
from typing import List

from ..models.metrics import (
    IngressBackend,
    IngressPath,
    IngressRule,
    IngressServiceBackend,
    IngressServicePort,
    IngressStatus,
    IngressTLS,
    ResourceKind,
    ResourceMetrics,
)
from .base_collector import BaseCollector

logger = logging.getLogger(__name__)


def _backend(backend) -> IngressBackend:
    service = backend.service if backend is not None else None
    if service is None:
        return IngressBackend()
    port = service.port
    return IngressBackend(
        service=IngressServiceBackend(
            name=service.name,
            port=IngressServicePort(name=port.name, number=port.number) if port else IngressServicePort(),
        )
    )


class IngressCollector(BaseCollector):
    """Summarises rules, backends and TLS of every included Ingress."""

    name = "ingress-collector"
    description = "Collects routing summaries of Kubernetes Ingresses"

    async def collect(self) -> List[ResourceMetrics]:
        ingresses = await self._list("ingresses", self.clients.networking_v1.list_ingress_for_all_namespaces)

        collected_at = self._now()
        records = []
        for ingress in ingresses:
            if not self._included(ingress.metadata.namespace):
                continue
            records.append(
                ResourceMetrics(
                    name=ingress.metadata.name,
                    namespace=ingress.metadata.namespace,
                    kind=ResourceKind.INGRESS,
                    labels=self._labels(ingress.metadata.labels),
                    collected_at=collected_at,
                    status=self._status(ingress),
                )
            )

        logger.info("Collected %d ingress record(s).", len(records))
        return records

    @staticmethod
    def _status(ingress) -> IngressStatus:
        spec = ingress.spec
        rules = []
        for rule in (spec.rules if spec else None) or []:
            paths = [
                IngressPath(path=path.path, path_type=path.path_type, backend=_backend(path.backend))
                for path in ((rule.http.paths if rule.http else None) or [])
            ]
            rules.append(IngressRule(host=rule.host, paths=paths))

        tls_entries = (spec.tls if spec else None) or []
        tls = [IngressTLS(hosts=list(t.hosts or []), secret_name=t.secret_name) for t in tls_entries]

        load_balancer = []
        lb_status = ingress.status.load_balancer if ingress.status else None
        for point in (lb_status.ingress if lb_status else None) or []:
            address = point.ip or point.hostname
            if address:
                load_balancer.append(address)

        return IngressStatus(
            ingress_class=spec.ingress_class_name if spec else None,
            load_balancer=load_balancer,
            rules=rules,
            tls=tls,
        )
