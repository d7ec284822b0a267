from .event_collector import EventCollector
from .ingress_collector import IngressCollector
from .namespace_collector import NamespaceCollector
from .node_collector import NodeCollector
from .pod_collector import PodCollector
from .pv_collector import PersistentVolumeCollector
from .service_collector import ServiceCollector
from .workload_collector import WorkloadCollector

__all__ = [
    "EventCollector",
    "IngressCollector",
    "NamespaceCollector",
    "NodeCollector",
    "PersistentVolumeCollector",
    "PodCollector",
    "ServiceCollector",
    "WorkloadCollector",
]
