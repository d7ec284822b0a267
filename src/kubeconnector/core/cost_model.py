# src/kubeconnector/core/cost_model.py
"""
Converts usage and capacity into hourly cost. Every function here is pure:
the same inputs always produce the same CostMetrics.

GB means GiB (2**30 bytes) throughout.
"""

from dataclasses import dataclass, field, replace
from typing import Dict, Optional

from ..models.connector import CostRateOverrides
from ..models.metrics import CostMetrics, CPUMetrics, MemoryMetrics
from .config import config


BYTES_PER_GB = 1024**3

BLOCK_MODE_MULTIPLIER = 1.2
CLIENT_IP_AFFINITY_MULTIPLIER = 1.1


@dataclass(frozen=True)
class CostRates:
    """Hourly rates, all in one currency."""

    cpu_cost_per_core_hour: float = 0.04
    memory_cost_per_gb_hour: float = 0.01
    storage_class_rates: Dict[str, float] = field(
        default_factory=lambda: {"premium-ssd": 0.17, "standard-ssd": 0.08}
    )
    default_storage_rate: float = 0.04
    load_balancer_hourly: float = 0.025
    node_port_hourly: float = 0.010
    currency: str = "USD"

    def with_overrides(self, overrides: Optional[CostRateOverrides]) -> "CostRates":
        """Returns a copy with every rate the overrides set replaced."""
        if overrides is None:
            return self
        changes = {
            name: getattr(overrides, name)
            for name in (
                "cpu_cost_per_core_hour",
                "memory_cost_per_gb_hour",
                "default_storage_rate",
                "load_balancer_hourly",
                "node_port_hourly",
                "currency",
            )
            if getattr(overrides, name) is not None
        }
        if overrides.storage_class_rates:
            changes["storage_class_rates"] = {**self.storage_class_rates, **overrides.storage_class_rates}
        return replace(self, **changes)


class CostModel:
    """Cost formulas keyed by resource kind."""

    def __init__(self, rates: Optional[CostRates] = None):
        self.rates = rates or CostRates(currency=config.DEFAULT_CURRENCY)

    def _cost(self, **components) -> CostMetrics:
        return CostMetrics(currency=self.rates.currency, **components)

    def pod_cost(self, cpu: CPUMetrics, memory: MemoryMetrics) -> CostMetrics:
        """Observed cores and GB times their hourly rates."""
        return self._cost(
            cpu_cost=cpu.usage_core_percent * self.rates.cpu_cost_per_core_hour,
            memory_cost=memory.usage_bytes / BYTES_PER_GB * self.rates.memory_cost_per_gb_hour,
        )

    def node_cost(
        self,
        cpu: CPUMetrics,
        memory: MemoryMetrics,
        allocatable_cores: float,
        allocatable_memory_bytes: int,
    ) -> CostMetrics:
        """
        Allocatable capacity times rate, scaled by the observed utilisation
        ratio. A node without observed usage is charged its full capacity.
        """
        cpu_cost = allocatable_cores * self.rates.cpu_cost_per_core_hour
        if cpu.usage_nano_cores > 0 and allocatable_cores > 0:
            cpu_cost *= cpu.usage_core_percent / allocatable_cores

        memory_gb = allocatable_memory_bytes / BYTES_PER_GB
        memory_cost = memory_gb * self.rates.memory_cost_per_gb_hour
        if memory.usage_bytes > 0 and allocatable_memory_bytes > 0:
            memory_cost *= memory.usage_bytes / allocatable_memory_bytes

        return self._cost(cpu_cost=cpu_cost, memory_cost=memory_cost)

    def storage_rate(self, storage_class: Optional[str]) -> float:
        return self.rates.storage_class_rates.get(storage_class or "", self.rates.default_storage_rate)

    def volume_cost(self, capacity_bytes: int, storage_class: Optional[str], block_mode: bool = False) -> CostMetrics:
        storage_cost = capacity_bytes / BYTES_PER_GB * self.storage_rate(storage_class)
        if block_mode:
            storage_cost *= BLOCK_MODE_MULTIPLIER
        return self._cost(storage_cost=storage_cost)

    def service_cost(self, service_type: str, ingress_count: int = 0, client_ip_affinity: bool = False) -> CostMetrics:
        """
        LoadBalancer is charged per assigned ingress point (one while none is
        assigned yet), NodePort a flat rate, everything else nothing.
        """
        if service_type == "LoadBalancer":
            network_cost = self.rates.load_balancer_hourly * max(ingress_count, 1)
        elif service_type == "NodePort":
            network_cost = self.rates.node_port_hourly
        else:
            network_cost = 0.0

        if client_ip_affinity:
            network_cost *= CLIENT_IP_AFFINITY_MULTIPLIER
        return self._cost(network_cost=network_cost)
