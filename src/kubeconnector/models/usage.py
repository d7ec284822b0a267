# src/kubeconnector/models/usage.py

from typing import Dict

from pydantic import BaseModel, Field


class UsageSample(BaseModel):
    """Point-in-time CPU and memory usage of one object."""

    cpu_nano_cores: int = Field(0, ge=0)
    memory_bytes: int = Field(0, ge=0)

    @property
    def is_complete(self) -> bool:
        return self.cpu_nano_cores > 0 and self.memory_bytes > 0

    def fill_gaps(self, other: "UsageSample") -> "UsageSample":
        """Returns a sample where only the zero fields are taken from `other`."""
        return UsageSample(
            cpu_nano_cores=self.cpu_nano_cores or other.cpu_nano_cores,
            memory_bytes=self.memory_bytes or other.memory_bytes,
        )


class PodUsage(BaseModel):
    """Usage of a pod, keyed by container name."""

    containers: Dict[str, UsageSample] = Field(default_factory=dict)

    @property
    def cpu_nano_cores(self) -> int:
        return sum(sample.cpu_nano_cores for sample in self.containers.values())

    @property
    def memory_bytes(self) -> int:
        return sum(sample.memory_bytes for sample in self.containers.values())

    @property
    def is_complete(self) -> bool:
        return bool(self.containers) and all(sample.is_complete for sample in self.containers.values())

    def fill_gaps(self, other: "PodUsage") -> "PodUsage":
        merged = dict(self.containers)
        for name, sample in other.containers.items():
            merged[name] = merged[name].fill_gaps(sample) if name in merged else sample
        return PodUsage(containers=merged)
