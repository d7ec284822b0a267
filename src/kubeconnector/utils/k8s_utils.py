from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, Optional

# Binary suffixes must be checked before their single-letter decimal cousins.
_BINARY_SUFFIXES = {
    "Ki": Decimal(1024),
    "Mi": Decimal(1024) ** 2,
    "Gi": Decimal(1024) ** 3,
    "Ti": Decimal(1024) ** 4,
    "Pi": Decimal(1024) ** 5,
    "Ei": Decimal(1024) ** 6,
}
_DECIMAL_SUFFIXES = {
    "n": Decimal("0.000000001"),
    "u": Decimal("0.000001"),
    "m": Decimal("0.001"),
    "k": Decimal(1000),
    "M": Decimal(1000) ** 2,
    "G": Decimal(1000) ** 3,
    "T": Decimal(1000) ** 4,
    "P": Decimal(1000) ** 5,
    "E": Decimal(1000) ** 6,
}

NANO_CORES_PER_CORE = 1_000_000_000


def parse_quantity(quantity: Any) -> Decimal:
    """
    Parse a Kubernetes resource quantity ('250m', '1Gi', '4') to Decimal.
    Unparsable or missing values yield 0.
    """
    if quantity is None:
        return Decimal(0)
    if isinstance(quantity, (int, float, Decimal)):
        return Decimal(str(quantity))

    text = str(quantity).strip()
    multiplier = Decimal(1)
    for suffix, factor in _BINARY_SUFFIXES.items():
        if text.endswith(suffix):
            text, multiplier = text[: -len(suffix)], factor
            break
    else:
        if text and text[-1] in _DECIMAL_SUFFIXES:
            text, multiplier = text[:-1], _DECIMAL_SUFFIXES[text[-1]]

    try:
        return Decimal(text) * multiplier
    except InvalidOperation:
        return Decimal(0)


def cpu_to_nano_cores(cpu: Any) -> int:
    """Converts a CPU quantity (cores) to integer nanocores."""
    return int(parse_quantity(cpu) * NANO_CORES_PER_CORE)


def cpu_to_milli_cores(cpu: Optional[str]) -> int:
    """Converts K8s CPU string to millicores (int)."""
    if not cpu:
        return 0
    return int(parse_quantity(cpu) * 1000)


def quantity_to_bytes(value: Any) -> int:
    """Converts K8s memory/storage string to bytes (int)."""
    if not value:
        return 0
    return int(parse_quantity(value))


def resource_value(resources: Optional[Dict[str, Any]], name: str) -> Optional[Any]:
    """Safely reads one entry of a ResourceList-like mapping."""
    if not resources:
        return None
    return resources.get(name)


def sum_container_resources(containers: Optional[Iterable[Any]]) -> Dict[str, int]:
    """
    Sums CPU (millicores) and memory (bytes) requests and limits across the
    containers of a pod spec.
    """
    totals = {"cpu_request": 0, "cpu_limit": 0, "memory_request": 0, "memory_limit": 0}
    for container in containers or []:
        resources = getattr(container, "resources", None)
        requests = getattr(resources, "requests", None) or {}
        limits = getattr(resources, "limits", None) or {}
        totals["cpu_request"] += cpu_to_milli_cores(requests.get("cpu"))
        totals["cpu_limit"] += cpu_to_milli_cores(limits.get("cpu"))
        totals["memory_request"] += quantity_to_bytes(requests.get("memory"))
        totals["memory_limit"] += quantity_to_bytes(limits.get("memory"))
    return totals


def object_key(namespace: Optional[str], name: str) -> str:
    """Builds the 'namespace/name' key used to join related objects."""
    return f"{namespace or ''}/{name}"
