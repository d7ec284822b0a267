"""
Namespace include/exclude policy shared by every collector.
"""

from typing import Optional


def is_namespace_included(namespace: Optional[str], cfg) -> bool:
    """
    Exclusion always wins; an empty include list means every namespace that
    is not excluded.
    """
    namespace = namespace or ""
    if namespace in (cfg.exclude_namespaces or []):
        return False
    if not cfg.include_namespaces:
        return True
    return namespace in cfg.include_namespaces
