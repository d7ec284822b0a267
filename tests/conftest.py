# tests/conftest.py

from unittest.mock import MagicMock

import pytest

from kubeconnector.collectors.usage.resolver import UsageResolver
from kubeconnector.core.cost_model import CostModel, CostRates
from kubeconnector.core.k8s_client import ClientBundle
from kubeconnector.models.connector import CollectorConfig


@pytest.fixture
def clients():
    """
    A ClientBundle whose API handles are plain MagicMocks, so no test talks
    to a live cluster. Each test assigns AsyncMocks to the calls it needs.
    """
    return ClientBundle(
        api_client=None,
        core_v1=MagicMock(),
        apps_v1=MagicMock(),
        networking_v1=MagicMock(),
        custom_objects=MagicMock(),
        version=MagicMock(),
    )


@pytest.fixture
def collector_config():
    """No namespace filter and no extra labels."""
    return CollectorConfig()


@pytest.fixture
def cost_model():
    """The built-in USD rates."""
    return CostModel(CostRates())


@pytest.fixture
def zero_resolver():
    """A resolver without sources: every object resolves to zero usage."""
    return UsageResolver()
