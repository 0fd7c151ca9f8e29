"""Shared fixtures: sample templates, simulated cloud and in-memory state."""

import os
import textwrap
import pytest
from stackform.executor.executor import Executor
from stackform.ingest.template_parser import parse_template
from stackform.planner.planner import create_plan
from stackform.provider.base import ProviderRegistry
from stackform.provider.simulated import SimulatedCloudProvider
from stackform.schema.registry import get_default_registry
from stackform.state.store import InMemoryStateStore

NETWORK_TEMPLATE = """
variables:
  size: t3.micro
  ami: ami-0abc
resources:
  cloud_vpc.main:
    cidr_block: 10.0.0.0/16
  cloud_subnet.app:
    vpc_id: ${cloud_vpc.main.id}
    cidr_block: 10.0.1.0/24
  cloud_instance.web:
    ami: ${var.ami}
    instance_type: ${var.size}
    subnet_id: ${cloud_subnet.app.id}
outputs:
  web_ip: ${cloud_instance.web.private_ip}
"""


@pytest.fixture
def registry():
    """Built-in schema registry."""
    return get_default_registry()


@pytest.fixture
def cloud():
    """Fresh in-memory simulated cloud."""
    return SimulatedCloudProvider()


@pytest.fixture
def providers(cloud):
    """Provider registry serving the built-in types from the simulated cloud."""
    return ProviderRegistry({"cloud": cloud})


@pytest.fixture
def store():
    """Empty in-memory state store."""
    return InMemoryStateStore()


@pytest.fixture
def parse():
    """Parse dedented template text with keyword variable values."""
    def _parse(text, **values):
        return parse_template(textwrap.dedent(text), values)
    return _parse


@pytest.fixture
def reconcile(store, providers, registry):
    """Plan a template against the store and apply it; returns (plan, result)."""
    def _reconcile(template, destroy=False, parallelism=4):
        plan = create_plan(template, store.list(), registry=registry, destroy=destroy,
                           state_serial=store.snapshot().serial)
        result = Executor(store, providers, registry=registry, parallelism=parallelism).execute(plan)
        return plan, result
    return _reconcile


@pytest.fixture
def network_template():
    """VPC, subnet and instance chained by references."""
    return NETWORK_TEMPLATE


@pytest.fixture(autouse=True)
def isolated_home(tmp_path, monkeypatch):
    """Keep user config and STACKFORM_* variables of the real environment out of tests."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    for name in list(os.environ):
        if name.startswith("STACKFORM_"):
            monkeypatch.delenv(name)
    return home
