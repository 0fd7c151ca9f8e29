"""Tests for the project workspace."""

import json
import pytest
from stackform.config import StackformConfig
from stackform.planner.models import Plan
from stackform.provider.http import HttpProvider
from stackform.provider.simulated import SimulatedCloudProvider
from stackform.workspace import Workspace, build_providers
from stackform.utils.errors import ConfigError, StalePlanError

SECRET_TEMPLATE = """
variables:
  db_password:
    sensitive: true
providers:
  cloud:
    region: eu-west-1
resources:
  cloud_db_instance.main:
    identifier: app
    engine: mysql
    instance_class: db.t3.micro
    username: admin
    password: ${var.db_password}
  cloud_db_account.app:
    instance_id: ${cloud_db_instance.main.id}
    name: app
outputs:
  db_endpoint: ${cloud_db_instance.main.endpoint}
  app_password: ${cloud_db_account.app.password}
"""


@pytest.fixture
def project(tmp_path, network_template):
    """Project directory holding the network template."""
    (tmp_path / "stack.yaml").write_text(network_template, encoding="utf-8")
    return tmp_path


@pytest.fixture
def workspace(project):
    return Workspace(project, environ={})


class TestInitialize:
    """Test working directory creation."""

    def test_creates_artifacts(self, workspace, project):
        created = workspace.initialize()

        assert created == {"config": True, "state": True, "schemas": True}
        assert (project / ".stackform" / "config.yaml").exists()
        state = json.loads((project / ".stackform" / "state.json").read_text(encoding="utf-8"))
        assert state["records"] == {}
        schemas = json.loads((project / ".stackform" / "schemas.json").read_text(encoding="utf-8"))
        assert "cloud_vpc" in [s["name"] for s in schemas]

    def test_existing_files_kept(self, workspace):
        workspace.initialize()
        created = workspace.initialize()
        assert created["config"] is False
        assert created["state"] is False


class TestPipeline:
    """Test load, plan, apply and outputs through a workspace."""

    def test_load_with_assignments(self, workspace, project):
        template = workspace.load(str(project / "stack.yaml"), assignments=["size=t3.large"])
        assert template.get("cloud_instance.web").attributes["instance_type"] == "t3.large"

    def test_plan_apply_persists(self, workspace, project):
        """State and the simulated cloud survive into a new workspace."""
        template = workspace.load(str(project / "stack.yaml"))
        result = workspace.apply(workspace.plan(template))
        assert result.ok

        again = Workspace(project, environ={})
        assert again.store.names() == ["cloud_vpc.main", "cloud_subnet.app", "cloud_instance.web"]
        assert again.plan(again.load(str(project / "stack.yaml"))).is_empty()
        assert again.outputs(template)["web_ip"].startswith("10.0.")

    def test_refresh_from_config(self, project):
        """plan.refresh in config makes plans read live resources."""
        workspace = Workspace(project, environ={"STACKFORM_REFRESH": "true"})
        template = workspace.load(str(project / "stack.yaml"))
        workspace.apply(workspace.plan(template))

        cloud = workspace.providers.for_type(workspace.registry.get("cloud_vpc"))
        cloud.forget(workspace.store.get("cloud_instance.web").provider_id)

        plan = workspace.plan(template)
        assert plan.refreshed
        assert plan.get("create:cloud_instance.web") is not None
        assert workspace.plan(template, refresh=False).is_empty()

    def test_destroy(self, workspace, project):
        template = workspace.load(str(project / "stack.yaml"))
        workspace.apply(workspace.plan(template))
        result = workspace.apply(workspace.plan(template, destroy=True))

        assert result.ok
        assert workspace.store.list() == []

    def test_template_providers_configured(self, tmp_path):
        (tmp_path / "db.yaml").write_text(SECRET_TEMPLATE, encoding="utf-8")
        workspace = Workspace(tmp_path, environ={})
        template = workspace.load(str(tmp_path / "db.yaml"), assignments=["db_password=hunter22"])
        workspace.apply(workspace.plan(template))

        assert workspace.outputs(template)["db_endpoint"] == "app.eu-west-1.db.cloud.internal:3306"
        assert workspace.sensitive_outputs(template) == ["app_password"]
        assert template.sensitive_values() == ["hunter22"]


class TestSavedPlans:
    """Test staleness checks of saved plans."""

    def test_fresh_plan_accepted(self, workspace, project):
        template = workspace.load(str(project / "stack.yaml"))
        workspace.check_plan(workspace.plan(template), template)

    def test_state_changed(self, workspace, project):
        template = workspace.load(str(project / "stack.yaml"))
        saved = workspace.plan(template)
        workspace.apply(workspace.plan(template))

        with pytest.raises(StalePlanError, match="serial"):
            workspace.check_plan(saved, template)

    def test_template_changed(self, workspace, project):
        saved = workspace.plan(workspace.load(str(project / "stack.yaml")))
        other = workspace.load(str(project / "stack.yaml"), assignments=["size=t3.large"])

        with pytest.raises(StalePlanError, match="different template"):
            workspace.check_plan(saved, other)

    def test_saved_plan_applies(self, workspace, project, tmp_path):
        template = workspace.load(str(project / "stack.yaml"))
        path = tmp_path / "plan.json"
        workspace.plan(template).save(path)

        loaded = Plan.load(path)
        workspace.check_plan(loaded, template)
        assert workspace.apply(loaded).ok
        assert workspace.store.get("cloud_subnet.app").attributes["vpc_id"].startswith("vpc-")


class TestBuildProviders:
    """Test provider construction from config."""

    def test_simulated_default(self, tmp_path):
        providers = build_providers(StackformConfig(), tmp_path)
        assert providers.names() == ["cloud"]

    def test_http_requires_endpoint(self):
        config = StackformConfig(provider={"kind": "http"})
        with pytest.raises(ConfigError, match="endpoint"):
            build_providers(config)

    def test_http_provider(self, registry):
        config = StackformConfig(provider={"kind": "http", "endpoint": "https://cloud.example", "region": "r1"})
        providers = build_providers(config)
        provider = providers.for_type(registry.get("cloud_vpc"))
        assert isinstance(provider, HttpProvider)
        assert provider.session.headers["X-Cloud-Region"] == "r1"

    def test_region_for_simulated(self, tmp_path, registry):
        config = StackformConfig(provider={"region": "ap-south-1"})
        provider = build_providers(config, tmp_path).for_type(registry.get("cloud_vpc"))
        assert isinstance(provider, SimulatedCloudProvider)
        assert provider.region == "ap-south-1"
