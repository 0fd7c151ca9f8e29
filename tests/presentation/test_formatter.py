"""Tests for human and JSON output formatting."""

import json
from stackform.executor.models import ActionOutcome, ActionStatus, ApplyResult
from stackform.planner.models import ActionType
from stackform.planner.planner import create_plan
from stackform.presentation import (
    format_apply_result,
    format_outputs,
    format_plan,
    format_plan_json,
    mask_text,
)

DB_TEMPLATE = """
variables:
  db_password:
    sensitive: true
resources:
  cloud_db_instance.main:
    identifier: app
    engine: mysql
    instance_class: db.t3.micro
    username: admin
    password: ${var.db_password}
    tags:
      note: pw is ${var.db_password}
"""


class TestFormatPlan:
    """Test plan rendering."""

    def test_empty_plan(self, parse, network_template, reconcile, registry, store):
        template = parse(network_template)
        reconcile(template)
        plan = create_plan(template, store.list(), registry=registry)
        assert format_plan(plan) == "No changes. Infrastructure matches the template."

    def test_create_plan(self, parse, network_template, registry):
        """Creates list each attribute with its symbolic value."""
        plan = create_plan(parse(network_template), [], registry=registry)
        text = format_plan(plan, ascii_mode=True)

        assert text.startswith("Execution plan")
        assert "  + cloud_vpc.main" in text
        assert '      + vpc_id = "${cloud_vpc.main.id}"' in text
        assert "Plan: 3 to create, 0 to update, 0 to replace, 0 to delete." in text
        assert "─" not in text

    def test_replace_shown_once(self, parse, network_template, reconcile, registry, store):
        """A replacement renders as one -/+ entry with its reason."""
        reconcile(parse(network_template))
        plan = create_plan(parse(network_template, ami="ami-0new"), store.list(), registry=registry)
        text = format_plan(plan)

        assert text.count("cloud_instance.web") == 1
        assert "-/+ cloud_instance.web  (forces replacement: ami)" in text
        assert '~ ami: "ami-0abc" -> "ami-0new"  # forces replacement' in text
        assert "0 to create, 0 to update, 1 to replace, 0 to delete." in text

    def test_show_unchanged(self, parse, network_template, reconcile, registry, store):
        reconcile(parse(network_template))
        plan = create_plan(parse(network_template, size="t3.large"), store.list(), registry=registry)

        assert "(unchanged)" not in format_plan(plan)
        assert "cloud_vpc.main  (unchanged)" in format_plan(plan, show_unchanged=True)

    def test_delete_shows_id(self, parse, network_template, reconcile, registry, store):
        reconcile(parse(network_template))
        plan = create_plan(None, store.list(), registry=registry, destroy=True)
        text = format_plan(plan)

        assert text.startswith("Destroy plan")
        assert f'id = "{store.get("cloud_vpc.main").provider_id}"' in text

    def test_sensitive_values_masked(self, parse, registry):
        """Sensitive attributes and sensitive variable values never appear."""
        plan = create_plan(parse(DB_TEMPLATE, db_password="hunter22"), [], registry=registry)
        text = format_plan(plan, sensitive_values=["hunter22"])

        assert "hunter22" not in text
        assert "+ password = (sensitive)" in text
        assert "pw is ****" in text

    def test_multiline_value_summarized(self, parse, registry):
        plan = create_plan(parse("""
        resources:
          cloud_instance.web:
            ami: ami-1
            instance_type: t3.micro
            user_data: |
              #!/bin/bash
              echo hi
              echo bye
        """), [], registry=registry)
        assert '+ user_data = "#!/bin/bash ..." (3 lines)' in format_plan(plan)


class TestPlanJson:
    """Test machine-readable plans."""

    def test_json_plan(self, parse, registry):
        plan = create_plan(parse(DB_TEMPLATE, db_password="hunter22"), [], registry=registry)
        text = format_plan_json(plan, sensitive_values=["hunter22"])
        data = json.loads(text)

        assert "hunter22" not in text
        assert data["summary"]["create"] == 1
        action = data["actions"][0]
        assert action["key"] == "create:cloud_db_instance.main"
        changes = {c["name"]: c["after"] for c in action["changes"]}
        assert changes["password"] == "(sensitive)"
        assert changes["tags"] == {"note": "pw is ****"}


class TestFormatApplyResult:
    """Test apply result rendering."""

    def test_result_lines(self):
        result = ApplyResult(outcomes=[
            ActionOutcome(key="create:a", logical_name="a", action=ActionType.CREATE,
                          status=ActionStatus.FAILED, message="quota"),
            ActionOutcome(key="create:b", logical_name="b", action=ActionType.CREATE,
                          status=ActionStatus.SKIPPED, failed_dependency="create:a"),
            ActionOutcome(key="create:c", logical_name="c", action=ActionType.CREATE,
                          status=ActionStatus.SUCCEEDED, provider_id="vpc-1"),
            ActionOutcome(key="no-op:d", logical_name="d", action=ActionType.NO_OP,
                          status=ActionStatus.UNCHANGED),
        ])
        text = format_apply_result(result, ascii_mode=True)

        assert "[FAILED] a: create failed - quota" in text
        assert "[skipped] b: create skipped (depends on create:a)" in text
        assert "[ok] c: create succeeded [vpc-1]" in text
        assert " d:" not in text
        assert text.endswith("Apply failed: 1 succeeded, 1 failed, 1 skipped, 0 canceled, 1 unchanged.")

    def test_canceled_result(self):
        result = ApplyResult(canceled=True, outcomes=[
            ActionOutcome(key="create:a", logical_name="a", action=ActionType.CREATE,
                          status=ActionStatus.CANCELED),
        ])
        assert "Apply canceled: 0 succeeded" in format_apply_result(result)


class TestFormatOutputs:
    """Test output tables and masking."""

    def test_no_outputs(self):
        assert format_outputs({}) == "No outputs."

    def test_outputs_table(self):
        text = format_outputs(
            {"ip": "10.0.0.4", "password": "abc", "url": None, "dsn": "mysql://u:hunter22@h"},
            sensitive_values=["hunter22"],
            sensitive_names=["password"],
        )
        lines = text.splitlines()

        assert lines[0] == "Outputs:"
        assert '  ip       = "10.0.0.4"' in lines
        assert "  password = (sensitive)" in lines
        assert "  url      = (not yet known)" in lines
        assert '  dsn      = "mysql://u:****@h"' in lines

    def test_mask_text_nested(self):
        assert mask_text({"a": ["x-secret-y"], "b": 3}, ["secret"]) == {"a": ["x-****-y"], "b": 3}
