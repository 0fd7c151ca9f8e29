"""Tests for the resource schema registry."""

import pytest
from stackform.ingest.models import Interpolation, Reference
from stackform.schema.models import AttributeDef, AttributeType, Operation, ResourceType
from stackform.schema.registry import SchemaRegistry
from stackform.utils.errors import SchemaValidationError, UnknownResourceTypeError


@pytest.fixture
def widget_type():
    """Small resource type with one attribute of each flavour."""
    return ResourceType(
        name="test_widget",
        provider="test",
        attributes=[
            AttributeDef(name="name", required=True, immutable=True),
            AttributeDef(name="size", type=AttributeType.INTEGER, default=1),
            AttributeDef(name="labels", type=AttributeType.MAP, default={}),
            AttributeDef(name="secret", sensitive=True),
            AttributeDef(name="url", computed=True),
        ],
    )


@pytest.fixture
def widget_registry(widget_type):
    return SchemaRegistry([widget_type])


class TestRegistration:
    """Test registering and looking up types."""

    def test_get_registered_type(self, widget_registry, widget_type):
        """Registered types are returned by name."""
        assert widget_registry.get("test_widget") is widget_type
        assert widget_registry.has("test_widget")
        assert widget_registry.names() == ["test_widget"]

    def test_unknown_type(self, widget_registry):
        """Looking up an unregistered type raises UnknownResourceTypeError."""
        with pytest.raises(UnknownResourceTypeError):
            widget_registry.get("test_gadget")

    def test_duplicate_registration_rejected(self, widget_registry, widget_type):
        """A type name can only be registered once."""
        with pytest.raises(ValueError):
            widget_registry.register(widget_type)

    def test_type_properties(self, widget_type):
        """Derived attribute lists follow the attribute flags."""
        assert widget_type.outputs == ["id", "url"]
        assert widget_type.immutable_attributes == ["name"]
        assert widget_type.sensitive_attributes == ["secret"]
        assert "url" not in widget_type.settable
        assert widget_type.supports(Operation.UPDATE)

    def test_builtin_types(self, registry):
        """The default registry carries the cloud types."""
        for name in ("cloud_vpc", "cloud_subnet", "cloud_instance", "cloud_db_instance", "cloud_eip"):
            assert registry.has(name)
        assert "admin_password" in registry.get("cloud_instance").sensitive_attributes


class TestValidateAttributes:
    """Test attribute validation and default filling."""

    def test_defaults_filled(self, widget_registry):
        """Missing optional attributes get their defaults."""
        validated = widget_registry.validate_attributes("test_widget", {"name": "a"})
        assert validated == {"name": "a", "size": 1, "labels": {}}

    def test_defaults_are_copies(self, widget_registry):
        """Mutable defaults are not shared between instances."""
        first = widget_registry.validate_attributes("test_widget", {"name": "a"})
        first["labels"]["x"] = "y"
        second = widget_registry.validate_attributes("test_widget", {"name": "b"})
        assert second["labels"] == {}

    def test_schema_order(self, widget_registry):
        """Validated attributes follow schema order, not input order."""
        validated = widget_registry.validate_attributes("test_widget", {"size": 3, "name": "a"})
        assert list(validated) == ["name", "size", "labels"]

    def test_missing_required(self, widget_registry):
        """A missing required attribute is reported with the instance name."""
        with pytest.raises(SchemaValidationError) as exc_info:
            widget_registry.validate_attributes("test_widget", {}, "test_widget.a")
        assert "missing required attribute 'name'" in str(exc_info.value)
        assert str(exc_info.value).startswith("test_widget.a:")

    def test_unknown_attribute(self, widget_registry):
        """Attributes not in the schema are rejected."""
        with pytest.raises(SchemaValidationError, match="unknown attribute 'colour'"):
            widget_registry.validate_attributes("test_widget", {"name": "a", "colour": "red"})

    def test_computed_attribute_not_settable(self, widget_registry):
        """Computed attributes cannot be set by the template."""
        with pytest.raises(SchemaValidationError, match="computed"):
            widget_registry.validate_attributes("test_widget", {"name": "a", "url": "http://x"})

    def test_type_mismatch(self, widget_registry):
        """Values must match the declared attribute type."""
        with pytest.raises(SchemaValidationError, match="expects integer"):
            widget_registry.validate_attributes("test_widget", {"name": "a", "size": "big"})

    def test_boolean_is_not_integer(self, widget_registry):
        """True is not accepted where an integer is expected."""
        with pytest.raises(SchemaValidationError):
            widget_registry.validate_attributes("test_widget", {"name": "a", "size": True})

    def test_all_problems_reported(self, widget_registry):
        """Every problem of one instance is reported in a single error."""
        with pytest.raises(SchemaValidationError) as exc_info:
            widget_registry.validate_attributes("test_widget", {"size": "big", "colour": "red"})
        message = str(exc_info.value)
        assert "colour" in message and "size" in message and "name" in message

    def test_symbolic_values_accepted(self, widget_registry):
        """References and interpolations pass any type check."""
        ref = Reference(target="test_widget.b", attribute="size")
        text = Interpolation(parts=["n-", Reference(target="test_widget.b")])
        validated = widget_registry.validate_attributes("test_widget", {"name": text, "size": ref})
        assert validated["size"] == ref
        assert validated["name"] == text

    def test_unknown_type_names_instance(self, widget_registry):
        """Validating against an unknown type names the offending instance."""
        with pytest.raises(UnknownResourceTypeError) as exc_info:
            widget_registry.validate_attributes("test_gadget", {}, "test_gadget.x")
        assert "test_gadget.x" in str(exc_info.value)
