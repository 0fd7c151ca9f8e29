"""Tests for the simulated cloud provider."""

import pytest
from stackform.provider.base import ProviderRegistry
from stackform.provider.simulated import SimulatedCloudProvider
from stackform.schema.models import ResourceType
from stackform.utils.errors import ProviderError, ProviderTransientError


@pytest.fixture
def types(registry):
    """Lookup of built-in resource types by short name."""
    return lambda short: registry.get(f"cloud_{short}")


class TestLifecycle:
    """Test create, read, update and delete."""

    def test_create_assigns_prefixed_id(self, cloud, types):
        """Identifiers carry the type prefix and differ per resource."""
        first = cloud.create(types("vpc"), {"cidr_block": "10.0.0.0/16"})
        second = cloud.create(types("vpc"), {"cidr_block": "10.1.0.0/16"})

        assert first.id.startswith("vpc-")
        assert first.id != second.id
        assert first.outputs["arn"].endswith(f"vpc/{first.id}")

    def test_instance_outputs(self, cloud, types):
        """Instances report a private ip and a public one only when asked."""
        private = cloud.create(types("instance"), {"ami": "ami-1", "instance_type": "t3.micro"})
        public = cloud.create(types("instance"), {"ami": "ami-1", "instance_type": "t3.micro",
                                                   "associate_public_ip": True})

        assert private.outputs["private_ip"].startswith("10.0.")
        assert private.outputs["public_ip"] is None
        assert public.outputs["public_ip"].startswith("198.51.100.")

    def test_db_outputs(self, cloud, types):
        """Database endpoints use the engine's port."""
        result = cloud.create(types("db_instance"), {"identifier": "app", "engine": "postgres"})
        assert result.outputs["port"] == 5432
        assert result.outputs["endpoint"] == "app.local-1.db.cloud.internal:5432"

    def test_db_account_password_generated(self, cloud, types):
        """An account without a password gets one from the provider."""
        db = cloud.create(types("db_instance"), {"identifier": "app", "engine": "mysql"})
        account = cloud.create(types("db_account"), {"instance_id": db.id, "name": "app"})
        assert len(account.outputs["password"]) >= 16

    def test_read(self, cloud, types):
        """Read returns live attributes; a missing resource reads as None."""
        created = cloud.create(types("vpc"), {"cidr_block": "10.0.0.0/16"})
        live = cloud.read(types("vpc"), created.id)

        assert live.attributes == {"cidr_block": "10.0.0.0/16"}
        assert cloud.read(types("vpc"), "vpc-missing") is None
        assert cloud.read(types("subnet"), created.id) is None

    def test_update_mutable(self, cloud, types):
        """Mutable attributes change in place and outputs are kept."""
        created = cloud.create(types("instance"), {"ami": "ami-1", "instance_type": "t3.micro"})
        updated = cloud.update(types("instance"), created.id,
                               {"ami": "ami-1", "instance_type": "t3.large"}, {})

        assert updated.id == created.id
        assert updated.outputs["private_ip"] == created.outputs["private_ip"]
        assert cloud.read(types("instance"), created.id).attributes["instance_type"] == "t3.large"

    def test_update_immutable_rejected(self, cloud, types):
        """Immutable attributes cannot be changed in place."""
        created = cloud.create(types("instance"), {"ami": "ami-1", "instance_type": "t3.micro"})
        with pytest.raises(ProviderError, match="ami"):
            cloud.update(types("instance"), created.id, {"ami": "ami-2", "instance_type": "t3.micro"}, {})

    def test_update_missing_rejected(self, cloud, types):
        with pytest.raises(ProviderError, match="does not exist"):
            cloud.update(types("vpc"), "vpc-missing", {"cidr_block": "10.0.0.0/16"}, {})

    def test_delete_is_idempotent(self, cloud, types):
        """Deleting twice is not an error."""
        created = cloud.create(types("vpc"), {"cidr_block": "10.0.0.0/16"})
        cloud.delete(types("vpc"), created.id)
        cloud.delete(types("vpc"), created.id)
        assert not cloud.exists(created.id)


class TestIntegrity:
    """Test referential integrity checks."""

    def test_link_to_missing_resource_rejected(self, cloud, types):
        with pytest.raises(ProviderError, match="vpc_id"):
            cloud.create(types("subnet"), {"vpc_id": "vpc-nope", "cidr_block": "10.0.1.0/24"})

    def test_link_list_checked(self, cloud, types):
        with pytest.raises(ProviderError, match="security_group_ids"):
            cloud.create(types("instance"), {"ami": "a", "instance_type": "t", "security_group_ids": ["sg-nope"]})

    def test_delete_in_use_rejected(self, cloud, types):
        """A resource still referenced cannot be deleted."""
        vpc = cloud.create(types("vpc"), {"cidr_block": "10.0.0.0/16"})
        subnet = cloud.create(types("subnet"), {"vpc_id": vpc.id, "cidr_block": "10.0.1.0/24"})

        with pytest.raises(ProviderError, match="DependencyViolation"):
            cloud.delete(types("vpc"), vpc.id)

        cloud.delete(types("subnet"), subnet.id)
        cloud.delete(types("vpc"), vpc.id)
        assert not cloud.exists(vpc.id)

    def test_address_detaches(self, cloud, types):
        """An instance can be deleted while an address still points at it."""
        instance = cloud.create(types("instance"), {"ami": "a", "instance_type": "t"})
        cloud.create(types("eip"), {"instance_id": instance.id})

        cloud.delete(types("instance"), instance.id)
        assert not cloud.exists(instance.id)


class TestFaults:
    """Test fault injection."""

    def test_matching_fault(self, cloud, types):
        """Only calls matching the filter fail."""
        cloud.inject_failure("cloud_vpc", match={"cidr_block": "10.0.0.0/16"}, message="quota")
        with pytest.raises(ProviderError, match="quota"):
            cloud.create(types("vpc"), {"cidr_block": "10.0.0.0/16"})
        assert cloud.create(types("vpc"), {"cidr_block": "10.1.0.0/16"}).id

    def test_transient_fault_with_limit(self, cloud, types):
        """A limited fault stops firing after its count."""
        cloud.inject_failure("cloud_vpc", transient=True, times=1)
        with pytest.raises(ProviderTransientError):
            cloud.create(types("vpc"), {"cidr_block": "10.0.0.0/16"})
        assert cloud.create(types("vpc"), {"cidr_block": "10.0.0.0/16"}).id

    def test_calls_recorded(self, cloud, types):
        cloud.create(types("vpc"), {"cidr_block": "10.0.0.0/16"})
        assert cloud.calls == [("create", "cloud_vpc", {"cidr_block": "10.0.0.0/16"})]


class TestPersistence:
    """Test the JSON mirror shared between runs."""

    def test_resources_survive_reload(self, tmp_path, types):
        path = tmp_path / "cloud.json"
        first = SimulatedCloudProvider(path=str(path))
        created = first.create(types("vpc"), {"cidr_block": "10.0.0.0/16"})

        second = SimulatedCloudProvider(path=str(path))
        assert second.exists(created.id)
        assert second.create(types("vpc"), {"cidr_block": "10.1.0.0/16"}).id != created.id

    def test_corrupt_file_rejected(self, tmp_path):
        path = tmp_path / "cloud.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(ProviderError):
            SimulatedCloudProvider(path=str(path))

    def test_region_configured(self, cloud, types):
        """The providers block region shows up in identifiers and endpoints."""
        cloud.configure({"region": "eu-west-1"})
        result = cloud.create(types("db_instance"), {"identifier": "app", "engine": "mysql"})
        assert result.outputs["address"] == "app.eu-west-1.db.cloud.internal"


class TestProviderRegistry:
    """Test provider dispatch."""

    def test_dispatch_by_provider_name(self, cloud, registry):
        providers = ProviderRegistry({"cloud": cloud})
        assert providers.for_type(registry.get("cloud_vpc")) is cloud

    def test_unknown_provider(self, cloud):
        providers = ProviderRegistry({"cloud": cloud})
        other = ResourceType(name="other_thing", provider="other", attributes=[])
        with pytest.raises(ProviderError):
            providers.for_type(other)
