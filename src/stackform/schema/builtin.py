"""Built-in resource types registered at startup."""

from .models import AttributeDef as A, AttributeType as T, ResourceType

PROVIDER = "cloud"


def _tags() -> A:
    return A(name="tags", type=T.MAP, default={})


VPC = ResourceType(
    name="cloud_vpc",
    provider=PROVIDER,
    description="Isolated virtual network",
    attributes=[
        A(name="cidr_block", required=True, immutable=True),
        A(name="enable_dns_hostnames", type=T.BOOLEAN, default=True),
        _tags(),
        A(name="arn", computed=True),
    ],
)

SUBNET = ResourceType(
    name="cloud_subnet",
    provider=PROVIDER,
    description="Address range inside a VPC",
    attributes=[
        A(name="vpc_id", required=True, immutable=True),
        A(name="cidr_block", required=True, immutable=True),
        A(name="availability_zone", immutable=True),
        A(name="map_public_ip_on_launch", type=T.BOOLEAN, default=False),
        _tags(),
        A(name="arn", computed=True),
    ],
)

SECURITY_GROUP = ResourceType(
    name="cloud_security_group",
    provider=PROVIDER,
    description="Stateful firewall attached to instances and databases",
    attributes=[
        A(name="name", required=True, immutable=True),
        A(name="description", default="Managed by stackform", immutable=True),
        A(name="vpc_id", immutable=True),
        A(name="ingress", type=T.LIST, default=[]),
        A(name="egress", type=T.LIST, default=[]),
        _tags(),
        A(name="arn", computed=True),
    ],
)

INSTANCE = ResourceType(
    name="cloud_instance",
    provider=PROVIDER,
    description="Compute instance; user_data is an opaque first-boot payload",
    attributes=[
        A(name="ami", required=True, immutable=True),
        A(name="instance_type", required=True),
        A(name="subnet_id", immutable=True),
        A(name="key_name", immutable=True),
        A(name="security_group_ids", type=T.LIST, default=[]),
        A(name="associate_public_ip", type=T.BOOLEAN, default=False),
        A(name="root_volume_size", type=T.INTEGER, default=30),
        A(name="user_data", immutable=True),
        A(name="admin_password", sensitive=True, immutable=True),
        _tags(),
        A(name="private_ip", computed=True),
        A(name="public_ip", computed=True),
        A(name="state", computed=True),
    ],
)

ELASTIC_IP = ResourceType(
    name="cloud_eip",
    provider=PROVIDER,
    description="Static public address, optionally bound to an instance",
    attributes=[
        A(name="instance_id"),
        A(name="domain", default="vpc", immutable=True),
        _tags(),
        A(name="public_ip", computed=True),
        A(name="allocation_id", computed=True),
    ],
)

DB_INSTANCE = ResourceType(
    name="cloud_db_instance",
    provider=PROVIDER,
    description="Managed database server",
    attributes=[
        A(name="identifier", required=True, immutable=True),
        A(name="engine", required=True, immutable=True),
        A(name="engine_version"),
        A(name="instance_class", required=True),
        A(name="allocated_storage", type=T.INTEGER, default=20),
        A(name="db_name", immutable=True),
        A(name="username", required=True, immutable=True),
        A(name="password", required=True, sensitive=True),
        A(name="subnet_ids", type=T.LIST, default=[]),
        A(name="security_group_ids", type=T.LIST, default=[]),
        A(name="publicly_accessible", type=T.BOOLEAN, default=False),
        A(name="skip_final_snapshot", type=T.BOOLEAN, default=True),
        _tags(),
        A(name="endpoint", computed=True),
        A(name="address", computed=True),
        A(name="port", type=T.INTEGER, computed=True),
    ],
)

DB_ACCOUNT = ResourceType(
    name="cloud_db_account",
    provider=PROVIDER,
    description="Login on a managed database; the provider generates a password when none is set",
    attributes=[
        A(name="instance_id", required=True, immutable=True),
        A(name="name", required=True, immutable=True),
        A(name="host", default="%", immutable=True),
        A(name="password", sensitive=True),
    ],
)

DB_GRANT = ResourceType(
    name="cloud_db_grant",
    provider=PROVIDER,
    description="Privileges of a database account on a database",
    attributes=[
        A(name="account_id", required=True, immutable=True),
        A(name="database", required=True, immutable=True),
        A(name="privileges", type=T.LIST, required=True),
    ],
)

BUILTIN_TYPES = [VPC, SUBNET, SECURITY_GROUP, INSTANCE, ELASTIC_IP, DB_INSTANCE, DB_ACCOUNT, DB_GRANT]
