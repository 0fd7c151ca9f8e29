"""Project workspace: wires configuration, state, providers and the pipeline together."""

import json
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional
from .config import ProviderKind, StackformConfig, load_settings, save_config
from .config.paths import get_workdir
from .executor.executor import Executor, resolve_outputs
from .executor.models import ApplyResult
from .graph.dependency_graph import DependencyGraph
from .ingest.models import Template, collect_references
from .ingest.template_loader import collect_variable_values, load_template
from .ingest.template_parser import parse_template
from .planner.models import Plan
from .planner.planner import create_plan
from .planner.refresh import refresh_records
from .provider.base import ProviderRegistry
from .provider.http import HttpProvider
from .provider.simulated import SimulatedCloudProvider
from .schema.builtin import PROVIDER
from .schema.registry import SchemaRegistry, get_default_registry
from .state.store import FileStateStore, StateStore
from .utils.errors import ConfigError, StalePlanError
from .utils.logging import get_logger

logger = get_logger("workspace")

PROJECT_CONFIG_TEMPLATE = {
    "state_path": ".stackform/state.json",
    "plan": {"refresh": False},
    "apply": {"parallelism": 10},
    "provider": {"kind": "simulated", "cloud_path": ".stackform/cloud.json"},
}


def build_providers(config: StackformConfig, base_dir: Optional[Path] = None) -> ProviderRegistry:
    """
    Build the provider registry described by ``config.provider``.

    Raises:
        ConfigError: If the http provider has no endpoint
    """
    settings = config.provider
    if settings.kind == ProviderKind.HTTP:
        if not settings.endpoint:
            raise ConfigError("provider.endpoint is required when provider.kind is 'http'")
        provider = HttpProvider(settings.endpoint, token_env=settings.token_env, timeout=settings.timeout)
    else:
        cloud_path = config.resolve_path(settings.cloud_path, base_dir) if settings.cloud_path else None
        provider = SimulatedCloudProvider(path=str(cloud_path) if cloud_path else None)
    if settings.region:
        provider.configure({"region": settings.region})
    return ProviderRegistry({PROVIDER: provider})


class Workspace:
    """
    A project directory with its configuration, state store and providers.

    One Workspace serves one command: the same provider instances are used
    for refresh and apply.
    """

    def __init__(
        self,
        base_dir: Optional[Path] = None,
        config: Optional[StackformConfig] = None,
        store: Optional[StateStore] = None,
        providers: Optional[ProviderRegistry] = None,
        registry: Optional[SchemaRegistry] = None,
        environ: Optional[Mapping[str, str]] = None
    ):
        self.base_dir = Path(base_dir) if base_dir else Path.cwd()
        self.environ = environ
        self.config = config or load_settings(self.base_dir, environ)
        self.registry = registry or get_default_registry()
        self.store = store or FileStateStore(self.config.resolve_path(self.config.state_path, self.base_dir))
        self._providers = providers

    @property
    def providers(self) -> ProviderRegistry:
        if self._providers is None:
            self._providers = build_providers(self.config, self.base_dir)
        return self._providers

    def initialize(self) -> Dict[str, bool]:
        """
        Create the .stackform/ working directory.

        Writes a project config, an empty state document and a cache of
        the schema registry. Existing files are left untouched.

        Returns:
            Mapping of created artifact name to whether it was created
        """
        workdir = get_workdir(self.base_dir)
        workdir.mkdir(parents=True, exist_ok=True)
        created = {}

        config_path = workdir / "config.yaml"
        created["config"] = not config_path.exists()
        if created["config"]:
            save_config(dict(PROJECT_CONFIG_TEMPLATE), config_path)

        created["state"] = self.store.initialize() if isinstance(self.store, FileStateStore) else False

        schemas_path = workdir / "schemas.json"
        with open(schemas_path, 'w', encoding='utf-8') as f:
            json.dump([t.model_dump(mode="json") for t in self.registry.all()], f, indent=2)
        created["schemas"] = True

        logger.info(f"Initialized workspace in {workdir}")
        return created

    def load(
        self,
        template_path: str,
        var_files: Iterable[str] = (),
        assignments: Iterable[str] = ()
    ) -> Template:
        """Load and parse a template with variable values from all sources."""
        text, template_dir = load_template(template_path)
        values = collect_variable_values(var_files, assignments, self.environ)
        template = parse_template(text, values, base_dir=template_dir, registry=self.registry)
        DependencyGraph().build_from_instances(template.resources)
        return template

    def plan(self, template: Optional[Template], destroy: bool = False, refresh: Optional[bool] = None) -> Plan:
        """Compute a plan against current state, optionally refreshing it first."""
        refresh = self.config.plan.refresh if refresh is None else refresh
        snapshot = self.store.snapshot()
        records = list(snapshot.records.values())

        if template is not None and template.providers:
            self.providers.configure(template.providers)
        if refresh and records:
            records = refresh_records(records, self.providers, self.registry)

        return create_plan(
            template,
            records,
            registry=self.registry,
            destroy=destroy,
            refreshed=bool(refresh),
            state_serial=snapshot.serial,
        )

    def executor(self, parallelism: Optional[int] = None) -> Executor:
        return Executor(
            self.store,
            self.providers,
            registry=self.registry,
            parallelism=parallelism or self.config.apply.parallelism,
        )

    def apply(self, plan: Plan, parallelism: Optional[int] = None, executor: Optional[Executor] = None) -> ApplyResult:
        """Execute ``plan``; failures are reported in the result, not raised."""
        executor = executor or self.executor(parallelism)
        return executor.execute(plan)

    def check_plan(self, plan: Plan, template: Optional[Template]) -> None:
        """
        Verify a saved plan still matches the template and the state.

        Raises:
            StalePlanError: If state changed since planning or the template differs
        """
        serial = self.store.snapshot().serial
        if plan.state_serial != serial:
            raise StalePlanError(
                f"Saved plan was computed against state serial {plan.state_serial}, state is now at {serial}"
            )
        if not plan.destroy and template is not None and plan.template_digest != template.digest:
            raise StalePlanError("Saved plan was computed from a different template")

    def outputs(self, template: Template) -> Dict[str, Any]:
        return resolve_outputs(template, self.store)

    def sensitive_outputs(self, template: Template) -> List[str]:
        """Names of outputs that reference a sensitive attribute."""
        names = []
        for name, value in template.outputs.items():
            for ref in collect_references(value):
                instance = template.get(ref.target)
                if instance and ref.attribute in self.registry.get(instance.resource_type).sensitive_attributes:
                    names.append(name)
                    break
        return names
