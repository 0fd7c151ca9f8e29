"""Custom exception classes for stackform."""

from typing import List, Optional


class StackformError(Exception):
    """Base exception for all stackform errors."""
    pass


class ConfigError(StackformError):
    """Raised when configuration is invalid or missing."""
    pass


class TemplateLoadError(StackformError):
    """Raised when a template or values file cannot be read."""
    pass


class ParseError(StackformError):
    """Raised when template text is syntactically or structurally invalid."""

    def __init__(self, message: str, logical_name: Optional[str] = None):
        self.logical_name = logical_name
        if logical_name:
            message = f"{logical_name}: {message}"
        super().__init__(message)


class MissingVariableError(ParseError):
    """Raised when a variable has no supplied value and no default."""

    def __init__(self, variable: str, logical_name: Optional[str] = None):
        self.variable = variable
        super().__init__(f"No value for required variable '{variable}'", logical_name)


class UnresolvedReferenceError(ParseError):
    """Raised when a reference names an instance that is not in the template."""

    def __init__(self, target: str, logical_name: Optional[str] = None):
        self.target = target
        super().__init__(f"Reference to undeclared resource '{target}'", logical_name)


class UnknownResourceTypeError(ParseError):
    """Raised when a resource type is not in the schema registry."""

    def __init__(self, resource_type: str, logical_name: Optional[str] = None):
        self.resource_type = resource_type
        super().__init__(f"Unknown resource type '{resource_type}'", logical_name)


class SchemaValidationError(ParseError):
    """Raised when attribute values do not match the resource type schema."""
    pass


class CycleDetectedError(StackformError):
    """Raised when resource references form a cycle."""

    def __init__(self, cycle: List[str]):
        self.cycle = list(cycle)
        path = " -> ".join(self.cycle + self.cycle[:1])
        super().__init__(f"Dependency cycle detected: {path}")


class UnsupportedOperationError(StackformError):
    """Raised when a plan needs an operation the resource type does not support."""

    def __init__(self, logical_name: str, resource_type: str, operation: str):
        self.logical_name = logical_name
        self.resource_type = resource_type
        self.operation = operation
        super().__init__(f"{logical_name}: resource type '{resource_type}' does not support {operation}")


class StateError(StackformError):
    """Raised when the state store cannot be read or written."""
    pass


class ProviderError(StackformError):
    """Raised by a provider when an operation is rejected."""
    pass


class ProviderTransientError(ProviderError):
    """Raised by a provider for failures a caller may retry (timeouts, 5xx)."""
    pass


class ActionFailedError(StackformError):
    """Raised when a planned action fails against its provider."""

    def __init__(self, logical_name: str, action: str, cause: Exception):
        self.logical_name = logical_name
        self.action = action
        self.cause = cause
        super().__init__(f"{action} {logical_name} failed: {cause}")


class ApplyError(StackformError):
    """Raised when one or more actions of a plan failed."""

    def __init__(self, failures: List[ActionFailedError]):
        self.failures = list(failures)
        names = ", ".join(f.logical_name for f in self.failures)
        super().__init__(f"{len(self.failures)} action(s) failed: {names}")


class StalePlanError(StackformError):
    """Raised when a saved plan no longer matches the current state."""
    pass


class ApplyCanceled(StackformError):
    """Raised when an apply is interrupted before every action ran."""
    pass
