"""Dependency graph construction and ordering."""

from .dependency_graph import DependencyGraph

__all__ = ["DependencyGraph"]
