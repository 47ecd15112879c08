"""Kubernetes install hooks, custom resource types and resolved-manifest output."""

__version__ = "0.4.1"

__all__ = [
    "api",
    "kubectl",
    "postinstall",
    "predelete",
    "preinstall",
    "resolve_output",
]