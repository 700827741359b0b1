"""
Kubectl Module - Black Box Interface

Purpose: Every interaction with the cluster API server
Interface: Kubectl (apply, patch, delete, scale, taint, wait, get), KubectlResult
Hidden: Subprocess invocation, YAML streaming on stdin, output parsing

Can be replaced with a different transport (e.g. a Kubernetes client library)
as long as the Kubectl interface is preserved.
"""

from .runner import (
    Kubectl,
    KubectlError,
    KubectlNotFound,
    KubectlResult,
    KubectlTimeout,
    to_yaml_stream,
)

__all__ = [
    "Kubectl",
    "KubectlError",
    "KubectlNotFound",
    "KubectlResult",
    "KubectlTimeout",
    "to_yaml_stream",
]
