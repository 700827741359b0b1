"""
Manifests Module - Black Box Interface

Purpose: Kubernetes manifests for the workshop's sample application
Interface: application_components(), namespace_manifest(), READINESS_WAITS
Hidden: Object layout, labels, health checks, resource sizing

Manifests are plain dicts; serialization is the kubectl module's concern.
"""

from .application import (
    READINESS_WAITS,
    Component,
    application_components,
    namespace_manifest,
)

__all__ = [
    "READINESS_WAITS",
    "Component",
    "application_components",
    "namespace_manifest",
]
