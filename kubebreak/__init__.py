"""
Kubebreak - Kubernetes Troubleshooting Workshop

Learn by breaking things: deploy a sample multi-tier application,
corrupt it on purpose, then diagnose and repair it.

Architecture:
- Each module is self-contained with clear interfaces
- kubectl and kubeadm are external programs, never reimplemented
- All cluster mutation goes through the kubectl module

Modules:
- kubectl: kubectl subprocess wrapper
- manifests: sample application manifests
- scenarios: graded breakage scenarios
- workshop: workshop manager operations and menu
- host: single-node kubeadm installer, SSH-safe cleanup, status
"""

__version__ = "1.0.0"
