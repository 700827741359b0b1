"""
Kubebreak Modules - Black Box Architecture

- kubectl:   subprocess wrapper, the only path to the cluster API
- manifests: sample application objects as plain dicts
- scenarios: the five failure scenarios and their registry
- workshop:  deploy/status/test/break/clean/reset operations and menu
- host:      single-node kubeadm install and SSH-safe removal

Higher modules import lower ones only through each package's __init__.
"""
