#!/usr/bin/env python3
"""
kubectl subprocess wrapper.

Each method builds an argument list, runs ``kubectl`` synchronously and
returns a KubectlResult. Failures raise KubectlError unless the caller
passes ``check=False`` or ``ignore_missing=True``.
"""

import json
import logging
import subprocess
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

import yaml

from kubebreak.errors import KubebreakError

logger = logging.getLogger("kubebreak.kubectl")

NOT_FOUND_MARKERS = ("NotFound", "not found")


@dataclass
class KubectlResult:
    """Outcome of a single kubectl invocation."""
    args: List[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def success(self) -> bool:
        return self.returncode == 0

    @property
    def not_found(self) -> bool:
        return not self.success and any(m in self.stderr for m in NOT_FOUND_MARKERS)

    @property
    def command(self) -> str:
        return " ".join(self.args)


class KubectlError(KubebreakError):
    """kubectl exited non-zero."""

    def __init__(self, result: KubectlResult):
        self.result = result
        detail = (result.stderr or result.stdout).strip()
        message = f"kubectl failed ({result.returncode}): {result.command}"
        if detail:
            message += f"\n{detail}"
        super().__init__(message)


class KubectlTimeout(KubectlError):
    """kubectl did not finish within the timeout."""


class KubectlNotFound(KubebreakError):
    """The kubectl binary is not installed or not on PATH."""


def to_yaml_stream(manifests: Iterable[Dict[str, Any]]) -> str:
    """Serialize manifests into a multi-document YAML stream."""
    return yaml.safe_dump_all(list(manifests), sort_keys=False, default_flow_style=False)


class Kubectl:
    """Synchronous kubectl runner bound to an optional default namespace."""

    def __init__(
        self,
        binary: str = "kubectl",
        namespace: Optional[str] = None,
        timeout: int = 300,
        kubeconfig: Optional[str] = None,
    ):
        self.binary = binary
        self.namespace = namespace
        self.timeout = timeout
        self.kubeconfig = kubeconfig

    def _ns_args(self, namespace: Optional[str]) -> List[str]:
        ns = namespace if namespace is not None else self.namespace
        return ["-n", ns] if ns else []

    def run(
        self,
        args: List[str],
        input_text: Optional[str] = None,
        check: bool = True,
        timeout: Optional[int] = None,
    ) -> KubectlResult:
        """
        Execute kubectl with the given arguments.

        Args:
            args: kubectl command arguments (without the binary)
            input_text: Text piped to stdin, e.g. manifests for ``apply -f -``
            check: Raise KubectlError on non-zero exit
            timeout: Seconds before the command is abandoned

        Returns:
            KubectlResult with captured output
        """
        cmd = [self.binary]
        if self.kubeconfig:
            cmd += ["--kubeconfig", str(self.kubeconfig)]
        cmd += list(args)
        logger.debug(f"Running: {' '.join(cmd)}")

        try:
            process = subprocess.run(
                cmd,
                input=input_text,
                capture_output=True,
                text=True,
                timeout=timeout or self.timeout,
            )
        except FileNotFoundError:
            raise KubectlNotFound(
                f"'{self.binary}' not found. Install kubectl and ensure it is on PATH."
            )
        except subprocess.TimeoutExpired:
            raise KubectlTimeout(KubectlResult(
                args=cmd, returncode=-1, stderr="Command timed out"
            ))

        result = KubectlResult(
            args=cmd,
            returncode=process.returncode,
            stdout=process.stdout or "",
            stderr=process.stderr or "",
        )

        if result.success:
            if result.stderr.strip():
                logger.warning(result.stderr.strip())
        else:
            logger.debug(f"kubectl exited {result.returncode}: {result.stderr.strip()}")
            if check:
                raise KubectlError(result)

        return result

    # Mutations

    def apply(self, manifests: Iterable[Dict[str, Any]], check: bool = True) -> KubectlResult:
        """Apply manifests in a single ``kubectl apply -f -`` call."""
        return self.run(["apply", "-f", "-"], input_text=to_yaml_stream(manifests), check=check)

    def apply_file(self, path: str, namespace: Optional[str] = None, check: bool = True) -> KubectlResult:
        """Apply a manifest file or URL."""
        args = ["apply", "-f", str(path)]
        if namespace:
            args += ["-n", namespace]
        return self.run(args, check=check)

    def patch(
        self,
        kind: str,
        name: str,
        body: Dict[str, Any],
        namespace: Optional[str] = None,
        patch_type: Optional[str] = None,
    ) -> KubectlResult:
        """Patch a resource; ``patch_type`` is ``strategic`` (default), ``merge`` or ``json``."""
        args = ["patch", kind, name] + self._ns_args(namespace)
        if patch_type:
            args += ["--type", patch_type]
        args += ["-p", json.dumps(body, separators=(",", ":"))]
        return self.run(args)

    def delete(
        self,
        kind: str,
        name: Optional[str] = None,
        selector: Optional[str] = None,
        namespace: Optional[str] = None,
        ignore_missing: bool = True,
        extra_args: Optional[List[str]] = None,
        timeout: Optional[int] = None,
    ) -> KubectlResult:
        """
        Delete a resource by name or label selector.

        With ``ignore_missing`` any failure is tolerated and logged; the
        result is returned for inspection.
        """
        args = ["delete", kind]
        if name:
            args.append(name)
        if selector:
            args += ["-l", selector]
        args += self._ns_args(namespace)
        args += list(extra_args or [])
        result = self.run(args, check=not ignore_missing, timeout=timeout)
        if not result.success:
            logger.debug(f"Ignoring failed delete of {kind} {name or selector}")
        return result

    def delete_cluster_scoped(self, kind: str, name: str, ignore_missing: bool = True) -> KubectlResult:
        """Delete a cluster-scoped resource (no namespace flag)."""
        return self.run(["delete", kind, name], check=not ignore_missing)

    def scale(self, kind: str, name: str, replicas: int, namespace: Optional[str] = None) -> KubectlResult:
        return self.run(["scale", kind, name] + self._ns_args(namespace) + [f"--replicas={replicas}"])

    def rollout_restart(self, kind: str, name: str, namespace: Optional[str] = None) -> KubectlResult:
        return self.run(["rollout", "restart", kind, name] + self._ns_args(namespace))

    def taint(self, node: str, spec: str, overwrite: bool = False, check: bool = True) -> KubectlResult:
        """Add a taint such as ``workshop=broken:NoSchedule``."""
        args = ["taint", "nodes", node, spec]
        if overwrite:
            args.append("--overwrite")
        return self.run(args, check=check)

    def untaint(self, node: str, key: str) -> KubectlResult:
        """Remove every taint with the given key; absence is tolerated."""
        return self.run(["taint", "nodes", node, f"{key}-"], check=False)

    # Queries

    def wait_ready(self, selector: str, namespace: Optional[str] = None, timeout: int = 60, check: bool = True) -> KubectlResult:
        """Block until pods matching the selector are Ready."""
        args = [
            "wait", "--for=condition=ready", "pod", "-l", selector,
        ] + self._ns_args(namespace) + [f"--timeout={timeout}s"]
        return self.run(args, check=check, timeout=timeout + 30)

    def get_json(self, kind: str, name: Optional[str] = None, namespace: Optional[str] = None) -> Dict[str, Any]:
        """Get a resource (or list) as parsed JSON."""
        args = ["get", kind] + ([name] if name else []) + self._ns_args(namespace) + ["-o", "json"]
        result = self.run(args)
        try:
            return json.loads(result.stdout)
        except json.JSONDecodeError as e:
            raise KubebreakError(f"Unparseable kubectl output for {result.command}: {e}")

    def jsonpath(self, kind: str, expression: str, name: Optional[str] = None, namespace: Optional[str] = None) -> str:
        args = ["get", kind] + ([name] if name else []) + self._ns_args(namespace)
        args += ["-o", f"jsonpath={expression}"]
        return self.run(args).stdout.strip()

    def exists(self, kind: str, name: str, namespace: Optional[str] = None) -> bool:
        return self.run(["get", kind, name] + self._ns_args(namespace), check=False).success

    def table(self, args: List[str], namespace: Optional[str] = None, check: bool = False) -> KubectlResult:
        """Run a read-only command whose text output is shown to the user."""
        return self.run(list(args) + self._ns_args(namespace), check=check)

    def cluster_reachable(self) -> bool:
        try:
            return self.run(["cluster-info"], check=False, timeout=30).success
        except (KubectlNotFound, KubectlTimeout):
            return False

    def first_node_name(self) -> str:
        return self.jsonpath("nodes", "{.items[0].metadata.name}", namespace="")

    def node_internal_ip(self) -> str:
        return self.jsonpath(
            "nodes",
            '{.items[0].status.addresses[?(@.type=="InternalIP")].address}',
            namespace="",
        )
