# -*- coding: utf-8 -*-
"""KubeClient - pod lookup and branch database status reads."""

from __future__ import annotations

import time
from typing import Any, Callable, Optional, Protocol

from kubernetes import client, config  # type: ignore[import-untyped]
from kubernetes.client.rest import ApiException  # type: ignore[import-untyped]
from urllib3.exceptions import HTTPError as TransportError

from ..config import CliConfig
from ..dto import JOB_NAME_LABEL, BranchKind, PhaseState, PodRef
from ..errors import KubernetesError, PodNotFoundError, WaitTimeoutError
from ..logger import LogManager

logger = LogManager.get_logger(__name__)

# raised by the client for refused, reset or timed out connections
API_ERRORS = (ApiException, TransportError, OSError)


class PhaseReader(Protocol):
    """Narrow read capability the readiness poller depends on."""

    def get_phase(self, kind: BranchKind, name: str) -> PhaseState: ...


def load_api_client() -> client.ApiClient:
    """In-cluster service account first, kubeconfig second."""
    try:
        config.load_incluster_config()
    except config.ConfigException:
        try:
            config.load_kube_config()
        except (config.ConfigException, OSError) as exc:
            raise KubernetesError("failed to get kubernetes config", cause=exc) from exc
    return client.ApiClient()


def _pod_is_ready(pod: Any) -> bool:
    conditions = (pod.status.conditions if pod.status else None) or []
    return any(c.type == "Ready" and c.status == "True" for c in conditions)


class KubeClient:
    def __init__(
        self,
        core_api: Any,
        custom_api: Any,
        cli_config: Optional[CliConfig] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._core_api = core_api
        self._custom_api = custom_api
        self._config = cli_config or CliConfig()
        self._sleep = sleep
        self._clock = clock

    @classmethod
    def from_environment(cls, cli_config: Optional[CliConfig] = None) -> "KubeClient":
        api_client = load_api_client()
        return cls(
            core_api=client.CoreV1Api(api_client),
            custom_api=client.CustomObjectsApi(api_client),
            cli_config=cli_config,
        )

    # ------------------------------------------------------------------
    def get_pod(self, namespace: str, label_selector: str) -> PodRef:
        """Return the first matching pod that was not spawned by a Job."""
        try:
            pods = self._core_api.list_namespaced_pod(
                namespace, label_selector=label_selector
            )
        except API_ERRORS as exc:
            raise KubernetesError("failed to list pods", cause=exc) from exc

        if not pods.items:
            raise PodNotFoundError(f"no pods found with selector: {label_selector}")

        for pod in pods.items:
            labels = dict(pod.metadata.labels or {})
            if JOB_NAME_LABEL in labels:
                continue
            return PodRef(
                name=pod.metadata.name,
                namespace=namespace,
                labels=labels,
                ready=_pod_is_ready(pod),
            )

        raise PodNotFoundError(
            f"no non-job pods found with selector: {label_selector}"
        )

    def namespace_exists(self, namespace: str) -> bool:
        try:
            self._core_api.read_namespace(namespace)
        except API_ERRORS as exc:
            if isinstance(exc, ApiException) and exc.status == 404:
                return False
            raise KubernetesError(
                f"failed to read namespace {namespace}", cause=exc
            ) from exc
        return True

    def get_branch_phase(
        self, namespace: str, name: str, kind: BranchKind | str
    ) -> PhaseState:
        kind = BranchKind.parse(kind)
        try:
            obj = self._custom_api.get_namespaced_custom_object(
                group=self._config.crd_group,
                version=self._config.crd_version,
                namespace=namespace,
                plural=kind.plural,
                name=name,
            )
        except API_ERRORS as exc:
            raise KubernetesError(
                f"failed to get {kind.value} {name}", cause=exc
            ) from exc

        status = obj.get("status") if isinstance(obj, dict) else None
        if status is None:
            return PhaseState(phase=None)
        if not isinstance(status, dict):
            raise KubernetesError(f"error reading status.phase of {name}")
        phase = status.get("phase")
        if phase is not None and not isinstance(phase, str):
            raise KubernetesError(
                f"error reading status.phase of {name}: "
                f"expected string, got {type(phase).__name__}"
            )
        return PhaseState(phase=phase)

    def phase_reader(self, namespace: str) -> "NamespacedPhaseReader":
        return NamespacedPhaseReader(self, namespace)

    def wait_for_pod_ready(
        self, namespace: str, label_selector: str, timeout: Optional[float] = None
    ) -> PodRef:
        if timeout is None:
            timeout = self._config.pod_ready_timeout_sec
        deadline = self._clock() + timeout
        while True:
            self._sleep(self._config.poll_interval_sec)
            try:
                pod = self.get_pod(namespace, label_selector)
            except KubernetesError as exc:
                if self._clock() >= deadline:
                    raise WaitTimeoutError(
                        f"timeout waiting for pod with selector {label_selector}",
                        cause=exc,
                    ) from exc
                continue

            if pod.ready:
                return pod

            if self._clock() >= deadline:
                raise WaitTimeoutError(f"timeout waiting for pod {pod.name} to be ready")


class NamespacedPhaseReader:
    def __init__(self, kube: KubeClient, namespace: str) -> None:
        self._kube = kube
        self._namespace = namespace

    def get_phase(self, kind: BranchKind, name: str) -> PhaseState:
        return self._kube.get_branch_phase(self._namespace, name, kind)
