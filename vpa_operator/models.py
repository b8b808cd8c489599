from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Mapping, Optional, Tuple

VPA_GROUP = "autoscaling.k8s.io"
VPA_VERSION = "v1"
VPA_PLURAL = "verticalpodautoscalers"
VPA_KIND = "VerticalPodAutoscaler"

WORKLOAD_API_VERSION = "apps/v1"
UPDATE_MODE_OFF = "Off"

MANAGED_BY_LABEL = "app.kubernetes.io/managed-by"
MANAGED_BY_VALUE = "vpa-operator"
WORKLOAD_KIND_LABEL = "workload-kind"


class WorkloadKind(str, Enum):
    """ Supported workload controllers, in delete-side match order. """
    DEPLOYMENT = "Deployment"
    STATEFUL_SET = "StatefulSet"
    DAEMON_SET = "DaemonSet"


@dataclass(frozen=True)
class WorkloadRef:
    kind: WorkloadKind
    name: str
    namespace: str

    def __str__(self) -> str:
        return f"{self.kind.value} {self.namespace}/{self.name}"


@dataclass(frozen=True)
class VPARecord:
    name: str
    namespace: str
    target_kind: str = ""
    target_name: str = ""
    labels: Mapping[str, str] = field(default_factory=dict, compare=False, hash=False)

    def __str__(self) -> str:
        return f"VPA {self.namespace}/{self.name} -> {self.target_kind or '?'}"


@dataclass(frozen=True)
class ManagedVPASpec:
    """ Desired shape of a VPA created for a workload: same name/namespace, update mode Off. """
    name: str
    namespace: str
    target_kind: WorkloadKind
    target_api_version: str = WORKLOAD_API_VERSION
    update_mode: str = UPDATE_MODE_OFF

    @classmethod
    def for_workload(cls, workload: WorkloadRef) -> "ManagedVPASpec":
        return cls(name=workload.name, namespace=workload.namespace, target_kind=workload.kind)

    def to_body(self) -> dict:
        """ Constructs the VPA resource manifest. """
        return {
            "apiVersion": f"{VPA_GROUP}/{VPA_VERSION}",
            "kind": VPA_KIND,
            "metadata": {
                "name": self.name,
                "namespace": self.namespace,
                "labels": {
                    MANAGED_BY_LABEL: MANAGED_BY_VALUE,
                    WORKLOAD_KIND_LABEL: self.target_kind.value,
                },
            },
            "spec": {
                "targetRef": {
                    "apiVersion": self.target_api_version,
                    "kind": self.target_kind.value,
                    "name": self.name,
                },
                "updatePolicy": {"updateMode": self.update_mode},
            },
        }


@dataclass(frozen=True)
class CreateAction:
    workload: WorkloadRef
    spec: ManagedVPASpec


@dataclass(frozen=True)
class ReconciliationPlan:
    to_create: Tuple[CreateAction, ...] = ()
    to_delete: Tuple[VPARecord, ...] = ()

    @property
    def empty(self) -> bool:
        return not self.to_create and not self.to_delete

    def summary(self) -> Dict[str, int]:
        return {"create": len(self.to_create), "delete": len(self.to_delete)}


@dataclass
class ActionResult:
    action: str
    name: str
    namespace: str
    kind: str
    ok: bool
    error: Optional[str] = None


@dataclass
class CycleResult:
    plan: Optional[ReconciliationPlan] = None
    results: List[ActionResult] = field(default_factory=list)
    error: Optional[str] = None
    dry_run: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None and all(r.ok for r in self.results)

    @property
    def failed(self) -> List[ActionResult]:
        return [r for r in self.results if not r.ok]
