"""
Planning logic: decides which VPAs to create and which to delete from one
snapshot of workloads and one snapshot of VPAs. Nothing here talks to the API.

The two sides match differently. A workload is covered by any VPA with the same
name and namespace, whatever it targets. A VPA is kept only if a workload with
the same name, namespace *and* kind exists, or if it is exempt.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Sequence, Set, Tuple

from .models import (
    MANAGED_BY_LABEL,
    CreateAction,
    ManagedVPASpec,
    ReconciliationPlan,
    VPARecord,
    WorkloadKind,
    WorkloadRef,
)

DEFAULT_EXEMPT_PREFIXES = ("goldilocks",)

ObjectKey = Tuple[str, str]  # (namespace, name)


@dataclass(frozen=True)
class ExemptionPolicy:
    """
    Decides whether a VPA belongs to another controller and must never be deleted.
    - prefixes: extra VPA name prefixes that are exempt; goldilocks is always exempt
    - owners: values of the app.kubernetes.io/managed-by label that mark foreign ownership
    """
    prefixes: Tuple[str, ...] = DEFAULT_EXEMPT_PREFIXES
    owners: Tuple[str, ...] = ()

    def is_exempt(self, vpa: VPARecord) -> bool:
        if any(vpa.name.startswith(prefix) for prefix in DEFAULT_EXEMPT_PREFIXES + tuple(self.prefixes)):
            return True
        owner = (vpa.labels or {}).get(MANAGED_BY_LABEL)
        return owner is not None and owner in self.owners


DEFAULT_POLICY = ExemptionPolicy()


# -------------------------------------------------------------------
#  Indexes
# -------------------------------------------------------------------
def vpa_keys(vpas: Iterable[VPARecord]) -> Set[ObjectKey]:
    """ Create-side index: every (namespace, name) that already has a VPA. """
    return {(v.namespace, v.name) for v in vpas}


def workload_keys(workloads: Iterable[WorkloadRef]) -> Dict[WorkloadKind, Set[ObjectKey]]:
    """ Delete-side index: (namespace, name) of existing workloads, per kind. """
    index: Dict[WorkloadKind, Set[ObjectKey]] = {kind: set() for kind in WorkloadKind}
    for w in workloads:
        index[WorkloadKind(w.kind)].add((w.namespace, w.name))
    return index


# -------------------------------------------------------------------
#  Match rules
# -------------------------------------------------------------------
def has_matching_vpa(workload: WorkloadRef, existing: Set[ObjectKey]) -> bool:
    """ True if a VPA with the workload's name and namespace exists. Kind is ignored. """
    return (workload.namespace, workload.name) in existing


def has_matching_workload(vpa: VPARecord, index: Dict[WorkloadKind, Set[ObjectKey]]) -> bool:
    """ True if a workload of the VPA's target kind with the VPA's name and namespace exists. """
    key = (vpa.namespace, vpa.name)
    for kind in WorkloadKind:
        if vpa.target_kind == kind.value and key in index.get(kind, ()):
            return True
    return False


# -------------------------------------------------------------------
#  Plan
# -------------------------------------------------------------------
def plan_creates(workloads: Sequence[WorkloadRef], vpas: Sequence[VPARecord]) -> List[CreateAction]:
    existing = vpa_keys(vpas)
    seen: Set[WorkloadRef] = set()
    actions: List[CreateAction] = []
    for w in workloads:
        if w in seen or has_matching_vpa(w, existing):
            continue
        seen.add(w)
        actions.append(CreateAction(workload=w, spec=ManagedVPASpec.for_workload(w)))
    return actions


def plan_deletes(workloads: Sequence[WorkloadRef], vpas: Sequence[VPARecord],
                 policy: ExemptionPolicy = DEFAULT_POLICY) -> List[VPARecord]:
    index = workload_keys(workloads)
    seen: Set[ObjectKey] = set()
    orphans: List[VPARecord] = []
    for v in vpas:
        key = (v.namespace, v.name)
        if key in seen:
            continue
        seen.add(key)
        if has_matching_workload(v, index) or policy.is_exempt(v):
            continue
        orphans.append(v)
    return orphans


def plan(workloads: Iterable[WorkloadRef], vpas: Iterable[VPARecord],
         policy: ExemptionPolicy = DEFAULT_POLICY) -> ReconciliationPlan:
    """Compute the create and delete actions that bring the VPA set in line with the workloads."""
    workloads = list(workloads)
    vpas = list(vpas)
    return ReconciliationPlan(
        to_create=tuple(plan_creates(workloads, vpas)),
        to_delete=tuple(plan_deletes(workloads, vpas, policy)),
    )
