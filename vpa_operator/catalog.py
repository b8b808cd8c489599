import logging
from typing import List, Optional

import urllib3
from kubernetes import client
from kubernetes.client.rest import ApiException

from .errors import FetchError
from .models import VPA_GROUP, VPA_KIND, VPA_PLURAL, VPA_VERSION, VPARecord, WorkloadKind, WorkloadRef

logger = logging.getLogger("vpa-operator.catalog")


class WorkloadCatalog:
    """ Lists workload controllers of one kind across all namespaces. """

    def __init__(self, apps_api: Optional[client.AppsV1Api] = None):
        self.apps_api = apps_api or client.AppsV1Api()

    def _list_func(self, kind: WorkloadKind):
        if kind == WorkloadKind.DEPLOYMENT:
            return self.apps_api.list_deployment_for_all_namespaces
        if kind == WorkloadKind.STATEFUL_SET:
            return self.apps_api.list_stateful_set_for_all_namespaces
        return self.apps_api.list_daemon_set_for_all_namespaces

    def list(self, kind: WorkloadKind) -> List[WorkloadRef]:
        try:
            items = self._list_func(kind)().items
        except (ApiException, urllib3.exceptions.HTTPError) as error:
            raise FetchError(f"{kind.value}s", error) from error
        workloads = [
            WorkloadRef(kind=kind, name=obj.metadata.name or "", namespace=obj.metadata.namespace or "")
            for obj in items
        ]
        logger.debug(f"Listed {len(workloads)} {kind.value}s")
        return workloads


def vpa_record(obj: dict) -> VPARecord:
    """ Builds a VPARecord from a raw custom object; missing targetRef fields become empty strings. """
    meta = obj.get("metadata", {}) or {}
    target_ref = (obj.get("spec", {}) or {}).get("targetRef", {}) or {}
    return VPARecord(
        name=meta.get("name", "") or "",
        namespace=meta.get("namespace", "") or "",
        target_kind=target_ref.get("kind", "") or "",
        target_name=target_ref.get("name", "") or "",
        labels=dict(meta.get("labels", {}) or {}),
    )


class VPACatalog:
    """ Lists VerticalPodAutoscaler objects across all namespaces. """

    def __init__(self, custom_api: Optional[client.CustomObjectsApi] = None):
        self.custom_api = custom_api or client.CustomObjectsApi()

    def list(self) -> List[VPARecord]:
        try:
            response = self.custom_api.list_cluster_custom_object(
                group=VPA_GROUP, version=VPA_VERSION, plural=VPA_PLURAL
            )
        except (ApiException, urllib3.exceptions.HTTPError) as error:
            raise FetchError(f"{VPA_KIND}s", error) from error
        vpas = [vpa_record(item) for item in response.get("items", [])]
        logger.debug(f"Listed {len(vpas)} VerticalPodAutoscalers")
        return vpas
