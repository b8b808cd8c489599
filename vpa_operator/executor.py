import logging
from typing import List, Optional, Tuple

import urllib3
from kubernetes import client
from kubernetes.client.exceptions import OpenApiException
from kubernetes.client.rest import ApiException
from retrying import Retrying

from . import metrics
from .errors import ApplyError
from .models import (
    VPA_GROUP,
    VPA_PLURAL,
    VPA_VERSION,
    ActionResult,
    ManagedVPASpec,
    ReconciliationPlan,
)

logger = logging.getLogger("vpa-operator.executor")


def is_transient(error: Exception) -> bool:
    """ Retry on throttling, server-side errors and broken connections only. """
    if isinstance(error, ApiException):
        return error.status == 429 or (error.status or 0) >= 500
    return isinstance(error, urllib3.exceptions.HTTPError)


class ActionExecutor:
    """ Applies create/delete actions for VPAs against the cluster API. """

    def __init__(self, custom_api: Optional[client.CustomObjectsApi] = None,
                 retry_wait_ms: int = 2000, retry_max_attempts: int = 5):
        self.custom_api = custom_api or client.CustomObjectsApi()
        self.retry_wait_ms = retry_wait_ms
        self.retry_max_attempts = retry_max_attempts

    def _call(self, func, *args, **kwargs):
        retrying = Retrying(
            wait_fixed=self.retry_wait_ms,
            stop_max_attempt_number=self.retry_max_attempts,
            retry_on_exception=is_transient,
        )
        return retrying.call(func, *args, **kwargs)

    def create(self, spec: ManagedVPASpec) -> Tuple[str, str]:
        """ Creates a VerticalPodAutoscaler in recommendation-only mode. """
        try:
            created = self._call(
                self.custom_api.create_namespaced_custom_object,
                group=VPA_GROUP, version=VPA_VERSION, namespace=spec.namespace,
                plural=VPA_PLURAL, body=spec.to_body(),
            )
        except ApiException as e:
            raise ApplyError("create", spec.name, spec.namespace, spec.target_kind.value,
                             status=e.status, reason=e.reason or str(e)) from e
        except (OpenApiException, urllib3.exceptions.HTTPError) as e:
            raise ApplyError("create", spec.name, spec.namespace, spec.target_kind.value,
                             reason=str(e)) from e
        meta = (created or {}).get("metadata", {}) or {}
        return meta.get("name", spec.name), meta.get("namespace", spec.namespace)

    def delete(self, name: str, namespace: str, kind: str = "") -> None:
        """ Deletes a VerticalPodAutoscaler. A 404 is reported like any other failure. """
        try:
            self._call(
                self.custom_api.delete_namespaced_custom_object,
                group=VPA_GROUP, version=VPA_VERSION, namespace=namespace,
                plural=VPA_PLURAL, name=name,
            )
        except ApiException as e:
            raise ApplyError("delete", name, namespace, kind, status=e.status, reason=e.reason or str(e)) from e
        except (OpenApiException, urllib3.exceptions.HTTPError) as e:
            raise ApplyError("delete", name, namespace, kind, reason=str(e)) from e

    def apply(self, plan: ReconciliationPlan) -> List[ActionResult]:
        """ Best-effort application: creates first, then deletes; one failure never blocks the rest. """
        results: List[ActionResult] = []

        for action in plan.to_create:
            spec = action.spec
            kind = spec.target_kind.value
            logger.info(f"🛠️ Building VPA for {kind} {spec.namespace}/{spec.name}")
            try:
                name, namespace = self.create(spec)
            except ApplyError as error:
                logger.warning(f"⚠️ Failed to create VPA {spec.namespace}/{spec.name} (kind={kind}): {error.reason}")
                results.append(ActionResult("create", spec.name, spec.namespace, kind, ok=False, error=str(error)))
                metrics.ACTIONS.labels(action="create", result="failed").inc()
                continue
            logger.info(f"✅ Created VPA {namespace}/{name} (kind={kind})")
            results.append(ActionResult("create", name, namespace, kind, ok=True))
            metrics.ACTIONS.labels(action="create", result="ok").inc()

        for vpa in plan.to_delete:
            kind = vpa.target_kind
            try:
                self.delete(vpa.name, vpa.namespace, kind)
            except ApplyError as error:
                logger.warning(f"⚠️ Failed to delete VPA {vpa.namespace}/{vpa.name} (kind={kind or '?'}): {error.reason}")
                results.append(ActionResult("delete", vpa.name, vpa.namespace, kind, ok=False, error=str(error)))
                metrics.ACTIONS.labels(action="delete", result="failed").inc()
                continue
            logger.info(f"🗑️ Deleted VPA {vpa.namespace}/{vpa.name} (kind={kind or '?'})")
            results.append(ActionResult("delete", vpa.name, vpa.namespace, kind, ok=True))
            metrics.ACTIONS.labels(action="delete", result="ok").inc()

        return results
