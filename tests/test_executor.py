from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from kubernetes.client.exceptions import ApiValueError
from kubernetes.client.rest import ApiException

from vpa_operator.errors import ApplyError
from vpa_operator.executor import ActionExecutor, is_transient
from vpa_operator.models import ManagedVPASpec, VPARecord, WorkloadKind, WorkloadRef
from vpa_operator.reconciler import plan


@pytest.fixture
def custom_api() -> MagicMock:
    api = MagicMock()
    api.create_namespaced_custom_object.side_effect = lambda **kw: kw["body"]
    return api


@pytest.fixture
def executor(custom_api: MagicMock) -> ActionExecutor:
    return ActionExecutor(custom_api, retry_wait_ms=0, retry_max_attempts=3)


def test_create_posts_manifest(executor: ActionExecutor, custom_api: MagicMock) -> None:
    spec = ManagedVPASpec.for_workload(WorkloadRef(WorkloadKind.STATEFUL_SET, "db", "data"))

    assert executor.create(spec) == ("db", "data")

    kwargs = custom_api.create_namespaced_custom_object.call_args.kwargs
    assert kwargs["namespace"] == "data"
    assert kwargs["plural"] == "verticalpodautoscalers"
    assert kwargs["body"]["spec"]["targetRef"]["kind"] == "StatefulSet"


def test_create_conflict_is_not_retried(executor: ActionExecutor, custom_api: MagicMock) -> None:
    custom_api.create_namespaced_custom_object.side_effect = ApiException(status=409, reason="Conflict")
    spec = ManagedVPASpec.for_workload(WorkloadRef(WorkloadKind.DEPLOYMENT, "web", "default"))

    with pytest.raises(ApplyError) as excinfo:
        executor.create(spec)

    assert excinfo.value.status == 409
    assert excinfo.value.kind == "Deployment"
    assert custom_api.create_namespaced_custom_object.call_count == 1


def test_transient_errors_are_retried(executor: ActionExecutor, custom_api: MagicMock) -> None:
    custom_api.delete_namespaced_custom_object.side_effect = [
        ApiException(status=503, reason="Unavailable"),
        {"status": "Success"},
    ]

    executor.delete("old", "default")

    assert custom_api.delete_namespaced_custom_object.call_count == 2


def test_retries_are_bounded(executor: ActionExecutor, custom_api: MagicMock) -> None:
    custom_api.delete_namespaced_custom_object.side_effect = ApiException(status=500, reason="Boom")

    with pytest.raises(ApplyError) as excinfo:
        executor.delete("old", "default", "Deployment")

    assert excinfo.value.status == 500
    assert custom_api.delete_namespaced_custom_object.call_count == 3


def test_is_transient() -> None:
    assert is_transient(ApiException(status=429))
    assert is_transient(ApiException(status=502))
    assert not is_transient(ApiException(status=404))
    assert not is_transient(ValueError("nope"))


def test_apply_is_best_effort(executor: ActionExecutor, custom_api: MagicMock) -> None:
    def create(**kwargs):
        if kwargs["body"]["metadata"]["name"] == "web":
            raise ApiException(status=403, reason="Forbidden")
        return kwargs["body"]

    custom_api.create_namespaced_custom_object.side_effect = create
    custom_api.delete_namespaced_custom_object.side_effect = [
        ApiException(status=404, reason="Not Found"),
        {"status": "Success"},
    ]
    workloads = [
        WorkloadRef(WorkloadKind.DEPLOYMENT, "web", "default"),
        WorkloadRef(WorkloadKind.STATEFUL_SET, "db", "default"),
    ]
    vpas = [VPARecord("gone", "default", "Deployment"), VPARecord("old", "default", "DaemonSet")]

    results = executor.apply(plan(workloads, vpas))

    assert [(r.action, r.name, r.ok) for r in results] == [
        ("create", "web", False),
        ("create", "db", True),
        ("delete", "gone", False),
        ("delete", "old", True),
    ]
    assert results[0].kind == "Deployment"
    assert "403" in results[0].error
    assert custom_api.delete_namespaced_custom_object.call_count == 2


def test_client_validation_errors_do_not_stop_apply(executor: ActionExecutor, custom_api: MagicMock) -> None:
    custom_api.create_namespaced_custom_object.side_effect = ApiValueError("Missing the required parameter `body`")
    custom_api.delete_namespaced_custom_object.return_value = {"status": "Success"}
    workloads = [WorkloadRef(WorkloadKind.DEPLOYMENT, "web", "default")]
    vpas = [VPARecord("old", "default", "Deployment")]

    results = executor.apply(plan(workloads, vpas))

    assert [(r.action, r.name, r.ok) for r in results] == [("create", "web", False), ("delete", "old", True)]
    assert custom_api.create_namespaced_custom_object.call_count == 1
