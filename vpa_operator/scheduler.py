import logging
import threading
import time
from typing import Callable, List, Optional

from . import metrics
from .catalog import VPACatalog, WorkloadCatalog
from .errors import FetchError
from .executor import ActionExecutor
from .models import VPA_KIND, CycleResult, WorkloadKind, WorkloadRef
from .reconciler import DEFAULT_POLICY, ExemptionPolicy, plan

logger = logging.getLogger("vpa-operator.scheduler")


def run_once(workload_catalog: WorkloadCatalog, vpa_catalog: VPACatalog, executor: ActionExecutor,
             policy: ExemptionPolicy = DEFAULT_POLICY, dry_run: bool = False) -> CycleResult:
    """
    One fetch-plan-apply pass.
    Any listing failure aborts the pass before planning; action failures are
    collected in the result and never stop the remaining actions.
    """
    logger.info("🔄 Scanning for changes")
    started = time.monotonic()
    try:
        vpas = vpa_catalog.list()
        by_kind = {kind: workload_catalog.list(kind) for kind in WorkloadKind}
    except FetchError as error:
        logger.error(f"❌ Cycle aborted, could not list {error.kind}: {error.cause}")
        metrics.CYCLES.labels(result="failed").inc()
        return CycleResult(error=str(error), dry_run=dry_run)

    workloads: List[WorkloadRef] = []
    for kind, found in by_kind.items():
        metrics.OBSERVED.labels(kind=kind.value).set(len(found))
        workloads.extend(found)
    metrics.OBSERVED.labels(kind=VPA_KIND).set(len(vpas))

    result = CycleResult(plan=plan(workloads, vpas, policy), dry_run=dry_run)
    counts = result.plan.summary()
    logger.info(f"📋 Plan: create={counts['create']} delete={counts['delete']}")

    if dry_run:
        for action in result.plan.to_create:
            logger.info(f"[DRY-RUN] Would create VPA for {action.workload}")
        for vpa in result.plan.to_delete:
            logger.info(f"[DRY-RUN] Would delete {vpa}")
        metrics.CYCLES.labels(result="dry_run").inc()
    else:
        result.results = executor.apply(result.plan)
        metrics.CYCLES.labels(result="ok" if result.ok else "failed").inc()
        if result.failed:
            logger.warning(f"⚠️ {len(result.failed)} action(s) failed, will retry next cycle")

    metrics.CYCLE_DURATION.observe(time.monotonic() - started)
    metrics.LAST_CYCLE.set_to_current_time()
    logger.info("✅ Completed scanning for changes")
    return result


def run_forever(cycle: Callable[[], CycleResult], interval: float,
                stop_event: Optional[threading.Event] = None) -> None:
    """ Runs the cycle immediately and then every interval seconds until stop_event is set. """
    stop_event = stop_event or threading.Event()
    logger.info(f"🚀 Starting reconcile loop (interval: {interval}s)")
    while not stop_event.is_set():
        try:
            cycle()
        except Exception as error:
            logger.error(f"❌ Periodic reconcile failed: {error}")
        stop_event.wait(interval)
    logger.info("Reconcile loop stopped")
