import argparse
import functools
import logging
import signal
import sys
import threading

import uvicorn
from kubernetes import config
from kubernetes.config.config_exception import ConfigException

from .catalog import VPACatalog, WorkloadCatalog
from .executor import ActionExecutor
from .health import app
from .scheduler import run_forever, run_once
from .settings import from_env, load_settings

logger = logging.getLogger("vpa-operator")


def load_cluster_config(kubeconfig: str = None) -> None:
    """ In-cluster configuration first, local kubeconfig otherwise. """
    try:
        config.load_incluster_config()
        logger.info("Using in-cluster configuration")
    except ConfigException:
        config.load_kube_config(config_file=kubeconfig)
        logger.info(f"Using kubeconfig {kubeconfig or '(default location)'}")


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="VPA Operator - keeps an observation-only VPA next to every workload"
    )
    parser.add_argument("--kubeconfig", default=None,
                        help="absolute path to the kubeconfig file (used outside the cluster)")
    parser.add_argument("--once", action="store_true",
                        help="run a single reconciliation cycle and exit")
    parser.add_argument("--dry-run", action="store_true",
                        help="log the plan without creating or deleting anything")
    return parser.parse_args(argv)


def start_health_server(port: int) -> threading.Thread:
    thread = threading.Thread(
        target=uvicorn.run,
        args=(app,),
        kwargs={"host": "0.0.0.0", "port": port, "log_level": "warning"},
        name="health-server",
        daemon=True,
    )
    thread.start()
    return thread


def configure_logging(level: str) -> None:
    logging.basicConfig(format="%(asctime)s - %(message)s")
    logging.getLogger().setLevel(level)


def install_signal_handlers(stop_event: threading.Event) -> None:
    """ SIGINT and SIGTERM end the loop after the running cycle. """
    def _stop(signum, frame):
        logger.info(f"Shutdown requested (signal {signum})...")
        stop_event.set()

    signal.signal(signal.SIGINT, _stop)
    signal.signal(signal.SIGTERM, _stop)


def main(argv=None) -> None:
    """ Entrypoint: load settings, connect to the cluster, then reconcile until interrupted. """
    args = parse_args(argv)
    configure_logging(from_env().log_level)
    settings = load_settings()
    configure_logging(settings.log_level)
    dry_run = args.dry_run or settings.dry_run

    try:
        load_cluster_config(args.kubeconfig)
        cycle = functools.partial(
            run_once,
            WorkloadCatalog(),
            VPACatalog(),
            ActionExecutor(retry_wait_ms=settings.retry_wait_ms,
                           retry_max_attempts=settings.retry_max_attempts),
            policy=settings.exemption_policy,
            dry_run=dry_run,
        )
    except Exception as e:
        logger.error(f"❌ Failed to connect to kubernetes cluster: {e}")
        sys.exit(1)

    if args.once:
        sys.exit(0 if cycle().ok else 1)

    logger.info(f"Dry run: {dry_run}, exempt prefixes: {', '.join(settings.exempt_prefixes)}")
    start_health_server(settings.health_port)
    stop_event = threading.Event()
    install_signal_handlers(stop_event)
    run_forever(cycle, settings.interval, stop_event)


if __name__ == "__main__":
    main()
