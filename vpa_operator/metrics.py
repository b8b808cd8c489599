from prometheus_client import Counter, Gauge, Histogram

CYCLES = Counter(
    "vpa_operator_cycles_total",
    "Reconciliation cycles by outcome",
    ["result"],
)
ACTIONS = Counter(
    "vpa_operator_actions_total",
    "VPA create/delete actions by outcome",
    ["action", "result"],
)
OBSERVED = Gauge(
    "vpa_operator_observed_objects",
    "Objects seen in the last successful snapshot",
    ["kind"],
)
LAST_CYCLE = Gauge(
    "vpa_operator_last_cycle_timestamp_seconds",
    "Unix time the last cycle finished",
)
CYCLE_DURATION = Histogram(
    "vpa_operator_cycle_duration_seconds",
    "Wall-clock duration of a reconciliation cycle",
)
