"""Central registry for Prometheus metrics used across the backend."""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram, Summary


REQUEST_COUNTER = Counter(
	"clubhouse_http_requests_total",
	"Total HTTP requests processed",
	["route", "method", "status"],
)

REQUEST_LATENCY = Histogram(
	"clubhouse_http_request_duration_seconds",
	"HTTP request latency in seconds",
	["route", "method"],
	buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0),
)

REGISTRATIONS_CREATED = Counter(
	"clubhouse_registrations_created_total",
	"Membership registrations submitted",
	["mode"],
)

REGISTRATIONS_REVIEWED = Counter(
	"clubhouse_registrations_reviewed_total",
	"Leader decisions on membership registrations",
	["decision"],
)

REGISTRATION_TRANSITIONS = Counter(
	"clubhouse_registration_transitions_total",
	"Registration lifecycle transitions applied",
	["transition"],
)

REGISTRATIONS_EXPIRED = Counter(
	"clubhouse_registrations_expired_total",
	"Registrations moved to Expired",
	["source"],
)

PAYMENT_LINKS = Counter(
	"clubhouse_payment_links_total",
	"Payment link issuance results",
	["result"],
)

PAYMENTS_SETTLED = Counter(
	"clubhouse_payments_settled_total",
	"Registrations marked paid",
	["method"],
)

GATEWAY_FAILURES = Counter(
	"clubhouse_gateway_failures_total",
	"PayOS call failures by operation and kind",
	["operation", "kind"],
)

GATEWAY_LATENCY = Histogram(
	"clubhouse_gateway_request_duration_seconds",
	"PayOS call latency in seconds",
	["operation"],
	buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0),
)

WEBHOOK_OUTCOMES = Counter(
	"clubhouse_payos_webhooks_total",
	"PayOS webhook deliveries by outcome",
	["outcome"],
)

NOTIFICATION_FAILURES = Counter(
	"clubhouse_notification_publish_failures_total",
	"Membership notifications that could not be published",
)

REDIS_UP = Gauge("clubhouse_redis_up", "Redis availability (1=up,0=down)")
REDIS_LATENCY = Summary("clubhouse_redis_latency_seconds", "Redis ping latency (seconds)")

POSTGRES_UP = Gauge("clubhouse_postgres_up", "Postgres availability (1=up,0=down)")
POSTGRES_LATENCY = Summary("clubhouse_postgres_latency_seconds", "Postgres ping latency (seconds)")

BACKGROUND_RUNS = Counter(
	"clubhouse_jobs_runs_total",
	"Background job executions",
	["name", "result"],
)

BACKGROUND_DURATION = Histogram(
	"clubhouse_jobs_duration_seconds",
	"Background job duration in seconds",
	["name"],
)


def observe_request(route: str, method: str, status: int, elapsed_seconds: float) -> None:
	REQUEST_COUNTER.labels(route=route, method=method, status=str(status)).inc()
	REQUEST_LATENCY.labels(route=route, method=method).observe(elapsed_seconds)


def inc_registration_created(mode: str) -> None:
	REGISTRATIONS_CREATED.labels(mode=mode).inc()


def inc_registration_reviewed(decision: str) -> None:
	REGISTRATIONS_REVIEWED.labels(decision=decision).inc()


def inc_registration_transition(transition: str) -> None:
	REGISTRATION_TRANSITIONS.labels(transition=transition).inc()


def inc_registrations_expired(source: str, count: int = 1) -> None:
	if count > 0:
		REGISTRATIONS_EXPIRED.labels(source=source).inc(count)


def inc_payment_link(result: str) -> None:
	PAYMENT_LINKS.labels(result=result).inc()


def inc_payment_settled(method: str) -> None:
	PAYMENTS_SETTLED.labels(method=method).inc()


def inc_gateway_failure(operation: str, kind: str) -> None:
	GATEWAY_FAILURES.labels(operation=operation, kind=kind).inc()


def observe_gateway_latency(operation: str, elapsed_seconds: float) -> None:
	GATEWAY_LATENCY.labels(operation=operation).observe(elapsed_seconds)


def inc_webhook(outcome: str) -> None:
	WEBHOOK_OUTCOMES.labels(outcome=outcome).inc()


def inc_notification_failure() -> None:
	NOTIFICATION_FAILURES.inc()


def mark_redis(ok: bool, *, latency_seconds: float | None = None) -> None:
	REDIS_UP.set(1 if ok else 0)
	if latency_seconds is not None:
		REDIS_LATENCY.observe(latency_seconds)


def mark_postgres(ok: bool, *, latency_seconds: float | None = None) -> None:
	POSTGRES_UP.set(1 if ok else 0)
	if latency_seconds is not None:
		POSTGRES_LATENCY.observe(latency_seconds)


def record_job_run(name: str, *, result: str, duration_seconds: float | None = None) -> None:
	BACKGROUND_RUNS.labels(name=name, result=result).inc()
	if duration_seconds is not None:
		BACKGROUND_DURATION.labels(name=name).observe(duration_seconds)
