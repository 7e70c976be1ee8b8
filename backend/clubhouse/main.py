"""FastAPI application entrypoint."""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from clubhouse.api import leader, ops, payment_history, payments, registrations
from clubhouse.api.errors import install_error_handlers
from clubhouse.infra import postgres
from clubhouse.maintenance.expiry import JOB_NAME as EXPIRY_JOB, expire_lapsed_memberships
from clubhouse.maintenance.scheduler import MaintenanceScheduler
from clubhouse.obs import init as obs_init
from clubhouse.settings import settings


@asynccontextmanager
async def lifespan(app: FastAPI):
	await postgres.init_pool()
	scheduler: MaintenanceScheduler | None = None
	if settings.expiry_sweep_enabled:
		scheduler = MaintenanceScheduler()
		scheduler.start()
		scheduler.schedule_every(
			EXPIRY_JOB,
			expire_lapsed_memberships,
			seconds=settings.expiry_sweep_interval_seconds,
		)
		app.state.maintenance_scheduler = scheduler
	try:
		yield
	finally:
		if scheduler is not None:
			scheduler.shutdown()
		await postgres.close_pool()


app = FastAPI(title="Clubhouse Memberships", lifespan=lifespan)
obs_init(app)
install_error_handlers(app)

allow_origins = list(getattr(settings, "cors_allow_origins", []))
if not allow_origins:
	allow_origins = ["http://localhost:3000"] if settings.is_dev() else []

# Starlette disallows wildcard '*' with allow_credentials=True. Replace '*' with explicit origins.
if "*" in allow_origins:
	allow_origins = ["http://localhost:3000", "http://127.0.0.1:3000"] if settings.is_dev() else []

app.add_middleware(
	CORSMiddleware,
	allow_origins=allow_origins,
	allow_credentials=True,
	allow_methods=["*"],
	allow_headers=["*"],
)

app.include_router(registrations.router)
app.include_router(leader.router)
app.include_router(payments.router)
app.include_router(payment_history.router)
app.include_router(ops.router)
