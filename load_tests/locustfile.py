"""
Locust load test for the partner codes validation endpoint.

Usage:
    LT_AC_ENVIRONMENT=local LT_AC_SERVICE=fever2 USER_TOKEN=... \
        locust -f load_tests/locustfile.py --headless

The code pool is built once, when Locust initialises, from the configured
source (database, booking API or pool file). Every virtual user then claims
its own contiguous slice of the pool, POSTs each code once and stops. The
run ends when every user has finished its slice; the global assertions
(max response time, zero failures) decide the exit code.

User classes:
- CodesValidationUser : validates its slice of the pool, one request per code
"""
from __future__ import annotations

import asyncio

import structlog
from locust import HttpUser, LoadTestShape, constant, events, task
from locust.exception import StopUser

from codes_validation.code_sources import load_code_pool
from codes_validation.config import load_settings
from codes_validation.exceptions import ConfigurationError, ProvisioningError
from codes_validation.partition import SliceAssigner
from codes_validation.run import CodesValidationRun, apply_thresholds, get_run, next_shape_state
from codes_validation.schemas import CodeValidationRequest

structlog.configure(
    processors=[
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.JSONRenderer(),
    ]
)

logger = structlog.get_logger(__name__)


@events.init.add_listener
def on_locust_init(environment, **kwargs) -> None:
    try:
        settings = load_settings()
        logger.info("properties_loaded", **settings.summary())
        pool = asyncio.run(load_code_pool(settings))
    except (ConfigurationError, ProvisioningError) as exc:
        logger.error("load_run_aborted", error=str(exc))
        raise

    CodesValidationUser.host = environment.host or settings.base_url
    environment.codes_run = CodesValidationRun(settings, SliceAssigner(pool, settings.vus))
    logger.info("load_run_ready", codes=len(pool), vus=settings.vus)


@events.test_start.add_listener
def on_test_start(environment, **kwargs) -> None:
    logger.info("simulation_starting")


@events.test_stop.add_listener
def on_test_stop(environment, **kwargs) -> None:
    logger.info("simulation_finished")


@events.quitting.add_listener
def on_quitting(environment, **kwargs) -> None:
    apply_thresholds(environment)


class CodesValidationUser(HttpUser):
    """
    Validates one partition of the pool.

    No wait time between requests: each user fires its codes back to back.
    """

    wait_time = constant(0)

    worker_index: int
    codes: list[str]

    def on_start(self) -> None:
        run: CodesValidationRun = self.environment.codes_run
        self.client.headers.update(run.settings.headers())
        self.worker_index, self.codes = run.assigner.claim()

    def on_stop(self) -> None:
        run = get_run(self.environment)
        if run is not None and hasattr(self, "worker_index"):
            run.assigner.finish(self.worker_index)

    @task
    def validate_codes(self) -> None:
        run: CodesValidationRun = self.environment.codes_run
        for code in self.codes:
            body = CodeValidationRequest(code=code, main_plan_ids=[run.settings.main_plan_id])
            with self.client.post(
                run.settings.endpoint,
                json=body.model_dump(),
                name=f"{run.settings.endpoint} [POST]",
                catch_response=True,
            ) as response:
                if response.status_code == 200:
                    response.success()
                else:
                    response.failure(f"Unexpected status {response.status_code}")

        run.assigner.finish(self.worker_index)
        raise StopUser()


class AllUsersAtOnceShape(LoadTestShape):
    """Start every virtual user at once; stop when all slices are done."""

    def tick(self):
        return next_shape_state(self.runner.environment)
