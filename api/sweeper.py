"""
Scheduled refresh token cleanup.

TokenSweeper runs RefreshTokenManager.sweep() on a cron schedule from a
daemon thread, inside an app context so the scoped session is released
after every run. The same job is available as `flask sweep-tokens` for an
external scheduler.
"""
from __future__ import annotations

import logging
import threading
from datetime import datetime
from typing import Callable

import click
from croniter import croniter
from flask import current_app
from flask.cli import with_appcontext

from models import storage
from utils.security import utcnow

logger = logging.getLogger(__name__)


def run_sweep(app) -> int:
    with app.app_context():
        try:
            return app.extensions["refresh_token_manager"].sweep()
        finally:
            storage.close()


class TokenSweeper:
    def __init__(
        self,
        app,
        cron_expression: str,
        clock: Callable[[], datetime] = utcnow,
    ):
        if not croniter.is_valid(cron_expression):
            raise ValueError(f"invalid cron expression: {cron_expression!r}")
        self._app = app
        self._cron_expression = cron_expression
        self._clock = clock
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def next_run(self, after: datetime | None = None) -> datetime:
        return croniter(self._cron_expression, after or self._clock()).get_next(datetime)

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="token-sweeper", daemon=True)
        self._thread.start()
        logger.info("Token sweeper started with schedule %r", self._cron_expression)

    def stop(self, timeout: float | None = 5.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def _loop(self) -> None:
        while not self._stop.is_set():
            delay = (self.next_run() - self._clock()).total_seconds()
            if self._stop.wait(max(delay, 0)):
                break
            try:
                run_sweep(self._app)
            except Exception:
                # keep the schedule alive; the next run retries
                logger.exception("Scheduled refresh token sweep failed")


@click.command("sweep-tokens")
@with_appcontext
def sweep_tokens_command():
    """Delete revoked and expired refresh tokens."""
    deleted = run_sweep(current_app._get_current_object())
    click.echo(f"{deleted} refresh tokens deleted")


def init_app(app) -> None:
    app.cli.add_command(sweep_tokens_command)
    if app.config.get("TOKEN_CLEANUP_ENABLED"):
        sweeper = TokenSweeper(app, app.config["TOKEN_CLEANUP_CRON"])
        app.extensions["token_sweeper"] = sweeper
        sweeper.start()
