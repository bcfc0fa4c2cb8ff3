"""Application entry point for the QuizHub service."""

from __future__ import annotations

from quizhub.config import get_settings
from quizhub.core.quiz_manager import QuizManager
from quizhub.core.store import create_store
from quizhub.server.api_server import run_api_server
from quizhub.utils.logging_config import configure_logging
from quizhub.utils.periodic_task import PeriodicTask


def build_background_tasks(
    quiz_manager: QuizManager,
    notification_poll_seconds: float,
    expiry_sweep_seconds: float,
) -> list[PeriodicTask]:
    """Deadline notifications and the countdown that auto-submits overdue attempts."""
    return [
        PeriodicTask("NotificationPoller", notification_poll_seconds, quiz_manager.process_scheduled_events_for_all),
        PeriodicTask("AttemptExpirySweep", expiry_sweep_seconds, quiz_manager.expire_overdue_attempts),
    ]


def main() -> None:
    """Initialize logging, wire the services, start background tasks and serve the API."""
    settings = get_settings()
    logger = configure_logging(settings.log_level.upper())
    logger.info("Starting QuizHub…")

    quiz_manager = QuizManager(store=create_store(settings.data_dir))
    tasks = build_background_tasks(
        quiz_manager,
        settings.notification_poll_seconds,
        settings.expiry_sweep_seconds,
    )
    for task in tasks:
        task.start()

    logger.info("API listening on http://%s:%d/", settings.host, settings.port)
    try:
        run_api_server(quiz_manager, host=settings.host, port=settings.port)
    finally:
        for task in tasks:
            task.stop()
        logger.info("QuizHub stopped.")


if __name__ == "__main__":
    main()
