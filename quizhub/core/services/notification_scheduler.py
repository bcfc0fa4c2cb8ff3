"""Service for user notifications and deadline polling."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta
import logging
from uuid import uuid4

from quizhub.constants.quiz_constants import (
    DEADLINE_WINDOW_MINUTES,
    NOTIFICATION_DEDUP_WINDOW_SECONDS,
    UPCOMING_WINDOW_MINUTES,
)
from quizhub.core.errors import NotFound
from quizhub.core.models import Notification, NotificationType, Quiz
from quizhub.core.services.quiz_repository import QuizRepository
from quizhub.core.store import NOTIFICATION_COLLECTION, CollectionStore, index_of
from quizhub.utils.time_utils import parse_iso, round_half_up, to_iso, utc_now

logger = logging.getLogger(__name__)

UPCOMING_TITLE = "Upcoming Assessment"
DEADLINE_TITLE = "Urgent: Deadline Near"
RELEASED_TITLE = "New Assessment Released"


class NotificationScheduler:
    """Creates deduplicated notifications and checks quiz deadlines on each tick."""

    def __init__(
        self,
        store: CollectionStore,
        repository: QuizRepository,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._repository = repository
        self._clock = clock

    def add_notification(
        self,
        user_id: str,
        title: str,
        message: str,
        type: NotificationType = NotificationType.INFO,
        link: str | None = None,
    ) -> Notification | None:
        """Store a notification unless the user got one with the same title in the last hour."""
        now = self._clock()
        notifications = self._store.read_all(NOTIFICATION_COLLECTION)
        window = timedelta(seconds=NOTIFICATION_DEDUP_WINDOW_SECONDS)
        for record in notifications:
            if (
                record["user_id"] == user_id
                and record["title"] == title
                and now - parse_iso(record["created_at"]) < window
            ):
                return None

        notification = Notification(
            id=uuid4().hex,
            user_id=user_id,
            title=title,
            message=message,
            type=type,
            created_at=to_iso(now),
            is_read=False,
            link=link,
        )
        notifications.append(notification.to_record())
        self._store.write_all(NOTIFICATION_COLLECTION, notifications)
        return notification

    def process_scheduled_events(self, user_id: str) -> list[Notification]:
        """One polling tick for ``user_id``; returns the notifications it created."""
        now = self._clock()
        created: list[Notification] = []
        for quiz in self._repository.list_quizzes():
            created.extend(self._check_quiz(user_id, quiz, now))
        return created

    def notify_quiz_released(self, quiz: Quiz, student_ids: list[str]) -> int:
        if quiz.is_practice:
            return 0
        sent = 0
        for student_id in student_ids:
            notification = self.add_notification(
                student_id,
                RELEASED_TITLE,
                f"{quiz.title} is now available with code: {quiz.join_code}",
                NotificationType.SUCCESS,
                link=f"/quizzes/{quiz.id}",
            )
            if notification is not None:
                sent += 1
        logger.info("Announced quiz %s to %d student(s)", quiz.id, sent)
        return sent

    def get_notifications(self, user_id: str) -> list[Notification]:
        """All notifications for a user, newest first."""
        notifications = [
            Notification.from_record(record)
            for record in self._store.read_all(NOTIFICATION_COLLECTION)
            if record["user_id"] == user_id
        ]
        return sorted(notifications, key=lambda n: parse_iso(n.created_at), reverse=True)

    def mark_read(self, notification_id: str) -> Notification:
        notifications = self._store.read_all(NOTIFICATION_COLLECTION)
        index = index_of(notifications, notification_id)
        if index < 0:
            raise NotFound(f"Notification {notification_id} does not exist.")
        notifications[index]["is_read"] = True
        self._store.write_all(NOTIFICATION_COLLECTION, notifications)
        return Notification.from_record(notifications[index])

    def mark_all_read(self, user_id: str) -> int:
        notifications = self._store.read_all(NOTIFICATION_COLLECTION)
        changed = 0
        for record in notifications:
            if record["user_id"] == user_id and not record.get("is_read"):
                record["is_read"] = True
                changed += 1
        if changed:
            self._store.write_all(NOTIFICATION_COLLECTION, notifications)
        return changed

    def _check_quiz(self, user_id: str, quiz: Quiz, now: datetime) -> list[Notification]:
        created: list[Notification] = []
        settings = quiz.settings

        if settings.scheduled_at:
            minutes = (parse_iso(settings.scheduled_at) - now).total_seconds() / 60
            if 0 < minutes <= UPCOMING_WINDOW_MINUTES:
                created.append(
                    self.add_notification(
                        user_id,
                        UPCOMING_TITLE,
                        f'"{quiz.title}" is starting in {round_half_up(minutes)} minutes! Get ready.',
                        NotificationType.INFO,
                    )
                )

        if settings.expires_at:
            minutes = (parse_iso(settings.expires_at) - now).total_seconds() / 60
            if 0 < minutes <= DEADLINE_WINDOW_MINUTES:
                created.append(
                    self.add_notification(
                        user_id,
                        DEADLINE_TITLE,
                        f'"{quiz.title}" expires in {round_half_up(minutes)} minutes. Submit your attempt soon!',
                        NotificationType.ALERT,
                    )
                )

        return [notification for notification in created if notification is not None]
