"""Push channel backed by per-user mailboxes that clients poll."""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from threading import Lock
from typing import Any

from quiz_live.constants.quiz_constants import MAILBOX_SIZE, QUIZ_BROADCAST_TOPIC_TEMPLATE
from quiz_live.core.messages import build_quiz_broadcast
from quiz_live.core.models import QuizExercise, utc_now

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class Notification:
    topic: str
    payload: dict[str, Any]
    sent_at: datetime = field(default_factory=utc_now)


class MailboxMessagingTemplate:
    """Delivers messages to named users and keeps the latest quiz broadcast per topic.

    Each user's mailbox holds at most ``mailbox_size`` undelivered messages;
    the oldest are dropped first.
    """

    def __init__(self, mailbox_size: int = MAILBOX_SIZE) -> None:
        self._lock = Lock()
        self._mailbox_size = mailbox_size
        self._mailboxes: dict[str, deque[Notification]] = {}
        self._broadcasts: dict[str, Notification] = {}

    def send_to_user(self, login: str, topic: str, payload: dict[str, Any]) -> None:
        with self._lock:
            mailbox = self._mailboxes.get(login)
            if mailbox is None:
                mailbox = deque(maxlen=self._mailbox_size)
                self._mailboxes[login] = mailbox
            mailbox.append(Notification(topic=topic, payload=payload))
        logger.debug("Queued message on %s for user %s", topic, login)

    def send_quiz_to_subscribers(self, quiz: QuizExercise) -> None:
        topic = QUIZ_BROADCAST_TOPIC_TEMPLATE.format(quiz_id=quiz.id)
        payload = build_quiz_broadcast(quiz).model_dump(mode="json")
        with self._lock:
            self._broadcasts[topic] = Notification(topic=topic, payload=payload)
        logger.info("Sent quiz %s to subscribers", quiz.id)

    def poll(self, login: str) -> list[Notification]:
        """Return and remove every pending message for the user."""
        with self._lock:
            mailbox = self._mailboxes.pop(login, None)
        return list(mailbox) if mailbox else []

    def latest_broadcast(self, quiz_id: int) -> Notification | None:
        topic = QUIZ_BROADCAST_TOPIC_TEMPLATE.format(quiz_id=quiz_id)
        with self._lock:
            return self._broadcasts.get(topic)
