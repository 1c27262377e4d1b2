"""In-memory store of the in-progress submissions of one live quiz."""

from __future__ import annotations

from collections.abc import Iterator
from threading import Lock

from quiz_live.core.models import QuizSubmission


class SubmissionCache:
    """Maps participant logins to their latest ungraded submission.

    Entries are only removed explicitly (``remove``, ``drain``, ``clear``);
    nothing expires while the quiz is live.
    """

    def __init__(self) -> None:
        self._lock = Lock()
        self._submissions: dict[str, QuizSubmission] = {}

    def exists(self, login: str) -> bool:
        with self._lock:
            return login in self._submissions

    def upsert(self, login: str | None, submission: QuizSubmission | None) -> None:
        """Store the submission for the login, replacing any previous one."""
        if not login or submission is None:
            return
        with self._lock:
            self._submissions[login] = submission

    def get(self, login: str) -> QuizSubmission:
        """Return the cached submission, or an empty one when there is none."""
        with self._lock:
            submission = self._submissions.get(login)
        if submission is not None:
            return submission
        return QuizSubmission(submitted_answers=[])

    def remove(self, login: str) -> QuizSubmission | None:
        with self._lock:
            return self._submissions.pop(login, None)

    def iterate_all(self) -> Iterator[tuple[str, QuizSubmission]]:
        """Yield (login, submission) pairs from a snapshot taken on first use."""
        with self._lock:
            snapshot = list(self._submissions.items())
        yield from snapshot

    def drain(self) -> list[tuple[str, QuizSubmission]]:
        """Atomically empty the cache and return everything it held."""
        with self._lock:
            drained = self._submissions
            self._submissions = {}
        return list(drained.items())

    def clear(self) -> None:
        with self._lock:
            self._submissions.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._submissions)
