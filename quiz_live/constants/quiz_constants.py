"""Quiz-related constants shared across the scheduler, gateway and API layers."""

# Seconds added after a quiz's due date before cached submissions are consolidated.
QUIZ_GRACE_PERIOD_SECONDS: int = 2

QUIZ_TIMER_THREAD_NAME: str = "QuizScheduler"

PARTICIPATION_TOPIC_TEMPLATE: str = "/topic/exercise/{quiz_id}/participation"
QUIZ_BROADCAST_TOPIC_TEMPLATE: str = "/topic/quizExercises/{quiz_id}"

# Upper bound on undelivered notifications kept per user.
MAILBOX_SIZE: int = 50
