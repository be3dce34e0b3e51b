import logging

logger = logging.getLogger(__name__)


class NotificationSender:
    """Best-effort delivery of a message to a student.

    Implementations may raise; callers treat any failure as non-fatal.
    """

    def notify(self, student_id: int, message: str) -> None:
        raise NotImplementedError


class LoggingNotificationSender(NotificationSender):
    def notify(self, student_id: int, message: str) -> None:
        logger.info(f"Notification queued for student {student_id}: {message}")


def get_notifier() -> NotificationSender:
    return LoggingNotificationSender()
