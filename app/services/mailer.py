import logging

from app.services import email
from app.workers import tasks

logger = logging.getLogger(__name__)


class Mailer:
    """Fire-and-forget access to the email collaborator.

    With ``use_queue`` the message is handed to a Celery worker, otherwise it
    is delivered inline. Either way a failure is logged and swallowed: email
    is best-effort and must never undo the operation that triggered it.
    """

    def __init__(self, use_queue: bool = True):
        self.use_queue = use_queue

    def _dispatch(self, task, deliver, *args) -> None:
        try:
            if self.use_queue:
                task.delay(*args)
            else:
                deliver(*args)
        except Exception:
            logger.exception("Email dispatch failed for %s", task.name)

    def send_verification_email(self, address: str, code: str) -> None:
        self._dispatch(tasks.send_verification_email_task, email.send_verification_email, address, code)

    def send_welcome_email(self, address: str, username: str) -> None:
        self._dispatch(tasks.send_welcome_email_task, email.send_welcome_email, address, username)

    def send_password_reset_email(self, address: str, link: str) -> None:
        self._dispatch(tasks.send_password_reset_email_task, email.send_password_reset_email, address, link)

    def send_reset_success_email(self, address: str) -> None:
        self._dispatch(tasks.send_reset_success_email_task, email.send_reset_success_email, address)
