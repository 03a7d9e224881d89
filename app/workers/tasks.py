from app.services import email
from app.workers.celery_app import celery_app


@celery_app.task(name="send_verification_email_task")
def send_verification_email_task(address: str, code: str) -> bool:
    return email.send_verification_email(address, code)


@celery_app.task(name="send_welcome_email_task")
def send_welcome_email_task(address: str, username: str) -> bool:
    return email.send_welcome_email(address, username)


@celery_app.task(name="send_password_reset_email_task")
def send_password_reset_email_task(address: str, link: str) -> bool:
    return email.send_password_reset_email(address, link)


@celery_app.task(name="send_reset_success_email_task")
def send_reset_success_email_task(address: str) -> bool:
    return email.send_reset_success_email(address)
