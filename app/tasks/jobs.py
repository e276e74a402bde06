from app.tasks.celery_app import celery
from app.tasks import worker_jobs


@celery.task(name="app.tasks.jobs.process_email_queue")
def process_email_queue(limit: int = 50):
    return worker_jobs.process_email_queue(limit=limit)


@celery.task(name="app.tasks.jobs.purge_expired_reset_tokens")
def purge_expired_reset_tokens():
    return worker_jobs.purge_expired_reset_tokens()
