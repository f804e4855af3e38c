from apscheduler.schedulers.background import BackgroundScheduler

from app.core.exceptions import StorageError


def start_cleaner(storage, logger, interval_seconds: int):
    """Periodically drop presigned upload tokens that have expired.

    Only backends that hand out tokens themselves need this; OCI expires
    pre-authenticated requests on its own.
    """
    purge = getattr(storage, "purge_expired_uploads", None)
    if purge is None:
        return None

    scheduler = BackgroundScheduler()

    def _job():
        try:
            purged = purge()
            if purged:
                logger.info("event=cleanup_expired_uploads count=%s", purged)
        except StorageError as e:
            logger.error("Storage error in cleanup job: %s", e)
        except Exception as e:
            logger.error("Unexpected error in cleanup job: %s", e)

    scheduler.add_job(_job, "interval", seconds=max(interval_seconds, 60))
    scheduler.start()
    return scheduler
