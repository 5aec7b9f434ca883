import logging
from flask import current_app
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
import redis as _redis
from rq import Queue

logger = logging.getLogger(__name__)

db = SQLAlchemy()
migrate = Migrate()

# Initialized lazily in create_app
redis_client: _redis.Redis = None  # type: ignore
task_queue: Queue = None  # type: ignore


class DummyQueue:
    """Runs jobs inline for development without Redis."""

    def enqueue(self, func, *args, **kwargs):
        kwargs.pop("retry", None)
        logger.warning("Redis not available, running job inline: %s", func.__name__)
        func(*args, **kwargs)
        return None


def init_redis(app):
    global redis_client, task_queue
    redis_url = app.config.get("REDIS_URL", "")
    if not redis_url:
        logger.warning("REDIS_URL not set, OTP jobs run inline")
        task_queue = DummyQueue()
        return

    try:
        redis_client = _redis.from_url(redis_url, decode_responses=False)
        redis_client.ping()
        task_queue = Queue("otp-delivery", connection=redis_client)
    except Exception as e:
        logger.warning("Redis connection failed (%s), OTP jobs run inline", e)
        task_queue = DummyQueue()


def init_storage(app):
    """Construct the object storage client once and attach it to the app."""
    from seller_dashboard.services.storage_service import StorageClient

    app.extensions["storage"] = StorageClient.from_config(app.config)


def get_storage():
    return current_app.extensions["storage"]


def get_queue():
    return task_queue


def init_drafts(app):
    from seller_dashboard.services.drafts import DraftRegistry

    app.extensions["drafts"] = DraftRegistry()


def get_drafts():
    return current_app.extensions["drafts"]
