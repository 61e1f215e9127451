from celery.schedules import crontab

from eventtalent.tasks.beat_schedule import CELERYBEAT_SCHEDULE, get_beat_schedule
from eventtalent.tasks.celery_app import celery_app


def test_every_scheduled_task_is_registered():
    celery_app.loader.import_default_modules()

    for entry in CELERYBEAT_SCHEDULE.values():
        assert entry["task"] in celery_app.tasks


def test_production_schedule():
    schedule = get_beat_schedule("production")

    assert schedule["complete-due-bookings"]["schedule"] == crontab(minute="*/15")
    assert schedule["sweep-review-grace-period"]["schedule"] == crontab(minute=5)
    assert schedule["retry-failed-payouts"]["options"]["queue"] == "payments"


def test_development_overrides_do_not_leak():
    dev = get_beat_schedule("development")
    prod = get_beat_schedule("production")

    assert dev["complete-due-bookings"]["schedule"] == crontab(minute="*/5")
    assert prod["complete-due-bookings"]["schedule"] == crontab(minute="*/15")
    assert CELERYBEAT_SCHEDULE["complete-due-bookings"]["schedule"] == crontab(minute="*/15")


def test_eager_in_test_environment():
    assert celery_app.conf.task_always_eager is True
