from __future__ import annotations

import logging

from apscheduler.schedulers.background import BackgroundScheduler

from .settings import AppSettings
from .storage.cache import TtlCache

LOGGER = logging.getLogger(__name__)


def run_cache_prune_job(cache: TtlCache) -> int:
    removed = cache.prune_expired()
    if removed:
        LOGGER.info("Cache prune job evicted %s expired entries from '%s'", removed, cache.namespace)
    else:
        LOGGER.debug("Cache prune job found no expired entries in '%s'", cache.namespace)
    return removed


def build_scheduler(settings: AppSettings, cache: TtlCache) -> BackgroundScheduler:
    scheduler = BackgroundScheduler(timezone=settings.timezone)
    scheduler.add_job(
        run_cache_prune_job,
        "interval",
        kwargs={"cache": cache},
        minutes=settings.yaml.cache.prune_interval_minutes,
        id="cache_prune_job",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
        misfire_grace_time=120,
    )
    return scheduler
