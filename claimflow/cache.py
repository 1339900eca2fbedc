"""
Shared run store for the claims API.

Processing runs live only in memory for the length of a user session. The store
is a TTL cache keyed by run id; an idle run expires after RUN_TTL_SECONDS and the
least recently used run is dropped once MAX_RUNS are held.

Usage:
    from claimflow.cache import run_cache, clear_all_caches

    run_cache.set(run.run_id, run)
    run = run_cache.get(run_id)
"""

import logging
from datetime import datetime

from claimflow.logics.cache_utils import TTLCache
from claimflow.settings import RUN_TTL_SECONDS, MAX_RUNS

logger = logging.getLogger(__name__)

# Keys: "run:v1:{run_id}"
run_cache = TTLCache(max_size=MAX_RUNS, ttl_seconds=RUN_TTL_SECONDS)


def generate_run_cache_key(run_id: str) -> str:
    """
    Examples:
        generate_run_cache_key("9f1c...") -> "run:v1:9f1c..."
    """
    return f"run:v1:{run_id}"


def clear_all_caches() -> dict:
    """
    Drop every stored run.

    Returns:
        Number of entries cleared and the time of clearing
    """
    cleared = run_cache.size()
    run_cache.clear()
    logger.info(f"[Cache] Cleared {cleared} stored runs")
    return {"runs_cleared": cleared, "timestamp": datetime.now().isoformat()}
