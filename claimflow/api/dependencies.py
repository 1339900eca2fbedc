"""
Shared dependencies for API routers.

Provides the logger factory and access to the in-memory run store.
"""

import logging

from claimflow.cache import run_cache, generate_run_cache_key
from claimflow.logics.claim_run import ClaimRun
from claimflow.logics.exceptions import RunNotFoundError, RunNotFinalizedError


# Initialize logger for API routers
def get_logger(name: str = "api") -> logging.Logger:
    """
    Get a logger instance for API routers.

    Usage in routers:
        from claimflow.api.dependencies import get_logger
        logger = get_logger(__name__)
    """
    return logging.getLogger(name)


def save_run(run: ClaimRun) -> ClaimRun:
    run_cache.set(generate_run_cache_key(run.run_id), run)
    return run


def get_run(run_id: str, require_finalized: bool = False) -> ClaimRun:
    """
    Look up a stored run.

    Args:
        run_id: Id returned when the run was created
        require_finalized: Also require that assignments were applied

    Raises:
        RunNotFoundError: If the run is unknown or expired
        RunNotFinalizedError: If require_finalized and the run is not finalized
    """
    run = run_cache.get(generate_run_cache_key(run_id))
    if run is None:
        raise RunNotFoundError(run_id)
    if require_finalized and not run.finalized:
        raise RunNotFinalizedError(run_id)
    return run
