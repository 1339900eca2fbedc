"""
E-mail body text for the daily report hand-off.
"""

import logging
from typing import Dict, Optional

from claimflow.logics.config.age_buckets import (
    AgeBucketScheme,
    CANONICAL_SCHEME,
    BUCKET_CRITICAL,
    BUCKET_PRIORITY,
    BUCKET_BACKLOG,
    BUCKET_QUEUE,
)
from claimflow.logics.claim_classifier import STATE_PEND, STATE_ONHOLD, STATE_MANAGEMENT_REVIEW

logger = logging.getLogger(__name__)

# (title used in the sentence, stats key)
EMAIL_STAT_BLOCKS = [
    ("pending", STATE_PEND),
    ("On Hold", STATE_ONHOLD),
    ("in Management Review", STATE_MANAGEMENT_REVIEW),
]


def _stat_line(today: int, yesterday: Optional[int]) -> str:
    return f"{today} (Yest. {yesterday or 0})"


def build_stat_block(
    title: str,
    state: str,
    today_stats: Dict[str, Dict[str, int]],
    yesterday_stats: Dict[str, Dict[str, int]],
    scheme: AgeBucketScheme = CANONICAL_SCHEME
) -> str:
    today_block = today_stats.get(state, {})
    yest_block = yesterday_stats.get(state, {})

    lines = [f"Number of total claims {title}: {_stat_line(today_block.get('total', 0), yest_block.get('total'))}"]
    for bucket, caption in [
        (BUCKET_CRITICAL, "CRITICAL"),
        (BUCKET_PRIORITY, "PRIORITY"),
        (BUCKET_BACKLOG, "Backlog"),
        (BUCKET_QUEUE, "Queue"),
    ]:
        label = scheme.stat_label(bucket)
        lines.append(
            f"{caption} ({label} Days): {_stat_line(today_block.get(label, 0), yest_block.get(label))}"
        )
    return "\n".join(lines)


def build_email_text(
    client_name: str,
    today_stats: Optional[Dict[str, Dict[str, int]]] = None,
    yesterday_stats: Optional[Dict[str, Dict[str, int]]] = None,
    scheme: AgeBucketScheme = CANONICAL_SCHEME
) -> str:
    """
    Body of the daily report e-mail. The stat highlights only appear when a
    prior-day snapshot was part of the run.
    """
    body = f"Hello Teams,\n\nAttached is today's Daily Action Report for {client_name}."

    if yesterday_stats is not None:
        blocks = [
            build_stat_block(title, state, today_stats or {}, yesterday_stats, scheme)
            for title, state in EMAIL_STAT_BLOCKS
        ]
        body += (
            "\n\nBelow are the detailed highlights from the report. For a full visual breakdown of claim "
            "movement, please see the attached 'Daily Claim-Flow Analysis' PDF.\n\n"
            + "\n\n".join(blocks)
        )

    body += "\n\nPlease let me know if you have any questions."
    logger.debug(f"[Email] Built e-mail text for {client_name} ({len(body)} chars)")
    return body
