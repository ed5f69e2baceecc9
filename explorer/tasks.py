"""
Celery tasks for the explorer.

- run_exploration: one unattended exploration run on the "explore" queue
"""

import asyncio
import logging
from typing import Any, Dict, Optional

from celery import shared_task

from explorer.services.disambiguation import PageAction, ScriptedDisambiguator

logger = logging.getLogger(__name__)


@shared_task(name="explorer.tasks.run_exploration")
def run_exploration(max_pages: Optional[int] = None, wait: bool = True) -> Dict[str, Any]:
    """
    Explore the site without an operator.

    Page anomalies are skipped, ambiguous countries and regions stay
    unresolved (which stops the crawl for a manual run), and completion
    provider guesses are accepted.

    Args:
        max_pages: Stop after this many pages (None explores the whole frontier)
        wait: Apply the politeness wait between pages

    Returns:
        Dict with the run counters
    """
    from explorer.services.exploration_orchestrator import explore

    logger.info(f"Starting exploration (max_pages={max_pages}, wait={wait})")
    disambiguator = ScriptedDisambiguator(default_action=PageAction.SKIP, accept_guesses=True)

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        state = loop.run_until_complete(explore(disambiguator, max_pages=max_pages, wait=wait))
    finally:
        loop.close()

    result = state.to_dict()
    result["status"] = "failed" if state.fatal_error else "completed"
    logger.info(f"Exploration {result['status']}: {result}")
    return result
