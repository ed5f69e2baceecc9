"""
Crawl Frontier - file-persisted queue of links to explore.

The frontier is the crawl's durable state:
- Links are appended in discovery order and never removed
- A link is unique by product id when it has one, else by url
- Processed links get an ``explored`` timestamp (epoch milliseconds)
- The whole queue is snapshotted as JSON ``{"data": [...]}`` after each page,
  so a crawl resumes where it stopped

Products already stored are filtered out on enqueue with a single batched
record store lookup per page.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Set

from django.conf import settings

from explorer.entities import FrontierLink, now_ms
from explorer.utils.text import round_percent

logger = logging.getLogger(__name__)


class CrawlFrontier:
    """
    Append-only crawl queue.

    Usage:
        frontier = CrawlFrontier(record_store=DjangoRecordStore())
        frontier.load()
        link = frontier.next_unexplored()
        ...
        await frontier.enqueue(candidates)
        frontier.mark_explored(link)
        frontier.persist()
    """

    STATE_FILE_PATTERN = "{keyword}-exploration.json"

    def __init__(
        self,
        record_store=None,
        state_path: Optional[Path] = None,
        target_keyword: Optional[str] = None,
    ):
        """
        Args:
            record_store: Object with an async ``exists(ids)`` method, used to skip
                products that are already stored. None disables the check.
            state_path: JSON snapshot location. Defaults to
                EXPLORER_STATE_DIR/{keyword}-exploration.json
            target_keyword: Crawl keyword, used for the seed link
        """
        self.record_store = record_store
        self.target_keyword = target_keyword or getattr(
            settings, "EXPLORER_TARGET_KEYWORD", "whisky"
        )
        if state_path is None:
            state_dir = Path(getattr(settings, "EXPLORER_STATE_DIR", "jsons"))
            state_path = state_dir / self.STATE_FILE_PATTERN.format(keyword=self.target_keyword)
        self.state_path = Path(state_path)

        self._links: List[FrontierLink] = []
        self._ids: Set[str] = set()
        self._urls: Set[str] = set()

    def __len__(self) -> int:
        return len(self._links)

    def __iter__(self):
        return iter(self._links)

    @property
    def seed_link(self) -> FrontierLink:
        return FrontierLink(url=f"/s?k={self.target_keyword}")

    # Lookups

    def has_url(self, url: str) -> bool:
        return url in self._urls

    def has_id(self, product_id: str) -> bool:
        return bool(product_id) and product_id in self._ids

    def is_known(self, link: FrontierLink) -> bool:
        if link.product_id:
            return self.has_id(link.product_id)
        return self.has_url(link.url)

    def next_unexplored(self) -> Optional[FrontierLink]:
        """First link, in insertion order, not yet explored."""
        for link in self._links:
            if not link.is_explored:
                return link
        return None

    # Mutations

    async def enqueue(self, candidates: Iterable[FrontierLink]) -> List[FrontierLink]:
        """
        Append new links to the frontier.

        Candidates are dropped when they are not flagged for exploration, appear
        earlier in the same batch, are already in the frontier, or point to a
        product that is already stored.

        Returns:
            The links actually appended
        """
        batch: List[FrontierLink] = []
        batch_keys: Set[str] = set()
        for candidate in candidates:
            if candidate is None or not candidate.add_to_exploration:
                continue
            if candidate.key in batch_keys or self.is_known(candidate):
                continue
            batch_keys.add(candidate.key)
            batch.append(candidate)

        if not batch:
            return []

        ids = [link.product_id for link in batch if link.product_id]
        stored: Set[str] = set()
        if ids and self.record_store is not None:
            stored = set(await self.record_store.exists(ids))

        appended = []
        for link in batch:
            if link.product_id and link.product_id in stored:
                logger.debug(f"Product {link.product_id} already stored, not queued")
                continue
            self._append(link)
            appended.append(link)
            logger.info(f"Link {link.url} added")

        return appended

    def mark_explored(self, link: FrontierLink) -> None:
        link.explored_at = now_ms()

    def _append(self, link: FrontierLink) -> None:
        link.add_to_exploration = True
        self._links.append(link)
        if link.product_id:
            self._ids.add(link.product_id)
        self._urls.add(link.url)

    # Persistence

    def load(self) -> "CrawlFrontier":
        """
        Restore the frontier from its JSON snapshot.

        A missing snapshot starts a new crawl from the keyword search page, which
        is persisted right away.
        """
        self._links, self._ids, self._urls = [], set(), set()

        if not self.state_path.exists():
            logger.info(f"No exploration state at {self.state_path}, seeding a new crawl")
            self._append(self.seed_link)
            self.persist()
            return self

        with open(self.state_path, encoding="utf-8") as f:
            data = json.load(f)

        for item in data.get("data", []):
            link = FrontierLink.from_dict(item)
            if self.is_known(link):
                logger.warning(f"Duplicate link {link.key} in {self.state_path}, ignored")
                continue
            self._append(link)

        logger.info(f"Exploration state loaded: {len(self._links)} links")
        return self

    def persist(self) -> None:
        """Write the whole queue atomically (temporary file then replace)."""
        self.state_path.parent.mkdir(parents=True, exist_ok=True)
        payload = {"data": [link.to_dict() for link in self._links]}

        fd, tmp_path = tempfile.mkstemp(
            dir=self.state_path.parent, prefix=self.state_path.name, suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, ensure_ascii=False, indent=2)
            os.replace(tmp_path, self.state_path)
        except OSError:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    # Progress

    def stats(self) -> Dict[str, Any]:
        """
        Progress counters.

        Returns:
            Dict with total, explored, remaining and product link counts plus
            explored/remaining percentages
        """
        total = len(self._links)
        explored = sum(1 for link in self._links if link.is_explored)
        remaining = total - explored
        return {
            "total": total,
            "explored": explored,
            "remaining": remaining,
            "products": len(self._ids),
            "explored_percent": round_percent(explored, total),
            "remaining_percent": round_percent(remaining, total),
        }
