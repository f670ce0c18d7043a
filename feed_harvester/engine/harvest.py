"""One feed's fetch -> normalize -> store sequence."""

from __future__ import annotations

from typing import Protocol

from ..errors import FeedFetchError, NormalizationError, StorageError
from ..logging_conf import feed_logger
from .fetcher import FetchedFeed
from .normalizer import RecordNormalizer
from .records import FeedTally
from .store import ItemStore


class FeedSource(Protocol):
    def fetch(self, url: str) -> FetchedFeed: ...


class HarvestCycle:
    """Harvest a single feed and tally what was observed and newly stored.

    Fetch and normalization failures zero the feed's tally; a storage
    failure skips only the affected item. Neither escapes :meth:`run`.
    """

    def __init__(
        self,
        fetcher: FeedSource,
        store: ItemStore,
        normalizer: RecordNormalizer | None = None,
    ) -> None:
        self.fetcher = fetcher
        self.store = store
        self.normalizer = normalizer or RecordNormalizer()

    def run(self, feed_url: str) -> FeedTally:
        log = feed_logger(feed_url)
        tally = FeedTally(feed_url=feed_url)
        try:
            feed = self.fetcher.fetch(feed_url)
            try:
                items = self.normalizer.normalize_many(feed.entries, feed_url, feed.title)
            except NormalizationError as exc:
                raise FeedFetchError(feed_url, f"unusable entry: {exc}") from exc
        except FeedFetchError as exc:
            log.error("feed_fetch_failed", error=exc.reason)
            tally.error = exc.reason
            return tally
        except Exception as exc:  # noqa: BLE001
            log.exception("feed_fetch_failed", error=str(exc))
            tally.error = str(exc) or exc.__class__.__name__
            return tally

        tally.total = len(items)
        for item in items:
            try:
                result = self.store.save(item)
            except StorageError as exc:
                tally.failed += 1
                log.error("item_store_failed", title=item.title, guid=item.guid, error=str(exc))
                continue
            except Exception as exc:  # noqa: BLE001
                tally.failed += 1
                log.exception("item_store_failed", title=item.title, guid=item.guid, error=str(exc))
                continue
            if result.stored:
                tally.stored += 1
            else:
                tally.duplicates += 1

        log.info(
            "feed_processed",
            stored=tally.stored,
            total=tally.total,
            duplicates=tally.duplicates,
            failed=tally.failed,
        )
        return tally


__all__ = ["FeedSource", "HarvestCycle"]
