"""Engine components orchestrating fetch → normalize → store."""

from .fetcher import FeedFetcher, FetchedFeed
from .harvest import HarvestCycle
from .normalizer import RecordNormalizer
from .records import FeedTally, Item, ItemView, RoundSummary, SaveResult, SaveStatus
from .store import ItemStore, MongoItemStore, SQLiteItemStore, build_store

__all__ = [
    "FeedFetcher",
    "FeedTally",
    "FetchedFeed",
    "HarvestCycle",
    "Item",
    "ItemStore",
    "ItemView",
    "MongoItemStore",
    "RecordNormalizer",
    "RoundSummary",
    "SQLiteItemStore",
    "SaveResult",
    "SaveStatus",
    "build_store",
]
