"""Document store adapter: named collections with change subscriptions."""

from ideaplan.store.base import Collection, DocumentStore, Increment, Selection, Where
from ideaplan.store.changes import ChangeEvent, ChangeFeed, Unsubscribe
from ideaplan.store.sql import SqlDocumentStore

# Collection names
PLANS = "plans"
PLAN_VERSIONS = "plan_versions"
SHARE_LINKS = "share_links"
PLAN_COLLABORATORS = "plan_collaborators"
CHAT_CONVERSATIONS = "chat_conversations"

__all__ = [
    "CHAT_CONVERSATIONS",
    "ChangeEvent",
    "ChangeFeed",
    "Collection",
    "DocumentStore",
    "Increment",
    "PLANS",
    "PLAN_COLLABORATORS",
    "PLAN_VERSIONS",
    "SHARE_LINKS",
    "Selection",
    "SqlDocumentStore",
    "Unsubscribe",
    "Where",
]
