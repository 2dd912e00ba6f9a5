"""Core modules: models, errors, database, config."""

from contact_distribution.core.config import Settings
from contact_distribution.core.models import (
    BatchMetadata,
    ContactItem,
    ContactRecord,
    ItemStatus,
    SubList,
    Worker,
)

__all__ = [
    "Settings",
    "BatchMetadata",
    "ContactItem",
    "ContactRecord",
    "ItemStatus",
    "SubList",
    "Worker",
]
