# assetreg/registry.py
"""
Asset metadata registry.

Two maps live in the key-value store:
- Asset store:     ("asset", id)               -> record
- Access registry: ("access", id, accessor)    -> True

plus the sequence counter at ("counter",), which always holds the
highest identifier ever assigned. Identifiers start at 1 and are never
reused, even after deletion. The default SequenceClock keeps its own
value at ("clock",) in the same store.

Every operation runs as a single store transaction and reports failure
through its Result rather than raising.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from .clock import SequenceClock
from .errors import Result, forbidden, invalid_field, not_found
from .store import MemoryStore
from .validation import invalid_fields

logger = logging.getLogger(__name__)

COUNTER_KEY = ("counter",)


def _asset_key(asset_id: int) -> tuple:
    return ("asset", asset_id)


def _access_key(asset_id: int, accessor: Any) -> tuple:
    return ("access", asset_id, accessor)


@dataclass
class AssetRecord:
    """
    A registered asset.

    Attributes:
        asset_id: Sequential identifier, assigned at creation
        title: 1..64 characters
        creator: Identity allowed to mutate the asset
        size: Integer in (0, 1_000_000_000)
        created_at: Logical clock reading at creation, never changes
        description: 1..128 characters
        tags: 1..10 tags of 1..32 characters each
    """
    asset_id: int
    title: str
    creator: Any
    size: int
    created_at: int
    description: str
    tags: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "asset_id": self.asset_id,
            "title": self.title,
            "creator": self.creator,
            "size": self.size,
            "created_at": self.created_at,
            "description": self.description,
            "tags": list(self.tags),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AssetRecord":
        return cls(
            asset_id=data["asset_id"],
            title=data["title"],
            creator=data["creator"],
            size=data["size"],
            created_at=data["created_at"],
            description=data["description"],
            tags=list(data["tags"]),
        )


class AssetRegistry:
    """
    Registry of asset records and their access grants.

    Usage:
        registry = AssetRegistry()
        asset_id = registry.create("alice", "Map v1", 1024,
                                   "Initial survey", ["geo", "v1"]).unwrap()
        registry.check_access(asset_id, "alice")  # True

    Caller identities are opaque tokens compared with ==. With a JsonStore
    they must be JSON-serializable (strings in practice).
    """

    def __init__(self, store=None, clock=None):
        self.store = store if store is not None else MemoryStore()
        self.clock = clock if clock is not None else SequenceClock(store=self.store)

    @property
    def last_id(self) -> int:
        """Highest identifier ever assigned (0 before the first create)."""
        return self.store.get(COUNTER_KEY, 0)

    def get(self, asset_id: int) -> Optional[AssetRecord]:
        """Get a copy of the stored record, or None."""
        data = self.store.get(_asset_key(asset_id))
        return AssetRecord.from_dict(data) if data is not None else None

    def create(
        self,
        caller: Any,
        title: str,
        size: int,
        description: str,
        tags: List[str],
    ) -> Result:
        """
        Register a new asset owned by the caller.

        The caller also receives the asset's first access grant.

        Returns:
            Result with the new identifier, or an InvalidField error
        """
        bad = invalid_fields(title, size, description, tags)
        if bad:
            logger.debug(f"Rejected create by {caller}: invalid {bad}")
            return invalid_field(bad)

        with self.store.transaction() as store:
            next_id = store.get(COUNTER_KEY, 0) + 1
            record = AssetRecord(
                asset_id=next_id,
                title=title,
                creator=caller,
                size=size,
                created_at=self.clock.now(),
                description=description,
                tags=list(tags),
            )
            store.insert(_asset_key(next_id), record.to_dict())
            store.insert(_access_key(next_id, caller), True)
            store.set(COUNTER_KEY, next_id)

        logger.info(f"Created asset {next_id} for {caller}")
        return Result.ok(next_id)

    def read_description(self, asset_id: int) -> Result:
        record = self.get(asset_id)
        if record is None:
            return not_found(asset_id)
        return Result.ok(record.description)

    def check_access(self, asset_id: int, accessor: Any) -> bool:
        """
        True if the accessor holds a grant row for the asset.

        Never fails: an unknown asset simply has no grants.
        """
        return self.store.contains(_access_key(asset_id, accessor))

    def count_tags(self, asset_id: int) -> Result:
        record = self.get(asset_id)
        if record is None:
            return not_found(asset_id)
        return Result.ok(len(record.tags))

    def transfer_ownership(self, caller: Any, asset_id: int, new_creator: Any) -> Result:
        """
        Hand the asset to a new creator.

        Only the creator field changes. Existing grants stay as they are
        and the new creator is not granted access automatically.
        """
        def apply(record: AssetRecord) -> Optional[Result]:
            record.creator = new_creator
            return None

        result = self._guarded(caller, asset_id, apply)
        if result.success:
            logger.info(f"Transferred asset {asset_id} from {caller} to {new_creator}")
        return result

    def update_metadata(
        self,
        caller: Any,
        asset_id: int,
        title: str,
        size: int,
        description: str,
        tags: List[str],
    ) -> Result:
        """Replace title, size, description and tags in one step."""
        def apply(record: AssetRecord) -> Optional[Result]:
            bad = invalid_fields(title, size, description, tags)
            if bad:
                return invalid_field(bad)
            record.title = title
            record.size = size
            record.description = description
            record.tags = list(tags)
            return None

        result = self._guarded(caller, asset_id, apply)
        if result.success:
            logger.info(f"Updated asset {asset_id}")
        return result

    def delete(self, caller: Any, asset_id: int) -> Result:
        """
        Remove the asset record.

        Grant rows for the identifier are left in place. They can never
        be matched by a new asset since identifiers are not reused.
        """
        result = self._guarded(caller, asset_id, None)
        if result.success:
            logger.info(f"Deleted asset {asset_id}")
        return result

    def _guarded(
        self,
        caller: Any,
        asset_id: int,
        apply: Optional[Callable[[AssetRecord], Optional[Result]]],
    ) -> Result:
        """
        Creator-gated transition shared by transfer, update and delete.

        Checks run in a fixed order: existence, then ownership, then
        whatever apply() validates. apply mutates the record in place or
        returns a failed Result; passing None deletes the record.
        """
        with self.store.transaction() as store:
            key = _asset_key(asset_id)
            data = store.get(key)
            if data is None:
                logger.debug(f"Rejected change to asset {asset_id}: not found")
                return not_found(asset_id)

            record = AssetRecord.from_dict(data)
            if record.creator != caller:
                logger.debug(f"Rejected change to asset {asset_id} by {caller}: not creator")
                return forbidden(asset_id)

            if apply is None:
                store.delete(key)
                return Result.ok()

            failure = apply(record)
            if failure is not None:
                logger.debug(f"Rejected change to asset {asset_id}: {failure.error.message}")
                return failure

            store.set(key, record.to_dict())
            return Result.ok()

    def __contains__(self, asset_id: int) -> bool:
        return self.store.contains(_asset_key(asset_id))
