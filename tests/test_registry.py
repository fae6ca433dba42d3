# tests/test_registry.py
"""Tests for the asset registry operations."""

import tempfile
from pathlib import Path

import pytest

from assetreg import AssetRegistry, ErrorKind, JsonStore, RegistryError, SequenceClock

ALICE = "alice"
BOB = "bob"
MALLORY = "mallory"


@pytest.fixture
def registry():
    """Create an in-memory registry."""
    return AssetRegistry()


def create_sample(registry, caller=ALICE, **overrides):
    """Create an asset with valid defaults."""
    fields = {
        "title": "Map v1",
        "size": 1024,
        "description": "Initial survey",
        "tags": ["geo", "v1"],
    }
    fields.update(overrides)
    return registry.create(caller, **fields)


class TestCreate:
    """Test asset creation."""

    def test_first_identifier_is_one(self, registry):
        """Test the first asset gets identifier 1."""
        result = create_sample(registry)
        assert result.success
        assert result.value == 1
        assert registry.last_id == 1

    def test_identifiers_increase(self, registry):
        """Test identifiers are sequential and match the counter."""
        ids = [create_sample(registry).value for _ in range(5)]
        assert ids == [1, 2, 3, 4, 5]
        assert registry.last_id == ids[-1]

    def test_record_fields(self, registry):
        """Test the stored record holds the supplied metadata."""
        asset_id = create_sample(registry).value
        record = registry.get(asset_id)

        assert record.asset_id == asset_id
        assert record.title == "Map v1"
        assert record.creator == ALICE
        assert record.size == 1024
        assert record.description == "Initial survey"
        assert record.tags == ["geo", "v1"]

    def test_created_at_from_clock(self):
        """Test created_at comes from the supplied clock."""
        registry = AssetRegistry(clock=SequenceClock(start=100))
        first = create_sample(registry).value
        second = create_sample(registry).value

        assert registry.get(first).created_at == 101
        assert registry.get(second).created_at == 102

    def test_default_clock_increases(self, registry):
        """Test the default clock stamps later assets with larger values."""
        first = create_sample(registry).value
        second = create_sample(registry).value
        assert registry.get(second).created_at > registry.get(first).created_at

    def test_creator_is_granted_access(self, registry):
        """Test only the creator is granted access on create."""
        asset_id = create_sample(registry).value
        assert registry.check_access(asset_id, ALICE)
        assert not registry.check_access(asset_id, BOB)

    def test_invalid_field_reports_field(self, registry):
        """Test an invalid title is reported by name."""
        result = create_sample(registry, title="")
        assert not result.success
        assert result.kind == ErrorKind.INVALID_FIELD
        assert result.error.fields == ["title"]

    def test_invalid_create_leaves_no_state(self, registry):
        """Test a rejected create writes nothing."""
        create_sample(registry, size=0)
        assert registry.last_id == 0
        assert 1 not in registry
        assert not registry.check_access(1, ALICE)
        assert len(registry.store) == 0

    def test_caller_tags_list_is_copied(self, registry):
        """Test mutating the caller's tag list does not reach the store."""
        tags = ["geo"]
        asset_id = create_sample(registry, tags=tags).value
        tags.append("mutated")
        assert registry.count_tags(asset_id).value == 1


class TestBoundaries:
    """Test length limits at their edges."""

    def test_title_limit(self, registry):
        """Test title at 64 passes, 65 and empty fail."""
        assert create_sample(registry, title="x" * 64).success
        assert create_sample(registry, title="x" * 65).kind == ErrorKind.INVALID_FIELD
        assert create_sample(registry, title="").kind == ErrorKind.INVALID_FIELD

    def test_description_limit(self, registry):
        """Test description at 128 passes, 129 fails."""
        assert create_sample(registry, description="d" * 128).success
        assert create_sample(registry, description="d" * 129).kind == ErrorKind.INVALID_FIELD

    def test_tag_count_limit(self, registry):
        """Test 10 tags pass, 11 fail."""
        assert create_sample(registry, tags=[f"t{i}" for i in range(10)]).success
        result = create_sample(registry, tags=[f"t{i}" for i in range(11)])
        assert result.kind == ErrorKind.INVALID_FIELD

    def test_tag_length_limit(self, registry):
        """Test a tag of 32 passes, 33 fails."""
        assert create_sample(registry, tags=["t" * 32]).success
        assert create_sample(registry, tags=["t" * 33]).kind == ErrorKind.INVALID_FIELD

    def test_size_limit(self, registry):
        """Test the largest size passes and the bound itself fails."""
        assert create_sample(registry, size=999_999_999).success
        assert create_sample(registry, size=1_000_000_000).kind == ErrorKind.INVALID_FIELD

    def test_rejections_do_not_consume_identifiers(self, registry):
        """Test a rejected create does not advance the counter."""
        create_sample(registry, title="")
        assert create_sample(registry).value == 1


class TestReads:
    """Test read-description, check-access and count-tags."""

    def test_read_description(self, registry):
        """Test the description is returned verbatim."""
        asset_id = create_sample(registry).value
        assert registry.read_description(asset_id).value == "Initial survey"

    def test_read_description_missing(self, registry):
        """Test reading an unknown asset is NotFound."""
        result = registry.read_description(42)
        assert result.kind == ErrorKind.NOT_FOUND

    def test_count_tags(self, registry):
        """Test the tag count matches the stored tags."""
        asset_id = create_sample(registry, tags=["a", "b", "c"]).value
        assert registry.count_tags(asset_id).value == 3

    def test_count_tags_missing(self, registry):
        """Test counting tags of an unknown asset is NotFound."""
        assert registry.count_tags(42).kind == ErrorKind.NOT_FOUND

    def test_check_access_unknown_asset_is_false(self, registry):
        """Test check_access reports False rather than failing."""
        assert registry.check_access(42, ALICE) is False


class TestTransfer:
    """Test ownership transfer."""

    def test_transfer_changes_creator_only(self, registry):
        """Test transfer leaves every field but creator untouched."""
        asset_id = create_sample(registry).value
        before = registry.get(asset_id)

        result = registry.transfer_ownership(ALICE, asset_id, BOB)
        assert result.success

        after = registry.get(asset_id)
        assert after.creator == BOB
        assert after.title == before.title
        assert after.size == before.size
        assert after.created_at == before.created_at
        assert after.tags == before.tags

    def test_transfer_leaves_grants_alone(self, registry):
        """Test the old grant stays and the new creator gets none."""
        asset_id = create_sample(registry).value
        registry.transfer_ownership(ALICE, asset_id, BOB)

        assert registry.check_access(asset_id, ALICE)
        assert not registry.check_access(asset_id, BOB)

    def test_transfer_by_non_creator(self, registry):
        """Test a non-creator cannot transfer."""
        asset_id = create_sample(registry).value
        result = registry.transfer_ownership(MALLORY, asset_id, MALLORY)
        assert result.kind == ErrorKind.FORBIDDEN
        assert registry.get(asset_id).creator == ALICE

    def test_transfer_missing(self, registry):
        """Test transferring an unknown asset is NotFound."""
        assert registry.transfer_ownership(ALICE, 42, BOB).kind == ErrorKind.NOT_FOUND


class TestUpdate:
    """Test metadata update."""

    def test_update_round_trip(self, registry):
        """Test updated description and tags are read back."""
        asset_id = create_sample(registry).value
        result = registry.update_metadata(
            ALICE, asset_id, "Map v2", 2048, "Revised survey", ["geo", "v2", "final"],
        )
        assert result.success
        assert registry.read_description(asset_id).value == "Revised survey"
        assert registry.count_tags(asset_id).value == 3

    def test_update_keeps_immutable_fields(self, registry):
        """Test identifier, creator and created_at survive an update."""
        asset_id = create_sample(registry).value
        before = registry.get(asset_id)
        registry.update_metadata(ALICE, asset_id, "Map v2", 2048, "Revised", ["v2"])
        after = registry.get(asset_id)

        assert after.asset_id == before.asset_id
        assert after.creator == before.creator
        assert after.created_at == before.created_at

    def test_update_by_non_creator_leaves_record(self, registry):
        """Test a forbidden update leaves the record identical."""
        asset_id = create_sample(registry).value
        before = registry.get(asset_id).to_dict()

        result = registry.update_metadata(MALLORY, asset_id, "Hacked", 1, "Hacked", ["x"])
        assert result.kind == ErrorKind.FORBIDDEN
        assert registry.get(asset_id).to_dict() == before

    def test_forbidden_before_invalid(self, registry):
        """Test ownership is checked before field validation."""
        asset_id = create_sample(registry).value
        result = registry.update_metadata(MALLORY, asset_id, "", 0, "", [])
        assert result.kind == ErrorKind.FORBIDDEN

    def test_not_found_before_forbidden(self, registry):
        """Test existence is checked before ownership."""
        result = registry.update_metadata(MALLORY, 42, "", 0, "", [])
        assert result.kind == ErrorKind.NOT_FOUND

    def test_invalid_update_leaves_record(self, registry):
        """Test an invalid update by the creator changes nothing."""
        asset_id = create_sample(registry).value
        before = registry.get(asset_id).to_dict()

        result = registry.update_metadata(ALICE, asset_id, "Map v2", 2048, "Revised", ["t" * 33])
        assert result.kind == ErrorKind.INVALID_FIELD
        assert result.error.fields == ["tags"]
        assert registry.get(asset_id).to_dict() == before


class TestDelete:
    """Test deletion."""

    def test_delete_then_everything_not_found(self, registry):
        """Test every operation on a deleted asset is NotFound."""
        asset_id = create_sample(registry).value
        assert registry.delete(ALICE, asset_id).success

        assert registry.read_description(asset_id).kind == ErrorKind.NOT_FOUND
        assert registry.count_tags(asset_id).kind == ErrorKind.NOT_FOUND
        assert registry.transfer_ownership(ALICE, asset_id, BOB).kind == ErrorKind.NOT_FOUND
        result = registry.update_metadata(ALICE, asset_id, "t", 1, "d", ["x"])
        assert result.kind == ErrorKind.NOT_FOUND
        assert registry.delete(ALICE, asset_id).kind == ErrorKind.NOT_FOUND

    def test_identifiers_not_reused(self, registry):
        """Test a create after delete gets a fresh identifier."""
        first = create_sample(registry).value
        registry.delete(ALICE, first)
        second = create_sample(registry).value

        assert second == first + 1
        assert registry.last_id == second

    def test_grants_survive_delete(self, registry):
        """Test grant rows are left behind by delete."""
        asset_id = create_sample(registry).value
        registry.delete(ALICE, asset_id)
        assert registry.check_access(asset_id, ALICE)

    def test_delete_by_non_creator(self, registry):
        """Test a non-creator cannot delete."""
        asset_id = create_sample(registry).value
        assert registry.delete(BOB, asset_id).kind == ErrorKind.FORBIDDEN
        assert asset_id in registry


class TestScenario:
    """End-to-end ownership scenario."""

    def test_transfer_moves_update_rights(self, registry):
        """Test update rights follow the creator through a transfer."""
        asset_id = registry.create(ALICE, "Map v1", 1024, "Initial survey", ["geo", "v1"]).unwrap()
        assert asset_id == 1
        assert registry.check_access(1, ALICE) is True

        assert registry.transfer_ownership(ALICE, 1, BOB).success

        result = registry.update_metadata(ALICE, 1, "Map v2", 2048, "Second survey", ["geo"])
        assert result.kind == ErrorKind.FORBIDDEN

        result = registry.update_metadata(BOB, 1, "Map v2", 2048, "Second survey", ["geo"])
        assert result.success
        assert registry.read_description(1).value == "Second survey"

    def test_unwrap_raises(self, registry):
        """Test unwrap raises RegistryError carrying the kind."""
        with pytest.raises(RegistryError) as excinfo:
            registry.read_description(7).unwrap()
        assert excinfo.value.kind == ErrorKind.NOT_FOUND


class TestDurableRegistry:
    """Test a registry backed by a JsonStore."""

    @pytest.fixture
    def store_dir(self):
        """Create temporary store directory."""
        with tempfile.TemporaryDirectory() as tmpdir:
            yield Path(tmpdir)

    def test_state_survives_reopen(self, store_dir):
        """Test records, counter and grants persist across reopen."""
        registry = AssetRegistry(JsonStore(store_dir))
        asset_id = create_sample(registry).value
        registry.delete(ALICE, asset_id)
        create_sample(registry, caller=BOB)

        reopened = AssetRegistry(JsonStore(store_dir))
        assert reopened.last_id == 2
        assert asset_id not in reopened
        assert reopened.get(2).creator == BOB
        assert reopened.check_access(1, ALICE)
        assert create_sample(reopened).value == 3

    def test_shared_directory_never_reuses_identifiers(self, store_dir):
        """Test two registries on one directory take turns without clobbering."""
        first = AssetRegistry(JsonStore(store_dir))
        second = AssetRegistry(JsonStore(store_dir))

        assert create_sample(first, description="from first").value == 1
        assert create_sample(second, caller=BOB, description="from second").value == 2
        assert create_sample(first, description="first again").value == 3

        assert second.read_description(1).value == "from first"
        assert first.read_description(2).value == "from second"
        assert first.get(2).creator == BOB
        assert second.last_id == 3

    def test_sequence_clock_survives_reopen(self, store_dir):
        """Test created_at keeps increasing after the registry is reopened."""
        first = AssetRegistry(JsonStore(store_dir))
        asset_id = create_sample(first).value

        reopened = AssetRegistry(JsonStore(store_dir))
        later_id = create_sample(reopened).value
        assert reopened.get(later_id).created_at > reopened.get(asset_id).created_at
