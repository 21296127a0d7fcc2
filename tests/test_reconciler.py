"""Tests for incremental metadata edits."""

import pytest

from catalog_worker.parser import parse_analysis_response
from catalog_worker.reconciler import MetadataState
from catalog_worker.schemas.image import ReconciledMetadata, TechnicalDetails


@pytest.fixture
def state():
    return MetadataState(
        ReconciledMetadata(title="Holiday", description="Day one", tags=["beach", "sun"])
    )


def test_set_description_overwrites(state):
    state.set_description("Replaced")
    assert state.metadata.description == "Replaced"
    assert state.metadata.tags == ["beach", "sun"]


def test_append_description_joins_with_blank_line(state):
    state.append_description("Waves at dusk")
    assert state.metadata.description == "Day one\n\nWaves at dusk"


def test_append_description_to_empty():
    state = MetadataState()
    state.append_description("First")
    assert state.metadata.description == "First"


@pytest.mark.parametrize("tag", ["sea", "beach", "Beach", " spaced "])
def test_add_tag_twice_equals_once(state, tag):
    state.add_tag(tag)
    once = list(state.metadata.tags)
    state.add_tag(tag)
    assert state.metadata.tags == once
    assert tag in state.metadata.tags


def test_add_tag_is_case_sensitive(state):
    state.add_tag("Beach")
    assert state.metadata.tags == ["beach", "sun", "Beach"]


def test_remove_tag(state):
    state.remove_tag("beach")
    assert state.metadata.tags == ["sun"]
    state.remove_tag("missing")
    assert state.metadata.tags == ["sun"]


def test_operations_touch_only_their_field(state):
    before = state.metadata.model_dump()
    state.add_tag("sea")
    after = state.metadata.model_dump()
    changed = {k for k in before if before[k] != after[k]}
    assert changed == {"tags"}


def test_operations_do_not_mutate_previous_metadata(state):
    previous = state.metadata
    state.add_tag("sea")
    assert previous.tags == ["beach", "sun"]


def test_submit_tag_input_trims_and_ignores_blank(state):
    state.submit_tag_input("  palm  ")
    state.submit_tag_input("   ")
    assert state.metadata.tags == ["beach", "sun", "palm"]


def test_update_rejects_unknown_fields(state):
    with pytest.raises(ValueError, match="Unknown metadata fields"):
        state.update(colour="blue")


def test_update_enforces_unique_lists(state):
    state.update(objects=["rock", "rock", "shell"])
    assert state.metadata.objects == ["rock", "shell"]


def test_merge_analysis_unions_raw_values(state):
    result = parse_analysis_response(
        "OBJECTS: Umbrella, sand\nSCENE: beach\nDESCRIPTION: A sunny beach."
    )
    state.merge_analysis(result)

    assert state.metadata.objects == ["Umbrella", "sand"]
    assert state.metadata.scenes == ["beach"]
    assert state.metadata.tags == ["beach", "sun", "umbrella", "sand"]
    assert state.metadata.description == "Day one\n\nA sunny beach."


def test_merge_analysis_is_idempotent(state):
    result = parse_analysis_response("OBJECTS: sand\nDESCRIPTION: A sunny beach.")
    state.merge_analysis(result)
    once = state.metadata.model_dump()
    state.merge_analysis(result)
    assert state.metadata.model_dump() == once


def test_merge_analysis_appends_description_contained_in_user_text():
    state = MetadataState(ReconciledMetadata(description="My cat sleeping on the sofa"))
    result = parse_analysis_response("OBJECTS: cat\nDESCRIPTION: cat")

    state.merge_analysis(result)
    assert state.metadata.description == "My cat sleeping on the sofa\n\ncat"
    state.merge_analysis(result)
    assert state.metadata.description == "My cat sleeping on the sofa\n\ncat"


def test_merge_analysis_into_description_equal_to_analysis():
    state = MetadataState(ReconciledMetadata(description="A sunny beach."))
    state.merge_analysis(parse_analysis_response("DESCRIPTION: A sunny beach."))
    assert state.metadata.description == "A sunny beach."


def test_merge_analysis_ignores_context_fields():
    """Only the raw extraction is merged, not the context-unioned lists."""
    state = MetadataState(ReconciledMetadata(title="Sunset Beach"))
    result = parse_analysis_response(
        "OBJECTS: sand", state.metadata.to_context()
    )
    state.merge_analysis(result)
    assert state.metadata.tags == ["sand"]


def test_no_changes_after_snapshot(state):
    state.take_snapshot()
    assert not state.has_unsaved_changes()


def test_change_detected_after_edit(state):
    state.take_snapshot()
    state.add_tag("sea")
    assert state.has_unsaved_changes()


def test_tag_order_does_not_count_as_change(state):
    state.take_snapshot()
    state.update(tags=["sun", "beach"])
    assert not state.has_unsaved_changes()


def test_revert_is_not_a_change(state):
    state.take_snapshot()
    state.add_tag("sea")
    state.remove_tag("sea")
    assert not state.has_unsaved_changes()


def test_technical_change_detected(state):
    state.take_snapshot()
    state.update(technical_details=TechnicalDetails(orientation="portrait"))
    assert state.has_unsaved_changes()


def test_without_snapshot_compares_with_defaults():
    state = MetadataState()
    assert not state.has_unsaved_changes()
    state.update(title="x")
    assert state.has_unsaved_changes()


def test_reset(state):
    state.take_snapshot()
    state.reset()
    assert state.metadata == ReconciledMetadata()
    assert not state.has_unsaved_changes()
