"""Tests for AggregateRepository."""

import pytest

from drugforge.errors import NotFoundError, SchemaValidationError, UnknownAggregateType


@pytest.fixture
def generic(services):
    return services.entities.create_entity({"generic_name": "Adalimumab"}, "generic_drugs")


def test_create_copies_owner_key(services, generic):
    row = services.aggregates.create_aggregate_record_by_entity_uid(
        "GenericAlias", generic.uid, {"alias": "D2E7"}
    )
    assert row["generic_uid"] == generic.uid
    assert row["generic_key"] == "GEN-00001"
    assert row["alias"] == "D2E7"
    assert len(row["uid"]) == 36


def test_explicit_owner_key_wins(services, generic):
    row = services.aggregates.create_aggregate_record_by_entity_uid(
        "GenericAlias", generic.uid, {"alias": "D2E7", "generic_key": "LEGACY"}
    )
    assert row["generic_key"] == "LEGACY"


def test_create_for_missing_owner(services):
    with pytest.raises(NotFoundError, match="missing-uid"):
        services.aggregates.create_aggregate_record_by_entity_uid(
            "GenericAlias", "missing-uid", {"alias": "D2E7"}
        )
    assert services.builder.count("generic_aliases") == 0


def test_unknown_type_fails_every_operation(services, generic):
    aggregates = services.aggregates
    calls = [
        lambda: aggregates.create_aggregate_record_by_entity_uid("GenericAlia", generic.uid, {}),
        lambda: aggregates.update_aggregate_record("GenericAlia", "x", {}),
        lambda: aggregates.delete_aggregate_record("GenericAlia", "x"),
        lambda: aggregates.list_aggregate_records("GenericAlia", generic.uid),
    ]
    for call in calls:
        with pytest.raises(UnknownAggregateType) as exc_info:
            call()
        assert exc_info.value.aggregate_type == "GenericAlia"
    assert services.builder.count("generic_aliases") == 0


def test_invalid_property_rejected(services, generic):
    with pytest.raises(SchemaValidationError) as exc_info:
        services.aggregates.create_aggregate_record_by_entity_uid(
            "GenericAlias", generic.uid, {"alias": "D2E7", "nickname": "x"}
        )
    assert exc_info.value.identifier == "nickname"


def test_list_uses_default_order(services, generic):
    for alias in ("Humira", "D2E7", "Amjevita"):
        services.aggregates.create_aggregate_record_by_entity_uid(
            "GenericAlias", generic.uid, {"alias": alias}
        )
    rows = services.aggregates.list_aggregate_records("GenericAlias", generic.uid)
    assert [r["alias"] for r in rows] == ["Amjevita", "D2E7", "Humira"]
    assert services.aggregates.list_aggregate_records("GenericAlias", "someone-else") == []


def test_update_and_delete(services, generic):
    row = services.aggregates.create_aggregate_record_by_entity_uid(
        "GenericApproval", generic.uid, {"country": "US"}
    )
    updated = services.aggregates.update_aggregate_record(
        "GenericApproval", row["uid"], {"approval_date": "2002-12-31T00:00:00"}
    )
    assert updated["approval_date"] == "2002-12-31"
    assert updated["country"] == "US"

    assert services.aggregates.update_aggregate_record("GenericApproval", "missing", {"country": "CA"}) is None
    assert services.aggregates.delete_aggregate_record("GenericApproval", row["uid"]) == 1
    assert services.aggregates.delete_aggregate_record("GenericApproval", row["uid"]) == 0


def test_entity_aggregates_in_declared_order(services, generic):
    aggregates = services.aggregates
    aggregates.create_aggregate_record_by_entity_uid(
        "GenericApproval", generic.uid, {"country": "US"}
    )
    aggregates.create_aggregate_record_by_entity_uid("GenericAlias", generic.uid, {"alias": "D2E7"})
    aggregates.create_aggregate_record_by_entity_uid(
        "GenericRoute", generic.uid, {"route_type": "Subcutaneous"}
    )
    services.entities.create_child_entity(generic.key, {"drug_name": "Humira"}, "manu_drugs")

    result = aggregates.get_entity_aggregates(generic.uid, "generic_drugs")
    assert [a.aggregate_type for a in result] == [
        "GenericAlias", "GenericRoute", "GenericApproval", "GenericManuDrugs",
    ]
    assert [a.ordinal for a in result] == [0, 1, 2, 3]
    assert [a.display_name for a in result] == ["D2E7", "Subcutaneous", "US", "Humira"]

    route = result[1].to_dict()
    route_type = next(p for p in route["properties"] if p["propertyName"] == "route_type")
    assert route_type["controlType"] == "Select"
    assert "Oral" in route_type["options"]


def test_entity_aggregates_falls_back_to_type_display_name(services, generic):
    services.aggregates.create_aggregate_record_by_entity_uid("GenericApproval", generic.uid, {})
    result = services.aggregates.get_entity_aggregates(generic.uid, "generic_drugs")
    assert result[0].display_name == "Approvals"
