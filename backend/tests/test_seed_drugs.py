"""Tests for the demo catalog seed script."""

import random

from drugforge.scripts.seed_drugs import GENERICS, reset_catalog, seed_catalog


def test_seed_catalog(services, capsys):
    assert seed_catalog(services, random.Random(1)) == len(GENERICS)

    products = sum(len(generic[6]) for generic in GENERICS)
    builder = services.builder
    assert builder.count("generic_drugs") == len(GENERICS)
    assert builder.count("manu_drugs") == products
    assert builder.count("entity_relationships") == products
    assert builder.count("generic_aliases") == len(GENERICS)
    assert builder.count("route_types") == 5
    assert services.entities.find_orphaned_relationships() == []

    tree = services.entities.get_entity_tree_data()
    assert sum(len(children) for children in tree.children_map.values()) == products
    assert "GEN-00001: adalimumab" in capsys.readouterr().out


def test_seed_is_deterministic(services):
    seed_catalog(services, random.Random(7))
    first = services.distinct.get_distinct_values("generic_routes", "route_type")
    reset_catalog(services)
    seed_catalog(services, random.Random(7))
    assert services.distinct.get_distinct_values("generic_routes", "route_type") == first


def test_reset_catalog(services):
    seed_catalog(services, random.Random(1))
    reset_catalog(services)
    for table in ("generic_drugs", "manu_drugs", "entity_relationships", "generic_aliases",
                  "generic_routes", "generic_approvals", "countries"):
        assert services.builder.count(table) == 0
    entity = services.entities.create_entity({"generic_name": "new"}, "generic_drugs")
    assert entity.key == "GEN-00001"
