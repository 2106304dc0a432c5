"""Seed script to create a demo drug catalog.

Creates generic drugs with aliases, routes and approvals, manufactured
products linked through the relationship table, and the lookup tables
behind the picklists. Useful for trying the entity tree, the report grid
and its filter dropdowns.

Usage:
    cd backend
    python -m drugforge.scripts.seed_drugs
    python -m drugforge.scripts.seed_drugs --reset
"""

import argparse
import random

from drugforge.core.bootstrap import DrugforgeServices, initialize_services

ROUTE_TYPES = ["Intravenous", "Subcutaneous", "Oral", "Intramuscular", "Topical"]
COUNTRIES = ["United States", "European Union", "Japan", "Canada", "United Kingdom"]
DRUG_CLASSES = ["Monoclonal antibody", "Small molecule", "Fusion protein", "Kinase inhibitor"]
MEASURES = ["mg", "mg/kg", "mcg", "IU"]
REGIMENS = ["once daily", "twice daily", "weekly", "every 2 weeks", "monthly"]
HALF_LIVES = ["6h", "12h", "24h", "72h", "1 week", "2 weeks", "Variable"]

# (generic_name, biologic, mech_of_action, class_or_type, target, aliases, products)
# products: (drug_name, manufacturer, biosimilar)
GENERICS = [
    ("adalimumab", "Yes", "TNF-alpha blockade", "Monoclonal antibody", "TNF-alpha",
     ["D2E7"], [("Humira", "AbbVie", 0), ("Amjevita", "Amgen", 1), ("Hyrimoz", "Sandoz", 1)]),
    ("infliximab", "Yes", "TNF-alpha blockade", "Monoclonal antibody", "TNF-alpha",
     ["cA2"], [("Remicade", "Janssen", 0), ("Inflectra", "Pfizer", 1)]),
    ("etanercept", "Yes", "Soluble TNF receptor", "Fusion protein", "TNF-alpha",
     ["TNFR:Fc"], [("Enbrel", "Amgen", 0), ("Erelzi", "Sandoz", 1)]),
    ("rituximab", "Yes", "CD20-directed cytolysis", "Monoclonal antibody", "CD20",
     ["IDEC-C2B8"], [("Rituxan", "Genentech", 0), ("Truxima", "Celltrion", 1)]),
    ("tofacitinib", "No", "JAK inhibition", "Kinase inhibitor", "JAK1/JAK3",
     ["CP-690550"], [("Xeljanz", "Pfizer", 0)]),
    ("ustekinumab", "Yes", "IL-12/IL-23 blockade", "Monoclonal antibody", "IL-12/IL-23 p40",
     ["CNTO 1275"], [("Stelara", "Janssen", 0)]),
    ("methotrexate", "No", "Folate antagonism", "Small molecule", "DHFR",
     ["amethopterin"], [("Trexall", "Teva", 0), ("Otrexup", "Antares", 0)]),
]


def _parse_args():
    parser = argparse.ArgumentParser(description="Seed a demo drug catalog.")
    parser.add_argument(
        "--reset",
        action="store_true",
        help="Delete all existing drugs, relationships and lookups before seeding.",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=42,
        help="Random seed for generated routes and approvals.",
    )
    return parser.parse_args()


def reset_catalog(services: DrugforgeServices) -> None:
    """Delete every generic drug (cascading), orphans and lookups; restart key sequences."""
    generic_pk = services.model.schema.require_table("generic_drugs").primary_key
    generics = services.builder.select("generic_drugs", columns=[generic_pk]).rows
    for row in generics:
        services.entities.delete_entity_by_uid(row[generic_pk], "generic_drugs")
    print(f"  Deleted {len(generics)} generic drugs (with aggregates and children)")

    orphans = services.entities.delete_orphaned_relationships()
    if orphans:
        print(f"  Deleted {orphans} orphaned relationships")

    for table in ("drug_classes", "route_types", "countries"):
        pk = services.model.schema.require_table(table).primary_key
        for row in services.builder.select(table, columns=[pk]).rows:
            services.builder.delete(table, row[pk])
        services.keys.reset(table)
    for table in ("generic_drugs", "manu_drugs"):
        services.keys.reset(table)


def _seed_lookups(services: DrugforgeServices) -> None:
    for table, values in (
        ("drug_classes", DRUG_CLASSES),
        ("route_types", ROUTE_TYPES),
        ("countries", COUNTRIES),
    ):
        for value in values:
            services.builder.insert(table, {"value": value})
        print(f"  {table}: {len(values)} values")


def _route(rng: random.Random, route_type: str) -> dict:
    load_measure = rng.choice(MEASURES)
    maintain_measure = rng.choice(MEASURES)
    return {
        "route_type": route_type,
        "load_dose": str(rng.randint(1, 800)),
        "load_measure": load_measure,
        "load_reg": rng.choice(REGIMENS),
        "maintain_dose": str(rng.randint(1, 400)),
        "maintain_measure": maintain_measure,
        "maintain_reg": rng.choice(REGIMENS),
        "montherapy": rng.choice(["Yes", "No", "Conditional"]),
        "half_life": rng.choice(HALF_LIVES),
    }


def _approval(rng: random.Random, route_type: str, country: str) -> dict:
    year = rng.randint(1998, 2022)
    approval = {
        "route_type": route_type,
        "country": country,
        "indication": rng.choice(
            ["Rheumatoid arthritis", "Crohn's disease", "Plaque psoriasis", "Lymphoma"]
        ),
        "populations": rng.choice(["Adults", "Adults and adolescents", "Pediatric"]),
        "approval_date": f"{year}-{rng.randint(1, 12):02d}-{rng.randint(1, 28):02d}",
    }
    if rng.random() < 0.25:
        approval["box_warning"] = "Serious infections and malignancy"
        approval["box_warning_date"] = f"{year + rng.randint(1, 5)}-01-15"
    return approval


def seed_catalog(services: DrugforgeServices, rng: random.Random) -> int:
    """Create lookups, generic drugs, their aggregates and products. Returns the generic count."""
    print("\nCreating lookups...")
    _seed_lookups(services)

    print("\nCreating generic drugs...")
    for row_number, generic in enumerate(GENERICS, start=1):
        name, biologic, moa, drug_class, target, aliases, products = generic
        entity = services.entities.create_entity(
            {
                "row": row_number,
                "generic_name": name,
                "biologic": biologic,
                "mech_of_action": moa,
                "class_or_type": drug_class,
                "target": target,
            },
            "generic_drugs",
        )
        print(f"  {entity.key}: {name}")

        for alias_row, alias in enumerate(aliases, start=1):
            services.aggregates.create_aggregate_record_by_entity_uid(
                "GenericAlias", entity.uid, {"alias": alias, "row": alias_row}
            )

        route_types = rng.sample(ROUTE_TYPES, rng.randint(1, 2))
        for index, route_type in enumerate(route_types, start=1):
            route = _route(rng, route_type)
            route["route_key"] = f"{entity.key}-R{index}"
            services.aggregates.create_aggregate_record_by_entity_uid(
                "GenericRoute", entity.uid, route
            )
            for country in rng.sample(COUNTRIES, rng.randint(1, 3)):
                services.aggregates.create_aggregate_record_by_entity_uid(
                    "GenericApproval", entity.uid, _approval(rng, route_type, country)
                )

        for drug_name, manufacturer, biosimilar in products:
            child = services.entities.create_child_entity(
                entity.key,
                {
                    "drug_name": drug_name,
                    "manufacturer": manufacturer,
                    "biosimilar": biosimilar,
                    "biosimilar_originator": products[0][0] if biosimilar else None,
                },
                "manu_drugs",
            )
            print(f"    {child.key}: {drug_name} ({manufacturer})")
    return len(GENERICS)


def main():
    args = _parse_args()

    services = initialize_services()
    try:
        existing = services.builder.count("generic_drugs")
        if existing and not args.reset:
            print(f"\nGeneric drugs already exist ({existing} total). Use --reset to recreate.")
            return

        if args.reset:
            print("\nResetting drug catalog...")
            reset_catalog(services)

        created = seed_catalog(services, random.Random(args.seed))
        print(f"\nDone! Created {created} generic drugs.")
    finally:
        services.close()


if __name__ == "__main__":
    main()
