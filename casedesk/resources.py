"""
Schemas of the list-oriented resources exposed by the backend.

Each list page of the console instantiates the same controller with one of
these schemas.
"""

from casedesk.core.models import ResourceSchema

CASES = ResourceSchema(
    name="cases",
    path="/cases",
    items_key="cases",
    page_size=10,
    location_field="location.coordinates",
    status_path="/cases/{id}/status",
    assign_path="/cases/{id}/assign",
    assign_key="officerId",
)

STATEMENTS = ResourceSchema(
    name="statements",
    path="/statements",
    items_key="statements",
    page_size=10,
    filters=("caseId", "type"),
    author_field="author",
)

EVIDENCE = ResourceSchema(
    name="evidence",
    path="/evidence",
    items_key="evidence",
    page_size=12,
    filters=("case", "statement"),
    author_field="uploadedBy",
    create_path="/evidence/upload",
)

REPORTS = ResourceSchema(
    name="reports",
    path="/reports",
    items_key="reports",
    page_size=10,
    filters=("case",),
    author_field="author",
)

SCHEMAS = {schema.name: schema for schema in (CASES, STATEMENTS, EVIDENCE, REPORTS)}


def get_schema(name: str) -> ResourceSchema:
    try:
        return SCHEMAS[name]
    except KeyError:
        raise KeyError(f"Unknown resource '{name}', expected one of: {', '.join(SCHEMAS)}")
