"""
ContentDB - schema-driven content modeling and validation engine.

This package implements the core of a multi-tenant content dashboard:
- Content schemas (typed, ordered field lists) of kind collection or single
- A closed field type catalog with per-type validation and defaults
- Content items validated against their schema, with a review lifecycle
- Structural schema mutations with purge/retain data migration
- Relation resolution between schemas

Architecture:
    ┌──────────────┐     ┌──────────────────┐     ┌──────────────────┐
    │   Caller     │────▶│  ContentEngine   │────▶│  SchemaRegistry  │
    │ (UI / API)   │     │     (facade)     │     │  MutationEngine  │
    └──────────────┘     └────────┬─────────┘     └────────┬─────────┘
                                  │                        │
                                  ▼                        ▼
                         ┌──────────────────┐     ┌──────────────────┐
                         │ ContentService   │────▶│ SchemaStore /    │
                         │ Validator        │     │ ContentItemStore │
                         │ RelationResolver │     └────────┬─────────┘
                         └──────────────────┘              │
                                             ┌─────────────┼─────────────┐
                                             ▼             ▼             ▼
                                        ┌────────┐    ┌────────┐    ┌─────────┐
                                        │ memory │    │ SQLite │    │  HTTP   │
                                        └────────┘    └────────┘    │(gateway)│
                                                                    └─────────┘

Invariants:
    - Every store and engine call is scoped to a tenant_id (workspace)
    - Field ids are immutable; labels carry no storage meaning
    - Item data keys are always active or retained field ids of the item's schema
    - Schema writes are compare-and-set on the schema version

How to change safely:
    - Add field types only together with a catalog check and default
    - Keep JSON attribute names stable (camelCase, see schema/types.py)
    - Never let a store implementation swallow a storage failure
"""

from ._version import __version__

__all__ = ["__version__"]
