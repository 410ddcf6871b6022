"""specks - parse, validate and track structured plan documents.

A speck is a markdown plan: a metadata table, ordered execution steps with
checkbox items, explicit ``{#anchor}`` cross-references and declared
dependencies between steps. Steps may be linked to beads (external work
items) that are kept in sync by the reconciler.

Subpackages:
    - core: configuration, exceptions and file helpers
    - speck: document model, scanner, builder, validator and status
    - beads: external-record adapter, client, reconciler and readiness
"""

__version__ = "0.4.0"
