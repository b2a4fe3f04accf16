"""
Cancelled / failed mandate routing: ingestion, CRM resolution, team classification, export.
"""

from .ingest import (
    ImportResult,
    IngestionError,
    import_crm_accounts,
    import_elevate_accounts,
    import_mandate_events,
)
from .resolution import (
    EMPTY_PROFILE,
    MATCH_STRATEGIES,
    UNMATCHED,
    CrmProfile,
    ReferenceIndex,
    Resolution,
    resolve_event,
)
from .store import events_imported_on, open_store
from .teams import classify_team

__all__ = [
    "ImportResult",
    "IngestionError",
    "import_crm_accounts",
    "import_elevate_accounts",
    "import_mandate_events",
    "EMPTY_PROFILE",
    "MATCH_STRATEGIES",
    "UNMATCHED",
    "CrmProfile",
    "ReferenceIndex",
    "Resolution",
    "resolve_event",
    "events_imported_on",
    "open_store",
    "classify_team",
]
