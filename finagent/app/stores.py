"""
Collection names shared by the local cache and the sync queue, and the
collection -> backend endpoint routing used when draining the queue.
"""

SYNC_QUEUE = "sync_queue"

# One collection per entity type. Order matters only for status output.
ENTITY_COLLECTIONS = (
    "accounts",
    "transactions",
    "contacts",
    "serviceClients",
    "serviceItems",
    "serviceAppointments",
    "goals",
    "categories",
    "branches",
    "costCenters",
    "departments",
    "projects",
    "serviceOrders",
    "commercialOrders",
    "contracts",
    "invoices",
    "opticalRxs",
    "companyProfile",
    "salespeople",
    "salespersonSchedules",
    "laboratories",
    "stockTransfers",
    "inventoryEvents",
)

ALL_COLLECTIONS = ENTITY_COLLECTIONS + (SYNC_QUEUE,)

# Entities with a dedicated sync route on the backend. The paths are part of the
# backend contract and must not change.
SYNC_ENDPOINTS = {
    "transactions": "/api/transactions/sync",
    "contacts": "/api/contacts/sync",
    "accounts": "/api/accounts/sync",
    "opticalRxs": "/api/optical-rxs/sync",
    "commercialOrders": "/api/orders/sync",
    "goals": "/api/goals/sync",
}

# Catch-all route: the backend dispatches on the entry's `store` field.
DEFAULT_SYNC_ENDPOINT = "/api/sync/process"

INITIAL_DATA_ENDPOINT = "/api/initial-data"


def endpoint_for(store: str) -> str:
    return SYNC_ENDPOINTS.get(store, DEFAULT_SYNC_ENDPOINT)


def unmapped_collections() -> list[str]:
    """
    Known entity collections that still go through the generic endpoint.

    Surfaced in `finagent --status` so a new collection without a dedicated route
    is noticed instead of silently riding the fallback forever.
    """
    return [c for c in ENTITY_COLLECTIONS if c not in SYNC_ENDPOINTS]
