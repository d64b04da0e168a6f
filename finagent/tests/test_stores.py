from finagent.app.stores import (
    DEFAULT_SYNC_ENDPOINT,
    ENTITY_COLLECTIONS,
    SYNC_ENDPOINTS,
    endpoint_for,
    unmapped_collections,
)


def test_endpoint_map_matches_backend_routes():
    assert endpoint_for("transactions") == "/api/transactions/sync"
    assert endpoint_for("contacts") == "/api/contacts/sync"
    assert endpoint_for("accounts") == "/api/accounts/sync"
    assert endpoint_for("opticalRxs") == "/api/optical-rxs/sync"
    assert endpoint_for("commercialOrders") == "/api/orders/sync"
    assert endpoint_for("goals") == "/api/goals/sync"


def test_unmapped_collections_fall_back_to_generic_endpoint():
    assert DEFAULT_SYNC_ENDPOINT == "/api/sync/process"
    assert endpoint_for("serviceOrders") == "/api/sync/process"
    assert endpoint_for("companyProfile") == "/api/sync/process"
    assert endpoint_for("something-new") == "/api/sync/process"


def test_unmapped_collections_lists_only_generic_ones():
    generic = unmapped_collections()
    assert "serviceOrders" in generic
    assert not set(generic) & set(SYNC_ENDPOINTS)
    assert set(generic) | set(SYNC_ENDPOINTS) == set(ENTITY_COLLECTIONS)
