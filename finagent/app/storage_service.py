"""
Write path used by the UI layer: optimistic local write, then queue the same
mutation for the backend. Local writes always succeed regardless of sync state.
"""

import uuid
from typing import Any, Optional

from .logs import json_log
from .stores import ENTITY_COLLECTIONS


def _pj_store(entity_type: str) -> str:
    t = (entity_type or "").strip()
    if t == "company":
        return "companyProfile"
    if t == "branch":
        return "branches"
    return t + "s"


class StorageService:
    def __init__(self, db, sync):
        self.db = db
        self.sync = sync

    def save_locally_and_queue(self, store: str, payload: dict[str, Any]) -> dict[str, Any]:
        record = {**(payload or {})}
        if not record.get("id"):
            record["id"] = str(uuid.uuid4())
        self.db.put(store, record)
        self.sync.enqueue("SAVE", store, record)
        return record

    def delete_locally_and_queue(self, store: str, record_id: str) -> None:
        self.db.delete(store, record_id)
        self.sync.enqueue("DELETE", store, {"id": record_id})

    def save_transaction(self, tx: dict, new_contact: Optional[dict] = None, new_category: Optional[dict] = None) -> dict:
        # Dependencies first so the backend sees the contact/category before the transaction.
        if new_contact:
            self.save_contact(new_contact)
        if new_category:
            self.save_locally_and_queue("categories", new_category)
        return self.save_locally_and_queue("transactions", tx)

    def delete_transaction(self, record_id: str) -> None:
        self.delete_locally_and_queue("transactions", record_id)

    def save_account(self, account: dict) -> dict:
        return self.save_locally_and_queue("accounts", account)

    def delete_account(self, record_id: str) -> None:
        self.delete_locally_and_queue("accounts", record_id)

    def save_goal(self, goal: dict) -> dict:
        return self.save_locally_and_queue("goals", goal)

    def delete_goal(self, record_id: str) -> None:
        self.delete_locally_and_queue("goals", record_id)

    def save_contact(self, contact: dict) -> dict:
        return self.save_locally_and_queue("contacts", contact)

    def delete_contact(self, record_id: str) -> None:
        self.delete_locally_and_queue("contacts", record_id)

    def save_bulk_contacts(self, contacts: list[dict]) -> list[dict]:
        return [self.save_contact(c) for c in contacts or []]

    def save_pj_entity(self, entity_type: str, data: dict) -> dict:
        return self.save_locally_and_queue(_pj_store(entity_type), data)

    def delete_pj_entity(self, entity_type: str, record_id: str) -> None:
        self.delete_locally_and_queue(_pj_store(entity_type), record_id)

    def save_service_order(self, order: dict) -> dict:
        return self.save_locally_and_queue("serviceOrders", order)

    def delete_service_order(self, record_id: str) -> None:
        self.delete_locally_and_queue("serviceOrders", record_id)

    def save_order(self, order: dict) -> dict:
        return self.save_locally_and_queue("commercialOrders", order)

    def delete_order(self, record_id: str) -> None:
        self.delete_locally_and_queue("commercialOrders", record_id)

    def save_catalog_item(self, item: dict) -> dict:
        return self.save_locally_and_queue("serviceItems", item)

    def delete_catalog_item(self, record_id: str) -> None:
        self.delete_locally_and_queue("serviceItems", record_id)

    def save_optical_rx(self, rx: dict) -> dict:
        return self.save_locally_and_queue("opticalRxs", rx)

    def delete_optical_rx(self, record_id: str) -> None:
        self.delete_locally_and_queue("opticalRxs", record_id)

    def save_laboratory(self, lab: dict) -> dict:
        return self.save_locally_and_queue("laboratories", lab)

    def delete_laboratory(self, record_id: str) -> None:
        self.delete_locally_and_queue("laboratories", record_id)

    def save_salesperson_schedule(self, schedule: dict) -> dict:
        return self.save_locally_and_queue("salespersonSchedules", schedule)

    def delete_salesperson_schedule(self, record_id: str) -> None:
        self.delete_locally_and_queue("salespersonSchedules", record_id)

    def save_appointment(self, appointment: dict) -> dict:
        return self.save_locally_and_queue("serviceAppointments", appointment)

    def delete_appointment(self, record_id: str) -> None:
        self.delete_locally_and_queue("serviceAppointments", record_id)

    def load_initial_data(self) -> dict[str, Any]:
        """Pull when possible, then serve everything from the local cache."""
        try:
            self.sync.pull_from_server()
        except Exception as ex:
            json_log("warning", "storage.initial_pull_failed", error=str(ex), hint="serving local cache only")

        state: dict[str, Any] = {name: self.db.get_all(name) for name in ENTITY_COLLECTIONS}
        profiles = state.get("companyProfile") or []
        state["companyProfile"] = profiles[0] if profiles else None
        return state
