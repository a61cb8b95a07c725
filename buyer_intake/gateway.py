"""Rate-limited entry point for create, update and import calls against a lead store.

Reads and deletes go straight to the store.
"""
import json
import logging
from typing import Any, Dict, List, Optional, Tuple

from .enums import decode_record, encode_record
from .models import BuyerQuery, Lead
from .rate_limit import RateLimiterRegistry
from .store import LeadNotFound, LeadStore, StoreRateLimited


logger = logging.getLogger("buyer_intake.gateway")

__all__ = ["MutationGateway", "RateLimitExceeded", "StoreRateLimited", "LeadNotFound", "lead_to_wire"]


class RateLimitExceeded(Exception):
    """The local limiter denied the call; nothing was sent to the store."""

    def __init__(self, operation: str, caller: str, wait_seconds: int) -> None:
        self.operation = operation
        self.caller = caller
        self.wait_seconds = wait_seconds
        super().__init__(f"Rate limit exceeded. Please wait {wait_seconds} seconds before trying again.")


def lead_to_wire(lead: Lead) -> Dict[str, Any]:
    return encode_record(lead.model_dump(by_alias=True))


class MutationGateway:
    def __init__(self, store: LeadStore, limiters: RateLimiterRegistry) -> None:
        self.store = store
        self.limiters = limiters

    def _admit(self, operation: str, caller: str) -> None:
        limiter = self.limiters.for_operation(operation)
        if limiter.is_allowed(caller):
            return
        wait = limiter.retry_after(caller)
        logger.info(json.dumps({
            "event": "rate_limited",
            "operation": operation,
            "caller": caller,
            "wait_seconds": wait,
        }))
        raise RateLimitExceeded(operation, caller, wait)

    def create(self, caller: str, lead: Lead) -> Dict[str, Any]:
        self._admit("create", caller)
        return decode_record(self.store.create(lead_to_wire(lead)))

    def update(self, caller: str, lead_id: str, lead: Lead) -> Dict[str, Any]:
        self._admit("update", caller)
        return decode_record(self.store.update(lead_id, lead_to_wire(lead)))

    def import_leads(self, caller: str, leads: List[Lead]) -> List[Dict[str, Any]]:
        self._admit("import", caller)
        created = self.store.bulk_create([lead_to_wire(l) for l in leads])
        logger.info(json.dumps({"event": "imported", "caller": caller, "count": len(created)}))
        return [decode_record(r) for r in created]

    def get_lead(self, lead_id: str) -> Optional[Dict[str, Any]]:
        record = self.store.get(lead_id)
        return decode_record(record) if record is not None else None

    def delete_lead(self, lead_id: str) -> None:
        self.store.delete(lead_id)
        logger.info(json.dumps({"event": "deleted", "lead_id": lead_id}))

    def search(self, query: BuyerQuery, paged: bool = True) -> Tuple[List[Dict[str, Any]], int]:
        records, total = self.store.query(
            query.wire_filters(),
            search=query.search,
            sort_by=query.sort_by,
            descending=query.sort_order == "desc",
            offset=query.offset if paged else 0,
            limit=query.limit if paged else None,
        )
        return [decode_record(r) for r in records], total
