import threading
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Protocol, Tuple


class LeadNotFound(Exception):
    def __init__(self, lead_id: str) -> None:
        self.lead_id = lead_id
        super().__init__(f"Lead {lead_id} not found")


class StoreRateLimited(Exception):
    """Raised by a store that throttled the request on its own side."""

    def __init__(self, message: str = "Too many requests. Please wait before trying again.") -> None:
        super().__init__(message)


class LeadStore(Protocol):
    def create(self, payload: Dict[str, Any]) -> Dict[str, Any]: ...

    def update(self, lead_id: str, payload: Dict[str, Any]) -> Dict[str, Any]: ...

    def bulk_create(self, payloads: List[Dict[str, Any]]) -> List[Dict[str, Any]]: ...

    def get(self, lead_id: str) -> Optional[Dict[str, Any]]: ...

    def delete(self, lead_id: str) -> None: ...

    def query(
        self,
        filters: Dict[str, str],
        search: Optional[str] = None,
        sort_by: str = "updatedAt",
        descending: bool = True,
        offset: int = 0,
        limit: Optional[int] = None,
    ) -> Tuple[List[Dict[str, Any]], int]: ...


SEARCH_FIELDS = ("fullName", "email", "phone")


def _matches(record: Dict[str, Any], needle: str) -> bool:
    return any(needle in str(record.get(f) or "").lower() for f in SEARCH_FIELDS)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class InMemoryLeadStore:
    """Process-lifetime store holding wire-encoded lead records."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._records: Dict[str, Dict[str, Any]] = {}

    def _insert(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        stamp = _now()
        record = dict(payload, id=str(uuid.uuid4()), createdAt=stamp, updatedAt=stamp)
        self._records[record["id"]] = record
        return dict(record)

    def create(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        with self._lock:
            return self._insert(payload)

    def bulk_create(self, payloads: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        with self._lock:
            return [self._insert(p) for p in payloads]

    def update(self, lead_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        with self._lock:
            current = self._records.get(lead_id)
            if current is None:
                raise LeadNotFound(lead_id)
            record = dict(payload, id=lead_id, createdAt=current["createdAt"], updatedAt=_now())
            self._records[lead_id] = record
            return dict(record)

    def get(self, lead_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            record = self._records.get(lead_id)
            return dict(record) if record is not None else None

    def delete(self, lead_id: str) -> None:
        with self._lock:
            if self._records.pop(lead_id, None) is None:
                raise LeadNotFound(lead_id)

    def query(
        self,
        filters: Dict[str, str],
        search: Optional[str] = None,
        sort_by: str = "updatedAt",
        descending: bool = True,
        offset: int = 0,
        limit: Optional[int] = None,
    ) -> Tuple[List[Dict[str, Any]], int]:
        """Filter on exact wire values, then substring search, sort and slice.

        Returns the page and the number of matches before slicing. Records
        without a value for ``sort_by`` sort last in either direction.
        """
        needle = search.lower() if search else None
        with self._lock:
            matches = [
                dict(r) for r in self._records.values()
                if all(r.get(k) == v for k, v in filters.items())
                and (needle is None or _matches(r, needle))
            ]
        present = [r for r in matches if r.get(sort_by) is not None]
        absent = [r for r in matches if r.get(sort_by) is None]
        present.sort(key=lambda r: r[sort_by], reverse=descending)
        ordered = present + absent
        end = None if limit is None else offset + limit
        return ordered[offset:end], len(matches)
