from typing import Any, Dict, Tuple


CITIES = ("Chandigarh", "Mohali", "Zirakpur", "Panchkula", "Other")
PROPERTY_TYPES = ("Apartment", "Villa", "Plot", "Office", "Retail")
BHK_OPTIONS = ("1", "2", "3", "4", "Studio")
PURPOSES = ("Buy", "Rent")
TIMELINES = ("0-3m", "3-6m", ">6m", "Exploring")
SOURCES = ("Website", "Referral", "Walk-in", "Call", "Other")
STATUSES = ("New", "Qualified", "Contacted", "Visited", "Negotiation", "Converted", "Dropped")

BHK_REQUIRED_FOR = ("Apartment", "Villa")
DEFAULT_STATUS = "New"


class ClosedSet:
    """A closed enumeration with a bidirectional display <-> wire table."""

    def __init__(self, field: str, label: str, values: Tuple[str, ...], wire: Dict[str, str]) -> None:
        missing = [v for v in values if v not in wire]
        extra = [k for k in wire if k not in values]
        if missing or extra:
            raise ValueError(f"{field}: wire table does not cover the closed set (missing={missing}, extra={extra})")
        reverse = {w: v for v, w in wire.items()}
        if len(reverse) != len(wire):
            raise ValueError(f"{field}: wire values must be unique")
        self.field = field
        self.label = label
        self.values = values
        self._to_wire = dict(wire)
        self._from_wire = reverse

    def __contains__(self, value: object) -> bool:
        return isinstance(value, str) and value in self._to_wire

    def __iter__(self):
        return iter(self.values)

    @property
    def message(self) -> str:
        return f"Please select a valid {self.label}"

    def to_wire(self, value: str) -> str:
        try:
            return self._to_wire[value]
        except KeyError:
            raise ValueError(f"{value!r} is not a valid {self.field}") from None

    def from_wire(self, value: str) -> str:
        try:
            return self._from_wire[value]
        except KeyError:
            raise ValueError(f"{value!r} is not a known wire value for {self.field}") from None


CITY = ClosedSet("city", "city", CITIES, {v: v for v in CITIES})
PROPERTY_TYPE = ClosedSet("propertyType", "property type", PROPERTY_TYPES, {v: v for v in PROPERTY_TYPES})
BHK = ClosedSet("bhk", "BHK option", BHK_OPTIONS, {
    "1": "ONE",
    "2": "TWO",
    "3": "THREE",
    "4": "FOUR",
    "Studio": "STUDIO",
})
PURPOSE = ClosedSet("purpose", "purpose", PURPOSES, {v: v for v in PURPOSES})
TIMELINE = ClosedSet("timeline", "timeline", TIMELINES, {
    "0-3m": "ZERO_TO_THREE_MONTHS",
    "3-6m": "THREE_TO_SIX_MONTHS",
    ">6m": "MORE_THAN_SIX_MONTHS",
    "Exploring": "Exploring",
})
SOURCE = ClosedSet("source", "source", SOURCES, {
    "Website": "Website",
    "Referral": "Referral",
    "Walk-in": "Walk_in",
    "Call": "Call",
    "Other": "Other",
})
STATUS = ClosedSet("status", "status", STATUSES, {v: v.upper() for v in STATUSES})

ENUM_FIELDS: Dict[str, ClosedSet] = {s.field: s for s in (CITY, PROPERTY_TYPE, BHK, PURPOSE, TIMELINE, SOURCE, STATUS)}


def encode_record(record: Dict[str, Any]) -> Dict[str, Any]:
    out = dict(record)
    for field, closed in ENUM_FIELDS.items():
        if out.get(field) is not None:
            out[field] = closed.to_wire(out[field])
    return out


def decode_record(record: Dict[str, Any]) -> Dict[str, Any]:
    out = dict(record)
    for field, closed in ENUM_FIELDS.items():
        if out.get(field) is not None:
            out[field] = closed.from_wire(out[field])
    return out
