from typing import Any, Dict, List, Literal, Optional, Union
from pydantic import BaseModel, Field, field_validator, model_validator

from .enums import CITY, DEFAULT_STATUS, PROPERTY_TYPE, STATUS, TIMELINE


LIMITED_OPERATIONS = ("create", "update", "import")


class Lead(BaseModel):
    full_name: str = Field(alias="fullName")
    email: Optional[str] = None
    phone: str
    city: str
    property_type: str = Field(alias="propertyType")
    bhk: Optional[str] = None
    purpose: str
    budget_min: Optional[int] = Field(default=None, alias="budgetMin")
    budget_max: Optional[int] = Field(default=None, alias="budgetMax")
    timeline: str
    source: str
    notes: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    status: str = DEFAULT_STATUS

    model_config = {
        "populate_by_name": True,
    }


class FieldError(BaseModel):
    row: Optional[Union[int, str]] = None
    field: str
    message: str
    value: Any = None


class ValidationOutcome(BaseModel):
    lead: Optional[Lead] = None
    errors: List[FieldError] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.lead is not None


class IngestSummary(BaseModel):
    rows_in: int
    accepted: int
    rejected: int
    errors: int


class IngestResult(BaseModel):
    accepted_rows: List[Lead] = Field(default_factory=list)
    rejected_rows: List[FieldError] = Field(default_factory=list)
    summary: IngestSummary


class ImportResponse(BaseModel):
    result: IngestResult
    created: List[Dict[str, Any]] = Field(default_factory=list)


SORT_FIELDS = ("fullName", "city", "propertyType", "budgetMin", "budgetMax", "timeline", "status", "createdAt", "updatedAt")

FILTER_SETS = {"city": CITY, "propertyType": PROPERTY_TYPE, "status": STATUS, "timeline": TIMELINE}


class BuyerQuery(BaseModel):
    """Search, filter, sort and paging for the buyer list.

    Filter values use display names; ``wire_filters`` turns them into the
    store's representation.
    """

    search: Optional[str] = None
    city: Optional[str] = None
    property_type: Optional[str] = Field(default=None, alias="propertyType")
    status: Optional[str] = None
    timeline: Optional[str] = None
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=10, ge=1, le=100)
    sort_by: Literal[SORT_FIELDS] = Field(default="updatedAt", alias="sortBy")
    sort_order: Literal["asc", "desc"] = Field(default="desc", alias="sortOrder")

    model_config = {
        "populate_by_name": True,
    }

    @field_validator("search", "city", "property_type", "status", "timeline", mode="before")
    @classmethod
    def _blank_is_absent(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v.strip() if isinstance(v, str) else v

    @model_validator(mode="after")
    def _known_filter_values(self) -> "BuyerQuery":
        for field, closed in FILTER_SETS.items():
            value = self.filters().get(field)
            if value is not None and value not in closed:
                raise ValueError(closed.message)
        return self

    def filters(self) -> Dict[str, Optional[str]]:
        return {
            "city": self.city,
            "propertyType": self.property_type,
            "status": self.status,
            "timeline": self.timeline,
        }

    def wire_filters(self) -> Dict[str, str]:
        return {
            field: FILTER_SETS[field].to_wire(value)
            for field, value in self.filters().items()
            if value is not None
        }

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int = Field(alias="totalPages")

    model_config = {
        "populate_by_name": True,
    }


class BuyerPage(BaseModel):
    data: List[Dict[str, Any]] = Field(default_factory=list)
    pagination: Pagination


class OperationLimit(BaseModel):
    max_requests: int = Field(ge=1)
    window_seconds: float = Field(gt=0)


class SettingsModel(BaseModel):
    rate_limits: Dict[str, OperationLimit]
    max_import_rows: int = Field(default=200, ge=1)
    tag_separator: str = Field(default=",", min_length=1, max_length=1)

    @field_validator("tag_separator")
    @classmethod
    def _visible_separator(cls, v: str) -> str:
        if v.isspace():
            raise ValueError("tag_separator must not be whitespace")
        return v

    @model_validator(mode="after")
    def _one_limit_per_operation(self) -> "SettingsModel":
        missing = [op for op in LIMITED_OPERATIONS if op not in self.rate_limits]
        unknown = [op for op in self.rate_limits if op not in LIMITED_OPERATIONS]
        if missing:
            raise ValueError(f"rate_limits must define {', '.join(missing)}")
        if unknown:
            raise ValueError(f"rate_limits has unknown operations: {', '.join(unknown)}")
        return self
