import re
from typing import Any, Callable, Dict, List, Mapping, NamedTuple, Optional, Tuple

from .enums import BHK, BHK_REQUIRED_FOR, CITY, DEFAULT_STATUS, PROPERTY_TYPE, PURPOSE, SOURCE, STATUS, TIMELINE, ClosedSet
from .models import FieldError, Lead, ValidationOutcome


EMAIL_REGEX = re.compile(r"^[A-Za-z0-9._%+\-]+@[A-Za-z0-9.\-]+\.[A-Za-z]{2,}$")
PHONE_REGEX = re.compile(r"^[0-9]{10,15}$")
INTEGER_REGEX = re.compile(r"^[+-]?[0-9]+$")

NAME_MIN, NAME_MAX = 2, 80
NOTES_MAX = 1000
DEFAULT_TAG_SEPARATOR = ","


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _as_text(value: Any) -> Any:
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return value


def check_full_name(value: Any) -> str:
    if _is_blank(value):
        raise ValueError("Full name is required")
    if not isinstance(value, str):
        raise ValueError("Full name must be text")
    s = value.strip()
    if len(s) < NAME_MIN:
        raise ValueError(f"Full name must be at least {NAME_MIN} characters")
    if len(s) > NAME_MAX:
        raise ValueError(f"Full name must not exceed {NAME_MAX} characters")
    return s


def check_email(value: Any) -> Optional[str]:
    if _is_blank(value):
        return None
    if not isinstance(value, str) or not EMAIL_REGEX.match(value.strip()):
        raise ValueError("Invalid email format")
    return value.strip()


def check_phone(value: Any) -> str:
    if _is_blank(value):
        raise ValueError("Phone is required")
    s = _as_text(value)
    if not isinstance(s, str) or not PHONE_REGEX.match(s):
        raise ValueError("Phone must be 10-15 digits")
    return s


def one_of(closed: ClosedSet, required: bool = True, default: Optional[str] = None) -> Callable[[Any], Optional[str]]:
    def check(value: Any) -> Optional[str]:
        if _is_blank(value):
            if default is not None:
                return default
            if required:
                raise ValueError(closed.message)
            return None
        s = _as_text(value)
        if s not in closed:
            raise ValueError(closed.message)
        return s
    return check


def check_budget(value: Any) -> Optional[int]:
    if _is_blank(value):
        return None
    if isinstance(value, bool):
        raise ValueError("Budget must be a whole number")
    if isinstance(value, float):
        if not value.is_integer():
            raise ValueError("Budget must be a whole number")
        number = int(value)
    elif isinstance(value, int):
        number = value
    elif isinstance(value, str) and INTEGER_REGEX.match(value.strip()):
        number = int(value.strip())
    else:
        raise ValueError("Budget must be a whole number")
    if number < 0:
        raise ValueError("Budget cannot be negative")
    return number


def check_notes(value: Any) -> Optional[str]:
    if _is_blank(value):
        return None
    if not isinstance(value, str):
        raise ValueError("Notes must be text")
    s = value.strip()
    if len(s) > NOTES_MAX:
        raise ValueError(f"Notes must not exceed {NOTES_MAX} characters")
    return s


def split_tags(text: str, separator: str = DEFAULT_TAG_SEPARATOR) -> List[str]:
    return [t.strip() for t in text.split(separator) if t.strip()]


def tags_check(separator: str = DEFAULT_TAG_SEPARATOR, allow_list: bool = True) -> Callable[[Any], List[str]]:
    def check(value: Any) -> List[str]:
        if _is_blank(value):
            return []
        if isinstance(value, str):
            return split_tags(value, separator)
        if allow_list and isinstance(value, (list, tuple)):
            if not all(isinstance(t, str) for t in value):
                raise ValueError("Tags must be a list of strings")
            tags = [t.strip() for t in value if t.strip()]
            # a tag holding the separator cannot survive a CSV export/import cycle
            if any(separator in t for t in tags):
                raise ValueError(f"Tags must not contain '{separator}'")
            return tags
        raise ValueError("Tags must be a list of strings")
    return check


def field_checks(tag_separator: str = DEFAULT_TAG_SEPARATOR, allow_tag_list: bool = True) -> Dict[str, Callable[[Any], Any]]:
    return {
        "fullName": check_full_name,
        "email": check_email,
        "phone": check_phone,
        "city": one_of(CITY),
        "propertyType": one_of(PROPERTY_TYPE),
        "bhk": one_of(BHK, required=False),
        "purpose": one_of(PURPOSE),
        "budgetMin": check_budget,
        "budgetMax": check_budget,
        "timeline": one_of(TIMELINE),
        "source": one_of(SOURCE),
        "notes": check_notes,
        "tags": tags_check(tag_separator, allow_list=allow_tag_list),
        "status": one_of(STATUS, default=DEFAULT_STATUS),
    }


class Refinement(NamedTuple):
    path: str
    message: str
    holds: Callable[[Dict[str, Any]], bool]


def _bhk_present_when_required(values: Dict[str, Any]) -> bool:
    return values.get("propertyType") not in BHK_REQUIRED_FOR or values.get("bhk") is not None


def _budget_ordered(values: Dict[str, Any]) -> bool:
    low, high = values.get("budgetMin"), values.get("budgetMax")
    return low is None or high is None or high >= low


REFINEMENTS = (
    Refinement("bhk", "BHK is required for Apartment and Villa properties", _bhk_present_when_required),
    Refinement("budgetMax", "Maximum budget must be greater than or equal to minimum budget", _budget_ordered),
)


def structural_pass(raw: Mapping[str, Any], checks: Dict[str, Callable[[Any], Any]], row: Optional[int] = None) -> Tuple[Dict[str, Any], List[FieldError]]:
    values: Dict[str, Any] = {}
    errors: List[FieldError] = []
    for field, check in checks.items():
        original = raw.get(field)
        try:
            values[field] = check(original)
        except ValueError as e:
            errors.append(FieldError(row=row, field=field, message=str(e), value=original))
    return values, errors


def refinement_pass(values: Dict[str, Any], raw: Mapping[str, Any], row: Optional[int] = None) -> List[FieldError]:
    return [
        FieldError(row=row, field=r.path, message=r.message, value=raw.get(r.path))
        for r in REFINEMENTS
        if not r.holds(values)
    ]


def _run(raw: Mapping[str, Any], checks: Dict[str, Callable[[Any], Any]], row: Optional[int]) -> ValidationOutcome:
    values, errors = structural_pass(raw, checks, row)
    if errors:
        return ValidationOutcome(errors=errors)
    errors = refinement_pass(values, raw, row)
    if errors:
        return ValidationOutcome(errors=errors)
    return ValidationOutcome(lead=Lead.model_validate(values))


def validate(raw: Mapping[str, Any], tag_separator: str = DEFAULT_TAG_SEPARATOR) -> ValidationOutcome:
    if not isinstance(raw, Mapping):
        return ValidationOutcome(errors=[FieldError(field="record", message="Record must be an object", value=raw)])
    return _run(raw, field_checks(tag_separator), None)


def validate_row(raw: Mapping[str, Any], row: Optional[int] = None, tag_separator: str = DEFAULT_TAG_SEPARATOR) -> ValidationOutcome:
    cells = {k: "" if v is None else str(v) for k, v in raw.items()}
    return _run(cells, field_checks(tag_separator, allow_tag_list=False), row)
