import pytest

from buyer_intake.enums import PROPERTY_TYPES
from buyer_intake.validator import split_tags, validate, validate_row


BASE = {
    "fullName": "John Doe",
    "phone": "9876543210",
    "city": "Chandigarh",
    "propertyType": "Plot",
    "purpose": "Buy",
    "timeline": "0-3m",
    "source": "Website",
}


def _fields(outcome):
    return [e.field for e in outcome.errors]


def test_complete_record_is_valid():
    raw = dict(
        BASE,
        email="john@example.com",
        propertyType="Apartment",
        bhk="2",
        budgetMin=5000000,
        budgetMax=7000000,
        status="Qualified",
        notes="Looking for a 2BHK apartment",
        tags=["urgent", "family"],
    )
    outcome = validate(raw)
    assert outcome.ok
    lead = outcome.lead
    assert lead.full_name == "John Doe"
    assert lead.bhk == "2"
    assert lead.budget_min == 5000000
    assert lead.tags == ["urgent", "family"]
    assert lead.status == "Qualified"


def test_minimal_record_gets_defaults():
    outcome = validate(BASE)
    assert outcome.ok
    assert outcome.lead.status == "New"
    assert outcome.lead.tags == []
    assert outcome.lead.email is None
    assert outcome.lead.bhk is None


def test_empty_optionals_are_absent():
    outcome = validate(dict(BASE, email="", bhk="", budgetMin="", budgetMax="", notes="", tags="", status=""))
    assert outcome.ok
    lead = outcome.lead
    assert (lead.email, lead.bhk, lead.budget_min, lead.budget_max, lead.notes) == (None, None, None, None, None)
    assert lead.tags == []
    assert lead.status == "New"


def test_numeric_strings_become_integers():
    outcome = validate(dict(BASE, budgetMin="5000000", budgetMax=" 7000000 "))
    assert outcome.ok
    assert isinstance(outcome.lead.budget_min, int)
    assert isinstance(outcome.lead.budget_max, int)
    assert outcome.lead.budget_max == 7000000


def test_tag_string_is_split_and_trimmed():
    outcome = validate(dict(BASE, tags="urgent, family, premium"))
    assert outcome.lead.tags == ["urgent", "family", "premium"]
    assert split_tags(" a ,, b ,") == ["a", "b"]
    assert split_tags("a;b", separator=";") == ["a", "b"]


def test_duplicate_tags_are_kept_in_order():
    outcome = validate(dict(BASE, tags=["vip", "hot", "vip"]))
    assert outcome.lead.tags == ["vip", "hot", "vip"]


def test_tag_containing_separator_is_rejected():
    outcome = validate(dict(BASE, tags=["north, sector 5"]))
    assert _fields(outcome) == ["tags"]
    assert outcome.errors[0].message == "Tags must not contain ','"
    assert validate(dict(BASE, tags=["north, sector 5"]), tag_separator=";").ok


def test_all_structural_failures_reported_together():
    raw = dict(BASE, fullName="A", phone="123", city="InvalidCity", email="nope")
    outcome = validate(raw)
    assert not outcome.ok
    assert _fields(outcome) == ["fullName", "email", "phone", "city"]
    assert all(e.row is None for e in outcome.errors)
    by_field = {e.field: e for e in outcome.errors}
    assert by_field["fullName"].message == "Full name must be at least 2 characters"
    assert by_field["city"].message == "Please select a valid city"
    assert by_field["city"].value == "InvalidCity"


def test_malformed_phone_skips_refinements():
    raw = dict(BASE, phone="123", propertyType="Apartment", budgetMin=10, budgetMax=5)
    outcome = validate(raw)
    assert _fields(outcome) == ["phone"]
    assert outcome.errors[0].message == "Phone must be 10-15 digits"
    assert outcome.errors[0].value == "123"


def test_missing_required_fields():
    outcome = validate({})
    assert _fields(outcome) == ["fullName", "phone", "city", "propertyType", "purpose", "timeline", "source"]
    assert outcome.errors[0].message == "Full name is required"


@pytest.mark.parametrize("value,message", [
    ("12.5", "Budget must be a whole number"),
    ("abc", "Budget must be a whole number"),
    (12.5, "Budget must be a whole number"),
    (True, "Budget must be a whole number"),
    (-1, "Budget cannot be negative"),
    ("-100", "Budget cannot be negative"),
])
def test_bad_budget_values(value, message):
    outcome = validate(dict(BASE, budgetMin=value))
    assert _fields(outcome) == ["budgetMin"]
    assert outcome.errors[0].message == message


def test_length_limits():
    assert validate(dict(BASE, fullName="x" * 80)).ok
    assert _fields(validate(dict(BASE, fullName="x" * 81))) == ["fullName"]
    assert validate(dict(BASE, notes="n" * 1000)).ok
    outcome = validate(dict(BASE, notes="n" * 1001))
    assert outcome.errors[0].message == "Notes must not exceed 1000 characters"
    assert validate(dict(BASE, phone="1" * 15)).ok
    assert not validate(dict(BASE, phone="1" * 16)).ok


@pytest.mark.parametrize("property_type", PROPERTY_TYPES)
def test_bhk_required_only_for_apartment_and_villa(property_type):
    outcome = validate(dict(BASE, propertyType=property_type))
    requires_bhk = property_type in ("Apartment", "Villa")
    assert outcome.ok is not requires_bhk
    if requires_bhk:
        assert outcome.errors[0].field == "bhk"
        assert outcome.errors[0].message == "BHK is required for Apartment and Villa properties"
    assert validate(dict(BASE, propertyType=property_type, bhk="Studio")).ok


def test_exactly_two_property_types_require_bhk():
    requiring = [p for p in PROPERTY_TYPES if not validate(dict(BASE, propertyType=p)).ok]
    assert requiring == ["Apartment", "Villa"]


@pytest.mark.parametrize("low,high,ok", [
    (100, 50, False),
    (1, 0, False),
    (100, 100, True),
    (50, 100, True),
    (None, 10, True),
    (10, None, True),
    (0, 0, True),
])
def test_budget_ordering(low, high, ok):
    outcome = validate(dict(BASE, budgetMin=low, budgetMax=high))
    assert outcome.ok is ok
    if not ok:
        assert _fields(outcome) == ["budgetMax"]
        assert outcome.errors[0].message == "Maximum budget must be greater than or equal to minimum budget"


def test_both_refinements_can_fire():
    outcome = validate(dict(BASE, propertyType="Villa", budgetMin=9, budgetMax=1))
    assert _fields(outcome) == ["bhk", "budgetMax"]


def test_non_mapping_input_is_an_error_not_an_exception():
    outcome = validate(["not", "a", "record"])
    assert not outcome.ok
    assert outcome.errors[0].field == "record"


def test_row_variant_transforms_strings_and_tags_rows():
    raw = {
        "fullName": "John Doe",
        "email": "john@example.com",
        "phone": "9876543210",
        "city": "Chandigarh",
        "propertyType": "Apartment",
        "bhk": "2",
        "purpose": "Buy",
        "budgetMin": "5000000",
        "budgetMax": "7000000",
        "timeline": "0-3m",
        "source": "Website",
        "notes": "Test notes",
        "tags": "urgent,family",
        "status": "New",
    }
    outcome = validate_row(raw, row=3)
    assert outcome.ok
    assert outcome.lead.budget_min == 5000000
    assert outcome.lead.tags == ["urgent", "family"]

    outcome = validate_row(dict(raw, bhk=""), row=3)
    assert [(e.row, e.field) for e in outcome.errors] == [(3, "bhk")]
    assert outcome.errors[0].value == ""


def test_only_ascii_digits_count():
    arabic_indic = "١٢٣٤٥٦٧٨٩٠"
    outcome = validate(dict(BASE, phone=arabic_indic, budgetMin="١٠٠"))
    assert _fields(outcome) == ["phone", "budgetMin"]
    assert outcome.errors[0].message == "Phone must be 10-15 digits"
    assert outcome.errors[1].message == "Budget must be a whole number"
