# tests/unit/services/ebay/test_aspects.py
from decimal import Decimal

import pytest

from crosslist.schemas.listing import EnrichmentResult, ListingItem
from crosslist.services.ebay.aspects import (
    GENERIC_MISSING_REASON,
    MISSING_REASONS,
    AspectValidator,
    build_aspects,
    infer_color,
    infer_size_aspects,
)


def make_item(**overrides):
    data = {"base_sku": "CZ0775-133", "size": "9", "price": Decimal("150")}
    data.update(overrides)
    return ListingItem(**data)


"""
1. Inference
"""

@pytest.mark.parametrize("size, department", [
    ("9W", "Women"),
    ("5.5Y", "Kids"),
    ("6 GS", "Kids"),
    ("3", "Kids"),
    ("10.5", "Men"),
])
def test_infer_size_department(size, department):
    assert infer_size_aspects(size)["Department"] == [department]


def test_infer_size_values():
    aspects = infer_size_aspects("10.5")
    assert aspects["US Shoe Size"] == ["10.5"]
    assert aspects["US Shoe Size (Men's)"] == ["10.5"]

    women = infer_size_aspects("9W")
    assert women["US Shoe Size (Women's)"] == ["9"]


def test_infer_size_empty():
    assert infer_size_aspects("") == {}


def test_infer_color():
    assert infer_color("Black/White-University Red", None) == "Black"
    assert infer_color(None, "Nike Dunk Low Photon Dust White") == "White"
    assert infer_color(None, "Air Jordan 1 Chicago") is None


"""
2. Building
"""

def test_build_aspects_defaults():
    aspects = build_aspects(make_item(), title="Nike Dunk Low Size 9")

    assert aspects["Brand"] == ["Unbranded"]
    assert aspects["Style Code"] == ["CZ0775-133"]
    assert aspects["Type"] == ["Athletic"]
    assert aspects["Department"] == ["Men"]
    assert "Color" not in aspects


def test_build_aspects_uses_enrichment_and_item():
    enrichment = EnrichmentResult(brand="Nike", colorway="White/Photon Dust", model="Dunk Low")
    item = make_item(silhouette="Dunk")

    aspects = build_aspects(item, enrichment)

    assert aspects["Brand"] == ["Nike"]
    assert aspects["Color"] == ["White"]
    assert aspects["Colorway"] == ["White/Photon Dust"]
    assert aspects["Model"] == ["Dunk Low"]
    assert aspects["Silhouette"] == ["Dunk"]


def test_category_defaults_only_for_required():
    aspects = build_aspects(make_item(), required=["Closure", "Brand"])

    assert aspects["Closure"] == ["Lace Up"]
    assert "Outsole Material" not in aspects


def test_caller_attributes_win():
    enrichment = EnrichmentResult(attributes={"Color": ["Grey"], "Theme": ["Retro"]})
    item = make_item(brand="Nike", attributes={"Color": ["Sail"], "Blank": ["  "]})

    aspects = build_aspects(item, enrichment)

    assert aspects["Color"] == ["Sail"]
    assert aspects["Theme"] == ["Retro"]
    assert "Blank" not in aspects


"""
3. Validation
"""

def test_validator_ready():
    result = AspectValidator().validate({"Brand": ["Nike"], "Color": ["White"]}, ["Brand", "Color"])

    assert result.ready
    assert result.missing == []


def test_validator_reports_missing_with_reasons():
    attributes = {"Brand": ["Nike"], "Color": [" "]}

    result = AspectValidator().validate(attributes, ["Brand", "Color", "US Shoe Size", "Closure", "Color"])

    assert not result.ready
    assert result.missing == ["Color", "US Shoe Size", "Closure"]
    assert result.reasons["Color"] == MISSING_REASONS["color"]
    assert result.reasons["US Shoe Size"] == MISSING_REASONS["size"]
    assert result.reasons["Closure"] == GENERIC_MISSING_REASON


def test_validator_no_requirements():
    assert AspectValidator().validate({}, []).ready
