import pytest

from listings.utils.slugs import candidate_slug, next_free_suffix, property_slug, slugify


@pytest.mark.parametrize("value,expected", [
    ("Marina View", "marina-view"),
    ("  Palm  Jumeirah!! ", "palm-jumeirah"),
    ("Café Résidence", "cafe-residence"),
    ("2BR / Sea-View", "2br-sea-view"),
    ("", ""),
])
def test_slugify(value, expected):
    assert slugify(value) == expected


def test_property_slug_uses_reference_number():
    assert property_slug("Marina View", "REF-001") == "marina-view-ref-001"
    assert property_slug("Marina View") == "marina-view"


def test_property_slug_fallback():
    assert property_slug("!!!") == "property"


def test_suffixes():
    assert candidate_slug("villa", 0) == "villa"
    assert candidate_slug("villa", 2) == "villa-2"
    assert next_free_suffix("villa", set()) == 0
    assert next_free_suffix("villa", {"villa", "villa-1", "villa-3"}) == 2
