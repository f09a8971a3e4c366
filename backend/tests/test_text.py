"""Tests for name normalisation, slugs and similarity."""

import pytest

from grocerywatch.services.text import calculate_similarity, normalize_name, slugify


class TestNormalizeName:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("Organic Bananas", "organic bananas"),
            ("  Organic   Bananas  ", "organic bananas"),
            ("Lay's Classic Chips, 235g!", "lays classic chips 235g"),
            ("MILK\t2%\n4 L", "milk 2 4 l"),
            ("", ""),
            ("!!!", ""),
        ],
    )
    def test_normalize(self, raw, expected):
        assert normalize_name(raw) == expected

    @pytest.mark.parametrize(
        "raw",
        ["Organic Bananas", "  A  b   C ", "Café Crème 1L", "Lay's — Classic", "日本 茶", ""],
    )
    def test_idempotent(self, raw):
        once = normalize_name(raw)
        assert normalize_name(once) == once

    def test_none(self):
        assert normalize_name(None) is None


class TestSlugify:
    def test_ampersand(self):
        assert slugify("Dairy & Eggs") == "dairy-eggs"

    def test_repeated_separators_collapse(self):
        assert slugify("Fruits -- & // Vegetables") == "fruits-vegetables"

    def test_edge_hyphens_trimmed(self):
        assert slugify("  --Bakery!--  ") == "bakery"

    def test_empty(self):
        assert slugify("") == ""
        assert slugify(None) == ""
        assert slugify("&&&") == ""


class TestCalculateSimilarity:
    def test_identical_after_normalisation(self):
        assert calculate_similarity("Organic Bananas", "organic bananas!") == 1.0

    def test_partial_overlap(self):
        # {organic, bananas} vs {bananas, bunch}: 1 shared of 3
        assert calculate_similarity("Organic Bananas", "Bananas Bunch") == pytest.approx(1 / 3)

    def test_disjoint(self):
        assert calculate_similarity("Milk", "Bread") == 0.0

    def test_missing_input(self):
        assert calculate_similarity(None, "Milk") == 0.0
        assert calculate_similarity("Milk", None) == 0.0
