"""Tests for slug and masking helpers."""

import re

import pytest

from core.utils.formatting import mask_email, slugify


class TestSlugify:
    """Test slug generation from job titles."""

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("Senior Engineer", "senior-engineer"),
            ("Senior Engineer (Remote)", "senior-engineer-remote"),
            ("  Lead   Dev  ", "lead-dev"),
            ("C++ / Rust Developer", "c-rust-developer"),
            ("snake_case_title", "snake-case-title"),
            ("Already-a-slug", "already-a-slug"),
            ("---Dashes---", "dashes"),
            ("Level 3 Support", "level-3-support"),
            ("Café Barista", "caf-barista"),
        ],
    )
    def test_slugify(self, text, expected):
        assert slugify(text) == expected

    @pytest.mark.parametrize("text", ["", "!!!", "   ", "日本語"])
    def test_slugify_can_be_empty(self, text):
        """Titles without ASCII letters or digits produce an empty slug."""
        assert slugify(text) == ""

    @pytest.mark.parametrize(
        "text", ["Senior Engineer", "a--b", "Ünïcödé Title!!", "x" * 50, "  -  "]
    )
    def test_slug_shape(self, text):
        """Slugs only contain [a-z0-9-], never start/end with or repeat hyphens."""
        slug = slugify(text)

        assert re.fullmatch(r"[a-z0-9-]*", slug)
        assert not slug.startswith("-")
        assert not slug.endswith("-")
        assert "--" not in slug

    def test_slugify_is_idempotent(self):
        slug = slugify("Staff Platform Engineer, EMEA")

        assert slugify(slug) == slug


class TestMasking:

    def test_mask_email(self):
        assert mask_email("john@example.com") == "j**n@example.com"

    def test_mask_short_email(self):
        assert mask_email("jo@example.com") == "j*@example.com"

    def test_mask_non_email(self):
        assert mask_email("not-an-email") == "not-an-email"

