"""Unit tests for the predicate chain.

Tests cover:
- Inactive configurations never match
- Keyword match types (contains, exact, starts_with, ends_with)
- Exclude keywords
- Category, location and organization type filters
- Value range bounds (including zero bounds and missing amounts)
- Days-until-closing, status and priority filters
- Malformed records treated as not applicable
"""

from datetime import timedelta

import pytest

from tender_alerts.domain.models import KeywordClause
from tender_alerts.matching.predicates import (
    CHECKS,
    clause_matches,
    first_failing_check,
    matches,
)
from tests.helpers import NOW, make_config, make_record


class TestActiveCheck:
    def test_inactive_configuration_never_matches(self):
        """Inactive wins over every other criterion."""
        config = make_config(is_active=False, keywords=())
        record = make_record()

        assert matches(config, record, NOW) is False
        assert first_failing_check(config, record, NOW) == "active"

    def test_configuration_without_criteria_matches_everything(self):
        config = make_config(keywords=())
        assert matches(config, make_record(title="Anything at all", description=""), NOW)


class TestKeywords:
    def test_contains_matches_title(self):
        config = make_config(keywords=[("computer", "contains")])
        record = make_record(title="Office Computer Supply", description="")

        assert matches(config, record, NOW) is True

    def test_contains_does_not_match_unrelated_record(self):
        config = make_config(keywords=[("computer", "contains")])
        record = make_record(title="Furniture Procurement", description="Desks and chairs")

        assert matches(config, record, NOW) is False
        assert first_failing_check(config, record, NOW) == "keywords"

    def test_any_keyword_is_enough(self):
        config = make_config(keywords=[("printer", "contains"), ("laptop", "contains")])
        assert matches(config, make_record(), NOW) is True

    def test_keyword_found_in_full_text(self):
        config = make_config(keywords=[("toner", "contains")])
        record = make_record(
            title="Office supplies", description="", full_text="Includes **toner** cartridges"
        )
        assert matches(config, record, NOW) is True

    def test_exact_does_not_leak_into_longer_words(self):
        """'IT' must not match inside 'DIGITAL'."""
        config = make_config(keywords=[("IT", "exact")])
        record = make_record(title="DIGITAL transformation programme", description="")

        assert matches(config, record, NOW) is False

    def test_exact_matches_standalone_word(self):
        config = make_config(keywords=[("IT", "exact")])
        record = make_record(title="Supply of IT equipment", description="")

        assert matches(config, record, NOW) is True

    @pytest.mark.parametrize(
        "term, mode, text, expected",
        [
            ("it", "exact", "it", True),
            ("it", "exact", "(it)", True),
            ("it", "exact", "digital", False),
            ("lap", "starts_with", "new laptops", True),
            ("top", "starts_with", "new laptops", False),
            ("tops", "ends_with", "new laptops", True),
            ("lap", "ends_with", "new laptops", False),
            ("c++", "exact", "c++ compilers", True),
        ],
    )
    def test_clause_boundaries(self, term, mode, text, expected):
        assert clause_matches(KeywordClause(term=term, match_type=mode), text) is expected

    def test_keyword_terms_are_lowercased(self):
        clause = KeywordClause(term="  Laptop ", match_type="exact")
        assert clause.term == "laptop"


class TestExclusions:
    def test_exclude_keyword_in_description_fails_match(self):
        config = make_config(
            keywords=[("laptop", "contains")],
            advanced_filters={"exclude_keywords": ["urgent"]},
        )
        record = make_record(description="URGENT procurement of laptops")

        assert matches(config, record, NOW) is False
        assert first_failing_check(config, record, NOW) == "exclusions"

    def test_exclude_keyword_absent_keeps_match(self):
        config = make_config(advanced_filters={"exclude_keywords": ["urgent"]})
        assert matches(config, make_record(), NOW) is True


class TestStructuralFilters:
    def test_category_must_be_listed(self):
        config = make_config(categories=["Construction"])
        assert first_failing_check(config, make_record(), NOW) == "category"

    def test_category_listed_matches(self):
        config = make_config(categories=["IT & Telecommunications", "Construction"])
        assert matches(config, make_record(), NOW) is True

    def test_province_filter(self):
        config = make_config(locations={"provinces": ["Southern"]})
        assert first_failing_check(config, make_record(), NOW) == "location"

    def test_district_filter(self):
        config = make_config(locations={"provinces": ["Western"], "districts": ["Gampaha"]})
        assert first_failing_check(config, make_record(), NOW) == "location"

    def test_city_filter_ignored_when_record_has_no_city(self):
        config = make_config(locations={"cities": ["Kandy"]})
        record = make_record(location={"province": "Western", "district": "Colombo"})

        assert matches(config, record, NOW) is True

    def test_city_filter_applies_when_record_names_city(self):
        config = make_config(locations={"cities": ["Kandy"]})
        assert first_failing_check(config, make_record(), NOW) == "location"

    def test_organization_type_filter(self):
        config = make_config(organization_types=["private"])
        assert first_failing_check(config, make_record(), NOW) == "organization_type"

        config = make_config(organization_types=["government", "ngo"])
        assert matches(config, make_record(), NOW) is True


class TestValueRange:
    @pytest.fixture
    def config(self):
        return make_config(estimated_value={"min": 1000, "max": 5000})

    def test_amount_inside_range_matches(self, config):
        assert matches(config, make_record(amount=4000), NOW) is True

    def test_amount_above_range_fails(self, config):
        assert first_failing_check(config, make_record(amount=6000), NOW) == "value_range"

    def test_amount_below_range_fails(self, config):
        assert matches(config, make_record(amount=999), NOW) is False

    def test_bounds_are_inclusive(self, config):
        assert matches(config, make_record(amount=1000), NOW) is True
        assert matches(config, make_record(amount=5000), NOW) is True

    def test_record_without_amount_is_unaffected(self, config):
        assert matches(config, make_record(), NOW) is True

    def test_zero_max_is_a_real_bound(self):
        """A bound of 0 is set, not absent."""
        config = make_config(estimated_value={"min": 0, "max": 0})
        assert matches(config, make_record(amount=10), NOW) is False
        assert matches(config, make_record(amount=0), NOW) is True

    def test_min_above_max_rejected_at_write_time(self):
        with pytest.raises(ValueError):
            make_config(estimated_value={"min": 5000, "max": 1000})


class TestAdvancedFilters:
    def test_days_until_closing_window(self):
        config = make_config(
            advanced_filters={"min_days_until_closing": 3, "max_days_until_closing": 10}
        )
        assert matches(config, make_record(closing=NOW + timedelta(days=5)), NOW) is True
        assert (
            first_failing_check(config, make_record(closing=NOW + timedelta(days=1)), NOW)
            == "days_until_closing"
        )
        assert matches(config, make_record(closing=NOW + timedelta(days=20)), NOW) is False

    def test_days_until_closing_skipped_without_closing_date(self):
        config = make_config(advanced_filters={"max_days_until_closing": 2})
        record = make_record(dates={"published": NOW})
        assert matches(config, record, NOW) is True

    def test_status_filter(self):
        config = make_config(advanced_filters={"included_statuses": ["closed"]})
        assert first_failing_check(config, make_record(), NOW) == "status"

    def test_priority_filter(self):
        config = make_config(advanced_filters={"included_priorities": ["high", "urgent"]})
        assert first_failing_check(config, make_record(), NOW) == "priority"
        assert matches(config, make_record(priority="urgent"), NOW) is True


class TestMalformedRecords:
    def test_unevaluable_check_is_not_applicable(self):
        """A check that cannot read the record passes instead of failing the match."""
        config = make_config(keywords=(), estimated_value={"min": 1000})
        record = make_record(amount=4000)
        # Simulate a corrupt snapshot that slipped past validation
        object.__setattr__(record.estimated_value, "amount", "not-a-number")

        assert matches(config, record, NOW) is True

    def test_check_order_is_stable(self):
        assert [name for name, _ in CHECKS][:3] == ["active", "keywords", "exclusions"]
