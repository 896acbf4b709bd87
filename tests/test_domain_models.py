"""Unit tests for domain models.

Tests validation at the write boundary:
- Keyword, exclude and name normalization
- Value range and days-until-closing bounds
- Recipient override and daily bucket validation
- Derived properties (effective email, amount, search text)
"""

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from tender_alerts.domain.models import (
    AdvancedFilters,
    EmailSettings,
    KeywordClause,
    Owner,
    NotificationJob,
    RecordDates,
    ValueRange,
)
from tests.helpers import make_config, make_owner, make_record


class TestConfigurationValidation:
    def test_name_is_stripped(self):
        assert make_config(name="  Road works  ").name == "Road works"

    def test_blank_name_rejected(self):
        with pytest.raises(ValidationError):
            make_config(name="   ")

    def test_blank_keyword_rejected(self):
        with pytest.raises(ValidationError):
            KeywordClause(term="   ")

    def test_unknown_match_type_rejected(self):
        with pytest.raises(ValidationError):
            KeywordClause(term="laptop", match_type="fuzzy")

    def test_enum_values_stored_as_strings(self):
        config = make_config(keywords=[("Laptop", "starts_with")], organization_types=["ngo"])
        assert config.keywords[0].match_type == "starts_with"
        assert config.organization_types == ["ngo"]

    def test_unknown_organization_type_rejected(self):
        with pytest.raises(ValidationError):
            make_config(organization_types=["cooperative"])

    def test_categories_stripped(self):
        config = make_config(categories=[" Construction ", ""])
        assert config.categories == ["Construction"]


class TestFilterModels:
    def test_value_range_negative_rejected(self):
        with pytest.raises(ValidationError):
            ValueRange(min=-1)

    def test_value_range_min_above_max(self):
        with pytest.raises(ValidationError, match="cannot exceed"):
            ValueRange(min=10, max=5)

    def test_value_range_open_ended(self):
        assert ValueRange(min=100).max is None

    def test_excludes_are_cleaned(self):
        filters = AdvancedFilters(exclude_keywords=[" Urgent", "urgent", "", "Repair "])
        assert filters.exclude_keywords == ["urgent", "repair"]

    def test_days_range_order(self):
        with pytest.raises(ValidationError):
            AdvancedFilters(min_days_until_closing=10, max_days_until_closing=2)


class TestEmailSettings:
    def test_defaults(self):
        settings = EmailSettings()
        assert settings.enabled is True
        assert settings.frequency == "immediate"
        assert settings.daily_summary_time == "09:00"
        assert settings.custom_email is None

    def test_custom_email_normalized(self):
        assert EmailSettings(custom_email=" Team@Example.COM ").custom_email == "team@example.com"

    def test_blank_custom_email_is_none(self):
        assert EmailSettings(custom_email="  ").custom_email is None

    def test_invalid_custom_email(self):
        with pytest.raises(ValidationError, match="recipient override"):
            EmailSettings(custom_email="not-an-email")

    def test_daily_time_padded(self):
        assert EmailSettings(daily_summary_time="8:00").daily_summary_time == "08:00"

    def test_daily_time_invalid(self):
        with pytest.raises(ValidationError):
            EmailSettings(daily_summary_time="25:00")

    def test_last_sent_naive_is_utc(self):
        settings = EmailSettings(last_sent_at=datetime(2026, 3, 1, 9, 0))
        assert settings.last_sent_at.tzinfo == timezone.utc


class TestDerivedProperties:
    def test_effective_email_prefers_override(self):
        config = make_config(email_settings={"custom_email": "team@example.com"})
        assert config.effective_email == "team@example.com"
        assert make_config().effective_email == "owner.a@example.com"

    def test_owner_display_name(self):
        assert make_owner(name="Amaya").display_name == "Amaya"
        assert make_owner(name=None).display_name == "there"

    def test_entitlement_defaults_off(self):
        assert Owner(id="o", email="o@example.com").email_alerts_enabled is False

    def test_record_amount(self):
        assert make_record(amount=4000).amount == 4000
        assert make_record().amount is None

    def test_search_text_is_lowercased_concatenation(self):
        record = make_record(title="Supply of LAPTOPS", description="For Schools", full_text="Lot 2")
        assert record.search_text() == "supply of laptops for schools lot 2"

    def test_record_dates_converted_to_utc(self):
        dates = RecordDates(published="2026-03-02T09:00:00+05:30")
        assert dates.published == datetime(2026, 3, 2, 3, 30, tzinfo=timezone.utc)

    def test_notification_job_key(self):
        job = NotificationJob(
            recipient="a@example.com", subject="s", html_body="h", text_body="t", owner_id="owner-a"
        )
        assert job.key == ("a@example.com", "owner-a")
        assert job.record_ids == []
