"""Template context builders for tender notifications.

Everything a template shows is computed here once, so the HTML and text
templates read the same values and stay factually identical.
"""

from typing import Dict, List, Optional

from tender_alerts.domain.models import AlertConfiguration, Owner, TenderRecord
from tender_alerts.matching.models import ConfigSection
from tender_alerts.utils.timestamps import format_display_date

EXCERPT_LENGTH = 200

FREQUENCY_LABELS = {
    "daily": "Daily",
    "weekly": "Weekly",
    "immediate": "Immediate",
}

# Period wording for the empty digest ("this day" reads oddly)
FREQUENCY_PERIODS = {
    "daily": "today",
    "weekly": "this week",
}


def format_amount(amount: Optional[float], currency: Optional[str]) -> Optional[str]:
    """Format an estimated value as 'LKR 1,500,000' (two decimals when fractional)."""
    if amount is None:
        return None
    if float(amount).is_integer():
        number = f"{int(amount):,}"
    else:
        number = f"{amount:,.2f}"
    return f"{currency or 'LKR'} {number}".strip()


def build_excerpt(text: Optional[str], length: int = EXCERPT_LENGTH) -> str:
    text = " ".join((text or "").split())
    if len(text) <= length:
        return text
    return text[:length].rstrip() + "..."


def record_url(base_url: str, record_id: str) -> str:
    return f"{base_url}/tenders/{record_id}"


def build_links(base_url: str) -> Dict[str, str]:
    return {
        "manage_url": f"{base_url}/alerts",
        "unsubscribe_url": f"{base_url}/unsubscribe",
    }


def build_record_context(record: TenderRecord, base_url: str, timezone: str) -> Dict:
    """Flatten a record into the values the templates display.

    Args:
        record: Matched tender
        base_url: Frontend base URL without trailing slash
        timezone: IANA zone used for the closing date

    Returns:
        Dictionary with id, title, category, organization, location,
        closing_date, value, excerpt and url keys
    """
    value = None
    if record.estimated_value is not None:
        value = format_amount(record.estimated_value.amount, record.estimated_value.currency)

    return {
        "id": record.id,
        "title": record.title,
        "reference_no": record.reference_no or "",
        "category": record.category or "Uncategorized",
        "organization_name": record.organization.name,
        "organization_type": record.organization.type or "",
        "location": record.location.display() or "Not specified",
        "closing_date": format_display_date(record.dates.closing, timezone) or "Not specified",
        "value": value,
        "excerpt": build_excerpt(record.description),
        "url": record_url(base_url, record.id),
    }


def build_immediate_context(
    records: List[TenderRecord],
    config: AlertConfiguration,
    base_url: str,
    timezone: str,
) -> Dict:
    count = len(records)
    return {
        "config_name": config.name,
        "count": count,
        "plural": count != 1,
        "greeting_name": config.owner.display_name,
        "records": [build_record_context(record, base_url, timezone) for record in records],
        **build_links(base_url),
    }


def build_summary_context(
    sections: List[ConfigSection],
    frequency: str,
    owner: Owner,
    base_url: str,
    timezone: str,
) -> Dict:
    """Context for a daily or weekly digest.

    Sections with no records are dropped. The total counts unique records, so a
    record sitting in one section is never counted twice.
    """
    rendered_sections = []
    seen = set()
    for section in sections:
        if not section.records:
            continue
        rendered_sections.append(
            {
                "config_name": section.config.name,
                "count": len(section.records),
                "records": [
                    build_record_context(record, base_url, timezone) for record in section.records
                ],
            }
        )
        seen.update(record.id for record in section.records)

    frequency = str(frequency).lower()
    return {
        "frequency": frequency,
        "frequency_label": FREQUENCY_LABELS.get(frequency, frequency.capitalize()),
        "period": FREQUENCY_PERIODS.get(frequency, f"this {frequency}"),
        "greeting_name": owner.display_name,
        "total": len(seen),
        "sections": rendered_sections,
        **build_links(base_url),
    }
