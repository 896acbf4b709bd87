"""Template rendering for alert emails using Jinja2.

This module wraps Jinja2 template rendering with strict undefined checking to
catch template errors early. HTML templates are auto-escaped; subject and text
templates are not, so the text body carries the same characters the reader
sees in the HTML one.
"""

import logging
from typing import Dict, List

from jinja2 import Environment, PackageLoader, StrictUndefined, TemplateError, select_autoescape

from tender_alerts.domain.models import AlertConfiguration, Owner, TenderRecord
from tender_alerts.matching.models import ConfigSection

from .models import NotificationTemplateError, RenderedMessage
from .payloads import build_immediate_context, build_summary_context

logger = logging.getLogger(__name__)

IMMEDIATE_TEMPLATES = (
    "immediate_subject.j2",
    "immediate_body.html.j2",
    "immediate_body.txt.j2",
)
SUMMARY_TEMPLATES = (
    "summary_subject.j2",
    "summary_body.html.j2",
    "summary_body.txt.j2",
)


class TemplateRenderer:
    """Renders immediate alerts and daily/weekly digests.

    Templates live in the tender_alerts.notifications.email_templates package
    directory and are cached by the Jinja2 environment after first load.
    """

    def __init__(
        self,
        base_url: str = "https://lankatender.com",
        timezone: str = "Asia/Colombo",
        template_dir: str = "email_templates",
    ):
        """Initialize template renderer with Jinja2 environment.

        Args:
            base_url: Frontend base URL for deep links (no trailing slash)
            timezone: IANA zone used to display closing dates
            template_dir: Directory name within tender_alerts.notifications
        """
        self.base_url = base_url.rstrip("/")
        self.timezone = timezone
        self.env = Environment(
            loader=PackageLoader("tender_alerts.notifications", template_dir),
            autoescape=select_autoescape(enabled_extensions=("html.j2",), default=False),
            undefined=StrictUndefined,
            trim_blocks=True,
            lstrip_blocks=True,
        )

        logger.debug(f"Initialized TemplateRenderer with templates from {template_dir}")

    def render_immediate(
        self, records: List[TenderRecord], config: AlertConfiguration
    ) -> RenderedMessage:
        """Render a single-configuration alert for newly matched records.

        Raises:
            NotificationTemplateError: If there is nothing to render or a template fails
        """
        if not records:
            raise NotificationTemplateError("Immediate alerts require at least one record")
        context = build_immediate_context(records, config, self.base_url, self.timezone)
        return self._render(IMMEDIATE_TEMPLATES, context)

    def render_summary(
        self, grouped: List[ConfigSection], frequency: str, owner: Owner
    ) -> RenderedMessage:
        """Render a digest sectioned by originating configuration.

        Empty sections are omitted. A digest with no records at all renders the
        explicit "no new matches" body.

        Raises:
            NotificationTemplateError: If a template fails
        """
        context = build_summary_context(grouped, frequency, owner, self.base_url, self.timezone)
        return self._render(SUMMARY_TEMPLATES, context)

    def _render(self, names: tuple, context: Dict) -> RenderedMessage:
        subject_name, html_name, text_name = names
        try:
            subject = self.env.get_template(subject_name).render(context)
            html_body = self.env.get_template(html_name).render(context)
            text_body = self.env.get_template(text_name).render(context)
        except TemplateError as e:
            error_msg = f"Template rendering failed: {e}"
            logger.error(error_msg, exc_info=True)
            raise NotificationTemplateError(error_msg) from e

        # Subjects must be a single header line
        subject = " ".join(subject.split())
        return RenderedMessage(subject=subject, html_body=html_body, text_body=text_body)
