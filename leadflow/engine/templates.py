"""Message template system using Jinja2.

Built-in system templates:
    - email-welcome: Welcome & next steps
    - email-options-recap: Options recap
    - email-booking-confirmation: Booking confirmation
    - sms-quick-checkin: Quick check-in
    - sms-final-touch: Final touch
    - call-discovery: Discovery call agenda
    - call-options-review: Options review call agenda

Templates render against the lead (`lead`) and the advisor's name
(`sender`). A template directory can override a built-in body or add new
templates: each `<template-id>.txt.j2` file is a body, an optional
`<template-id>.subject.j2` beside it is the email subject, and the id prefix
(email-, sms-, call-) sets its channel.

The cadence engine never resolves template ids. Rendering happens here,
when somebody is about to work a task.

Usage:
    from leadflow.engine.templates import get_library, render_task_message

    message = render_task_message(task, lead, sender_name="Dana")
    if message:
        print(message.subject, message.body)
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

import jinja2

from leadflow.core.exceptions import TemplateError
from leadflow.core.logging import get_logger
from leadflow.db.models import Channel, Lead, Task, Template

logger = get_logger(__name__)

BODY_SUFFIX = ".txt.j2"
SUBJECT_SUFFIX = ".subject.j2"

DEFAULT_SENDER = "Your Travel Advisor"


@dataclass
class RenderedMessage:
    """A template rendered for one lead.

    Attributes:
        template_id: Source template
        channel: Channel the message is meant for
        subject: Rendered subject (email only)
        body: Rendered body
    """

    template_id: str
    channel: Channel
    body: str
    subject: Optional[str] = None


DEFAULT_TEMPLATES: list[Template] = [
    Template(
        id="email-welcome",
        channel=Channel.EMAIL,
        name="Welcome & Next Steps",
        subject="Great to connect! Here's what's next",
        body="""Hi {{ lead.first_name }},

Thank you for reaching out! I'm excited to help you plan your upcoming trip.

Based on our conversation, I understand you're interested in {{ lead.destination or "a new trip" }} \
with a timeline of {{ lead.timeline or "flexible dates" }}. I'll put together some personalized \
options for you within the next 24-48 hours.

In the meantime, here are a few things to consider:
• Your ideal budget range
• Preferred travel dates (with some flexibility if possible)
• Any must-have experiences or accommodations

Feel free to reply to this email with any questions or additional details.

Looking forward to creating an amazing experience for you!

Best regards,
{{ sender }}""",
        tags=["welcome", "first-contact"],
        is_system_template=True,
    ),
    Template(
        id="email-options-recap",
        channel=Channel.EMAIL,
        name="Options Recap",
        subject="Your travel options - let's discuss!",
        body="""Hi {{ lead.first_name }},

I've put together a few great options based on your preferences for {{ lead.destination or "your trip" }}.

Here's a quick recap of what I've found:
{% for option in options %}• Option {{ loop.index }}: {{ option }}
{% else %}• Option 1: [Brief description]
• Option 2: [Brief description]
• Option 3: [Brief description]
{% endfor %}
All options are within your {{ lead.budget_range or "stated" }} budget and align with your \
{{ lead.timeline or "preferred" }} timeframe.

I'd love to walk you through these options in detail. Would you have 15-20 minutes for a quick call this week?

Let me know what works best for you!

Best,
{{ sender }}""",
        tags=["follow-up", "options"],
        is_system_template=True,
    ),
    Template(
        id="sms-quick-checkin",
        channel=Channel.SMS,
        name="Quick Check-in",
        body=(
            "Hi {{ lead.first_name }}, just checking in on your "
            '{{ lead.destination or "travel" }} plans! Any questions I can help with? - {{ sender }}'
        ),
        tags=["check-in", "casual"],
        is_system_template=True,
    ),
    Template(
        id="sms-final-touch",
        channel=Channel.SMS,
        name="Final Touch",
        body=(
            "Hi {{ lead.first_name }}, I know you're busy! Just wanted to make sure you got my "
            'email about your {{ lead.destination or "travel" }} options. Still here to help '
            "when you're ready! - {{ sender }}"
        ),
        tags=["follow-up", "gentle-reminder"],
        is_system_template=True,
    ),
    Template(
        id="email-booking-confirmation",
        channel=Channel.EMAIL,
        name="Booking Confirmation",
        subject="Your trip is confirmed!",
        body="""Hi {{ lead.first_name }},

Exciting news - your trip is officially booked!

Here are your confirmation details:
• Service: {{ lead.destination or "Your trip" }}
• Dates: {{ dates or lead.timeline or "TBD" }}
• Confirmation number: {{ confirmation_number or "to follow" }}

I'll be sending you a detailed itinerary within 24 hours with all the important information you'll need.

If you have any questions before your trip, I'm always here to help!

Safe travels,
{{ sender }}""",
        tags=["booking", "confirmation"],
        is_system_template=True,
    ),
    Template(
        id="call-discovery",
        channel=Channel.CALL,
        name="Discovery Call",
        body="""Call agenda for {{ lead.full_name }}:
• Thank them for their interest
• Ask about their travel experience preferences
• Understand budget and timeline in detail
• Discuss any special occasions or requirements
• Set expectations for next steps
• Schedule follow-up if needed

Key questions:
- What inspired this trip?
- Have you traveled to similar destinations before?
- What's most important to you for this trip?
- Are there any concerns I should address?""",
        tags=["discovery", "consultation"],
        is_system_template=True,
    ),
    Template(
        id="call-options-review",
        channel=Channel.CALL,
        name="Options Review Call",
        body="""Call agenda for {{ lead.full_name }}:
• Recap their preferences
• Present 2-3 curated options
• Highlight pros/cons of each
• Answer questions and address concerns
• Discuss next steps (booking, deposits, etc.)
• Set decision timeline

Be prepared to discuss:
- Pricing details and what's included
- Cancellation/change policies
- Payment schedules
- Any current promotions or value-adds""",
        tags=["options", "consultation"],
        is_system_template=True,
    ),
]


def _channel_from_id(template_id: str) -> Optional[Channel]:
    prefix = template_id.split("-", 1)[0]
    try:
        return Channel(prefix)
    except ValueError:
        return None


class TemplateLibrary:
    """Lookup and rendering for message templates.

    Built-in templates live in a DictLoader. When a template directory is
    given, a FileSystemLoader in front of it lets files override bodies.
    """

    def __init__(
        self,
        templates: Optional[list[Template]] = None,
        template_dir: Optional[Path] = None,
    ):
        self.template_dir = template_dir
        self._templates: dict[str, Template] = {}
        self._sources: dict[str, str] = {}

        for template in templates if templates is not None else DEFAULT_TEMPLATES:
            self.register(template)

        loaders: list[jinja2.BaseLoader] = []
        if template_dir is not None:
            loaders.append(jinja2.FileSystemLoader(str(template_dir)))
            self._discover(template_dir)
        loaders.append(jinja2.DictLoader(self._sources))

        self._env = jinja2.Environment(
            loader=jinja2.ChoiceLoader(loaders),
            autoescape=False,
            undefined=jinja2.Undefined,
            keep_trailing_newline=False,
        )

    def register(self, template: Template) -> None:
        """Add or replace a template."""
        self._templates[template.id] = template
        self._sources[template.id + BODY_SUFFIX] = template.body
        if template.subject is not None:
            self._sources[template.id + SUBJECT_SUFFIX] = template.subject
        else:
            self._sources.pop(template.id + SUBJECT_SUFFIX, None)

    def _discover(self, template_dir: Path) -> None:
        """Register templates that exist only on disk."""
        for path in sorted(template_dir.glob("*" + BODY_SUFFIX)):
            template_id = path.name[: -len(BODY_SUFFIX)]
            if template_id in self._templates:
                continue
            channel = _channel_from_id(template_id)
            if channel is None:
                logger.warning(
                    f"Skipping template with unknown channel prefix: {path.name}",
                    extra={"context": {"template_dir": str(template_dir)}},
                )
                continue
            subject_path = template_dir / (template_id + SUBJECT_SUFFIX)
            self._templates[template_id] = Template(
                id=template_id,
                channel=channel,
                name=template_id.split("-", 1)[-1].replace("-", " ").title(),
                body=path.read_text(encoding="utf-8"),
                subject=subject_path.read_text(encoding="utf-8") if subject_path.is_file() else None,
            )

    def get(self, template_id: str) -> Template:
        """Get a template by id.

        Raises:
            TemplateError: If no template has this id
        """
        try:
            return self._templates[template_id]
        except KeyError:
            raise TemplateError(f"Unknown template: {template_id}") from None

    def list_templates(self, channel: Optional[Channel] = None) -> list[Template]:
        """List templates sorted by id, optionally for one channel."""
        templates = sorted(self._templates.values(), key=lambda t: t.id)
        if channel is not None:
            templates = [t for t in templates if t.channel == channel]
        return templates

    def render(
        self,
        template_id: str,
        lead: Lead,
        sender_name: Optional[str] = None,
        **kwargs: Any,
    ) -> RenderedMessage:
        """Render a template for a lead.

        Args:
            template_id: Template to render
            lead: Lead the message is for
            sender_name: Advisor name, falls back to a placeholder
            **kwargs: Extra template variables (options, dates, ...)

        Raises:
            TemplateError: If the template is unknown or fails to render
        """
        template = self.get(template_id)
        context = {
            "options": [],
            "dates": None,
            "confirmation_number": None,
            **kwargs,
            "lead": lead,
            "sender": sender_name or DEFAULT_SENDER,
        }

        try:
            body = self._env.get_template(template_id + BODY_SUFFIX).render(**context)
            subject = None
            if template.channel == Channel.EMAIL and template.subject is not None:
                subject = self._env.get_template(template_id + SUBJECT_SUFFIX).render(**context)
        except jinja2.TemplateError as e:
            raise TemplateError(f"Failed to render template {template_id}: {e}") from e

        logger.info(
            f"Rendered template: {template_id}",
            extra={"context": {"template": template_id, "lead_id": lead.id}},
        )
        return RenderedMessage(
            template_id=template_id,
            channel=template.channel,
            subject=subject,
            body=body,
        )

    def validate(self, template_id: str) -> list[str]:
        """Validate a template.

        Checks:
            - Template exists
            - Body and subject parse without errors

        Returns:
            List of issues (empty if valid)
        """
        issues: list[str] = []

        if template_id not in self._templates:
            issues.append(f"Template not found: {template_id}")
            return issues

        names = [template_id + BODY_SUFFIX]
        if self._templates[template_id].subject is not None:
            names.append(template_id + SUBJECT_SUFFIX)

        for name in names:
            try:
                self._env.get_template(name)
            except jinja2.TemplateSyntaxError as e:
                issues.append(f"Template syntax error in {name}: {e}")

        return issues


_library: Optional[TemplateLibrary] = None


def get_library(template_dir: Optional[Path] = None) -> TemplateLibrary:
    """Get the shared template library, or build one for a directory."""
    global _library
    if template_dir is not None:
        return TemplateLibrary(template_dir=template_dir)
    if _library is None:
        _library = TemplateLibrary()
    return _library


def render_task_message(
    task: Task,
    lead: Lead,
    library: Optional[TemplateLibrary] = None,
    sender_name: Optional[str] = None,
    **kwargs: Any,
) -> Optional[RenderedMessage]:
    """Render the message attached to a follow-up task.

    Returns:
        Rendered message, or None when the task has no template

    Raises:
        TemplateError: If the task points at an unknown template
    """
    if task.template_id is None:
        return None
    library = library or get_library()
    return library.render(task.template_id, lead, sender_name=sender_name, **kwargs)
