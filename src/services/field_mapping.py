"""
Field mapping engine - renders a course mapping's field table into the flat
custom-field dict sent to the credential service.

A field table maps certificate placeholders to data sources:

    {"{Name}": "user_name", "{Date}": "completion_date", "{Issuer}": "ACME Academy"}

Recognised sources are listed in FIELD_SOURCES. Any other string is literal
text and is copied as-is, which is also what `custom_static` does with its own
value. The object form {"source": "custom_static", "value": "ACME Academy"}
carries literal text explicitly.

After the table is applied, the standard placeholders in DEFAULT_FIELDS are
filled from the resolved data if the table did not produce them, so an empty
table still yields a usable certificate.
"""
from datetime import date
from typing import Any, Optional

from pydantic import BaseModel

from src.utils.dates import format_long_date

COURSE_NAME = "course_name"
COMPLETION_DATE = "completion_date"
USER_NAME = "user_name"
USER_EMAIL = "user_email"
COURSE_DESCRIPTION = "course_description"
ENROLLMENT_DATE = "enrollment_date"
CUSTOM_STATIC = "custom_static"

FIELD_SOURCES = frozenset({
    COURSE_NAME, COMPLETION_DATE, USER_NAME, USER_EMAIL,
    COURSE_DESCRIPTION, ENROLLMENT_DATE, CUSTOM_STATIC,
})

RECIPIENT_NAME_FIELD = "{Name}"
COURSE_NAME_FIELD = "{course_name}"
COMPLETION_DATE_FIELD = "{completion_date}"


class FieldContext(BaseModel):
    """Resolved data a field table can draw from."""
    recipient_name: str
    recipient_email: str
    course_name: str = ""
    course_description: Optional[str] = None
    completion_date: date
    enrollment_date: Optional[date] = None


def _resolve(source: str, ctx: FieldContext) -> str:
    if source == COURSE_NAME:
        return ctx.course_name
    if source == COMPLETION_DATE:
        return format_long_date(ctx.completion_date)
    if source == USER_NAME:
        return ctx.recipient_name
    if source == USER_EMAIL:
        return ctx.recipient_email
    if source == COURSE_DESCRIPTION:
        return ctx.course_description or ""
    if source == ENROLLMENT_DATE:
        return format_long_date(ctx.enrollment_date or ctx.completion_date)
    # custom_static and anything unrecognised: the configured string is the text
    return source


def render_field(selector: Any, ctx: FieldContext) -> str:
    """Render one field-table value."""
    if isinstance(selector, dict):
        source = selector.get("source")
        if source in FIELD_SOURCES and source != CUSTOM_STATIC:
            return _resolve(source, ctx)
        value = selector.get("value", source)
        return "" if value is None else str(value)
    if selector is None:
        return ""
    return _resolve(str(selector), ctx)


def render_custom_fields(field_mappings: Optional[dict], ctx: FieldContext) -> dict[str, str]:
    """Apply a field table and fill in the standard placeholders."""
    custom: dict[str, str] = {}
    if isinstance(field_mappings, dict):
        for key, selector in field_mappings.items():
            custom[str(key)] = render_field(selector, ctx)

    defaults = {
        RECIPIENT_NAME_FIELD: ctx.recipient_name,
        COURSE_NAME_FIELD: ctx.course_name,
        COMPLETION_DATE_FIELD: format_long_date(ctx.completion_date),
    }
    for key, value in defaults.items():
        if not custom.get(key) and value:
            custom[key] = value
    return custom
