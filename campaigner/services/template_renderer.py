# campaigner/services/template_renderer.py
"""
Variable substitution for campaign bodies and subjects.

Placeholders look like {{clientName}} or {{company.name}}. Unknown
placeholders are left in the output untouched.
"""
import html
import re
from typing import Dict, Optional

from campaigner.schemas.delivery import Recipient

PLACEHOLDER_RE = re.compile(r"\{\{\s*([\w.]+)\s*\}\}")


def render_template(template: Optional[str], variables: Dict[str, str]) -> str:
    """Replace every known {{name}} placeholder with its value"""
    if not template:
        return ""

    def _replace(match):
        key = match.group(1)
        if key in variables and variables[key] is not None:
            return str(variables[key])
        return match.group(0)

    return PLACEHOLDER_RE.sub(_replace, template)


def recipient_variables(recipient: Recipient, business_name: str) -> Dict[str, str]:
    """Variables available to campaign templates for one recipient"""
    return {
        "clientName": recipient.name,
        "client.name": recipient.name,
        "firstName": recipient.first_name,
        "client.firstName": recipient.first_name,
        "businessName": business_name,
        "company.name": business_name,
    }


def render_email_html(body: str, business_name: str) -> str:
    """Wrap a rendered plain-text body in the marketing email layout"""
    paragraph = html.escape(body).replace("\n", "<br/>")
    return (
        '<div style="font-family: sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">'
        f"<p>{paragraph}</p>"
        '<hr style="margin-top: 30px; border: none; border-top: 1px solid #eee;" />'
        f'<p style="font-size: 12px; color: #999;">From {html.escape(business_name)}</p>'
        "</div>"
    )


def default_subject(business_name: str) -> str:
    return f"A message from {business_name}"
