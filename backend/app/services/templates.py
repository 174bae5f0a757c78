"""Notification templates.

Every event has three Jinja2 templates: ``<event>.subject.txt``,
``<event>.txt`` and ``<event>.html``. Only the HTML body is autoescaped.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from jinja2 import DictLoader, Environment, StrictUndefined, select_autoescape

from app.models.enums import NotificationEvent

_TEMPLATES: dict[str, str] = {
    # -- New request, sent to the manager ---------------------------------
    "new_request.subject.txt": "Action Required: New {{ leave_type }} Leave Request",
    "new_request.txt": (
        "{{ requester_name }} has requested {{ days }} day(s) of {{ leave_type }} leave "
        "({{ start_date | short_date }} - {{ end_date | short_date }}). Please review."
    ),
    "new_request.html": """\
<div style="font-family: Arial, sans-serif; color: #333;">
  <h2 style="color: #2c3e50;">New Leave Request</h2>
  <p><strong>{{ requester_name }}</strong> has submitted a new leave request.</p>
  <table style="border-collapse: collapse; width: 100%; max-width: 600px;">
    <tr><td><strong>Type:</strong></td><td>{{ leave_type }}</td></tr>
    <tr><td><strong>Dates:</strong></td><td>{{ start_date | long_date }} to {{ end_date | long_date }}</td></tr>
    <tr><td><strong>Duration:</strong></td><td>{{ days }} Days</td></tr>
  </table>
  <p style="margin-top: 20px;">Please log in to the portal to Approve or Reject this request.</p>
</div>
""",
    # -- Status update, sent to the employee ------------------------------
    "status_update.subject.txt": "Leave Request {{ status }}",
    "status_update.txt": (
        "Your {{ leave_type }} leave request ({{ start_date | short_date }} - {{ end_date | short_date }}) "
        "has been {{ status }}."
    ),
    "status_update.html": """\
{% set color = "#27ae60" if "approved" in status | lower else "#c0392b" %}
<div style="font-family: Arial, sans-serif; color: #333;">
  <h2 style="color: {{ color }};">Request {{ status }}</h2>
  <p>Your request for <strong>{{ leave_type }}</strong> leave has been updated.</p>
  <p><strong>Status:</strong> <span style="color: {{ color }}; font-weight: bold;">{{ status }}</span></p>
  <p><strong>Dates:</strong> {{ start_date | long_date }} - {{ end_date | long_date }}</p>
</div>
""",
    # -- Manager approval, sent to each HR reviewer -----------------------
    "manager_action_to_hr.subject.txt": "HR Review: Manager Approved Leave",
    "manager_action_to_hr.txt": (
        "Manager {{ manager_name }} approved {{ leave_type }} leave for {{ employee_name }} "
        "({{ days }} days). Waiting for HR final approval."
    ),
    "manager_action_to_hr.html": """\
<div style="font-family: Arial, sans-serif; color: #333;">
  <h2 style="color: #2980b9;">Manager Approval Confirmed</h2>
  <p><strong>{{ manager_name }}</strong> has approved a leave request for <strong>{{ employee_name }}</strong>.</p>
  <p>This request is now pending your final review.</p>
  <ul>
    <li><strong>Type:</strong> {{ leave_type }}</li>
    <li><strong>Duration:</strong> {{ days }} Days</li>
  </ul>
  <p>Please proceed to the HR dashboard to finalize this request.</p>
</div>
""",
    # -- Cancellation, sent to the employee -------------------------------
    "cancelled.subject.txt": "Leave Request Cancelled",
    "cancelled.txt": "Your leave request has been successfully cancelled.",
    "cancelled.html": """\
<div style="font-family: Arial, sans-serif; color: #333;">
  <h2>Request Cancelled</h2>
  <p>Your leave request for <strong>{{ start_date | short_date }} - {{ end_date | short_date }}</strong>
  has been successfully cancelled.</p>
</div>
""",
}


@dataclass(frozen=True)
class RenderedNotification:
    subject: str
    text: str
    html: str


def _build_environment() -> Environment:
    env = Environment(
        loader=DictLoader(_TEMPLATES),
        autoescape=select_autoescape(["html"]),
        undefined=StrictUndefined,
        keep_trailing_newline=False,
    )
    env.filters["short_date"] = lambda value: value.strftime("%b %d")
    env.filters["long_date"] = lambda value: value.strftime("%b %d, %Y")
    return env


_env = _build_environment()


def render_notification(event: NotificationEvent, **context: Any) -> RenderedNotification:
    """Render subject, plain-text and HTML bodies for ``event``.

    Raises ``jinja2.UndefinedError`` when a variable the template uses is missing.
    """
    name = event.value.lower()
    return RenderedNotification(
        subject=_env.get_template(f"{name}.subject.txt").render(**context).strip(),
        text=_env.get_template(f"{name}.txt").render(**context).strip(),
        html=_env.get_template(f"{name}.html").render(**context).strip(),
    )
