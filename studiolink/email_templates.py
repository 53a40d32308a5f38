"""
MJML Email Templates
Every template returns the subject, the MJML body and a plain-text alternative.
All interpolated values are HTML-escaped here; callers pass raw strings.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from .config import BUSINESS_TIMEZONE
from .utils.sanitization import sanitize_string as esc

THEME = {
    "primary": "#7c3aed",
    "primary_dark": "#5b21b6",
    "background": "#f9fafb",
    "text_primary": "#111827",
    "text_secondary": "#374151",
    "text_muted": "#6b7280",
    "border": "#e5e7eb",
    "success": "#10b981",
    "warning": "#f59e0b",
    "danger": "#ef4444",
}


@dataclass
class RenderedEmail:
    subject: str
    mjml: str
    text: str


def local_timestamp(now: Optional[datetime] = None) -> str:
    """Human timestamp in the business timezone for ops mail footers."""
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(ZoneInfo(BUSINESS_TIMEZONE)).strftime("%d/%m/%Y, %I:%M:%S %p")


def get_base_template(
    title: str,
    preview_text: str,
    content_sections: str,
    cta_url: Optional[str] = None,
    cta_label: Optional[str] = None,
    accent: str = THEME["primary"],
    footer_text: str = "Sent via Project Manager",
) -> str:
    """Base MJML template wrapper for all emails"""

    cta_section = ""
    if cta_url and cta_label:
        cta_section = f"""
        <mj-section background-color="#ffffff" padding="0 40px 32px 40px">
          <mj-column>
            <mj-button
              href="{esc(cta_url)}"
              background-color="{accent}"
              color="#ffffff"
              font-weight="600"
              border-radius="8px"
              padding="0"
              inner-padding="14px 28px"
              font-size="16px">
              {cta_label}
            </mj-button>
          </mj-column>
        </mj-section>
        """

    return f"""
    <mjml>
      <mj-head>
        <mj-title>{esc(title)}</mj-title>
        <mj-preview>{esc(preview_text)}</mj-preview>
        <mj-attributes>
          <mj-all font-family="-apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif" />
          <mj-text font-size="16px" line-height="1.6" color="{THEME['text_secondary']}" />
        </mj-attributes>
      </mj-head>
      <mj-body background-color="{THEME['background']}">
        <mj-section background-color="{accent}" padding="30px 40px">
          <mj-column>
            <mj-text font-size="24px" font-weight="600" color="#ffffff" padding="0">
              {esc(title)}
            </mj-text>
          </mj-column>
        </mj-section>

        <mj-section background-color="#ffffff" padding="30px 40px 16px 40px">
          <mj-column>
            {content_sections}
          </mj-column>
        </mj-section>

        {cta_section}

        <mj-section padding="20px">
          <mj-column>
            <mj-text align="center" font-size="12px" color="#9ca3af" padding="0">
              {esc(footer_text)}
            </mj-text>
          </mj-column>
        </mj-section>
      </mj-body>
    </mjml>
    """


def _detail_table(rows: list[tuple[str, str]]) -> str:
    cells = "".join(
        f"""
        <tr>
          <td style="padding: 8px; border-bottom: 1px solid {THEME['border']};"><strong>{esc(label)}:</strong></td>
          <td style="padding: 8px; border-bottom: 1px solid {THEME['border']};">{esc(value)}</td>
        </tr>"""
        for label, value in rows
    )
    return f"""
    <mj-table padding="16px 0">
      {cells}
    </mj-table>
    """


def files_ready_template(
    client_name: str,
    project_name: str,
    files: list[dict],
    download_url: str,
    pending: Optional[list[str]] = None,
    expires_days: int = 7,
    renewed: bool = False,
) -> RenderedEmail:
    """Client mail carrying the magic link. ``files`` items have "type" and "name"."""
    pending = pending or []
    file_items = "".join(
        f"<li><strong>{esc(f['type'])}</strong> <span style=\"color: {THEME['text_muted']};\">({esc(f.get('name') or 'file')})</span></li>"
        for f in files
    )
    pending_section = ""
    if pending:
        pending_items = "".join(f"<li>{esc(p)}</li>" for p in pending)
        pending_section = f"""
        <mj-text color="{THEME['text_muted']}" font-size="14px">
          Still in progress (we'll send these when they're ready):
          <ul>{pending_items}</ul>
        </mj-text>
        """

    if renewed:
        subject = f"New download link: {project_name}"
        intro = f"Here is a fresh download link for your files for <strong>{esc(project_name)}</strong>:"
        title = "📁 Your Download Link"
    else:
        subject = f"Your files are ready: {project_name}"
        intro = f"Your files for <strong>{esc(project_name)}</strong> are ready for download:"
        title = "📁 Your Files Are Ready"

    content = f"""
    <mj-text>Hi {esc(client_name)},</mj-text>
    <mj-text>{intro}</mj-text>
    <mj-text padding="8px 25px">
      <p style="margin: 0; color: {THEME['text_muted']}; font-size: 14px;"><strong>Files included:</strong></p>
      <ul>{file_items}</ul>
    </mj-text>
    {pending_section}
    <mj-text color="{THEME['text_muted']}" font-size="14px">
      This link will expire in {expires_days} days. If you have any questions, please reply to this email.
    </mj-text>
    """

    file_lines = "\n".join(f"• {f['type']} ({f.get('name') or 'file'})" for f in files)
    text = f"Hi {client_name},\n\n"
    if renewed:
        text += f"Here is a fresh download link for your files for {project_name}.\n\n"
    else:
        text += f"Your files for {project_name} are ready for download:\n\n"
    text += f"Files included:\n{file_lines}\n\n"
    if pending:
        text += "Still in progress:\n" + "\n".join(f"• {p}" for p in pending) + "\n\n"
    text += f"Download here: {download_url}\n\nThis link will expire in {expires_days} days."

    mjml = get_base_template(
        title=title,
        preview_text=subject,
        content_sections=content,
        cta_url=download_url,
        cta_label="📥 Download Files",
    )
    return RenderedEmail(subject=subject, mjml=mjml, text=text)


def files_sent_receipt_template(
    project_name: str,
    client_name: str,
    client_email: str,
    file_names: list[str],
    success: bool,
    error: Optional[str] = None,
) -> RenderedEmail:
    """Internal receipt after a send-to-client attempt"""
    if success:
        subject = f"✅ Files sent to {client_name}"
        heading, accent = "✅ Files Sent Successfully", THEME["success"]
    else:
        subject = f"⚠️ FAILED: Files to {client_name}"
        heading, accent = "⚠️ File Send Failed", THEME["danger"]

    items = "".join(f"<li>{esc(name)}</li>" for name in file_names)
    error_section = ""
    if not success:
        error_section = f"""
        <mj-text color="{THEME['danger']}"><strong>Error:</strong> {esc(error or 'Unknown error')}</mj-text>
        """
    stamp = local_timestamp()
    content = f"""
    {_detail_table([("Project", project_name), ("Client", f"{client_name} ({client_email})")])}
    <mj-text><strong>Files:</strong><ul>{items}</ul></mj-text>
    {error_section}
    <mj-text color="{THEME['text_muted']}" font-size="12px">Sent at {stamp}</mj-text>
    """

    text = (
        f"{heading}\n\nProject: {project_name}\nClient: {client_name} ({client_email})\n"
        + "Files:\n"
        + "\n".join(f"- {name}" for name in file_names)
    )
    if not success:
        text += f"\n\nError: {error or 'Unknown error'}"
    text += f"\n\nSent at {stamp}"

    mjml = get_base_template(heading, subject, content, accent=accent, footer_text="Internal notification")
    return RenderedEmail(subject=subject, mjml=mjml, text=text)


def project_status_template(
    project_name: str, client_name: str, status: str, note: Optional[str] = None
) -> RenderedEmail:
    """Internal alert when a project moves to completed or revision"""
    if status == "completed":
        heading, accent = "🎉 Status Updated: Complete", THEME["success"]
    else:
        heading, accent = "🔄 Status Updated: Revision", THEME["warning"]
    subject = f"{heading} ({project_name})"

    rows = [("Project", project_name), ("Client", client_name)]
    if note:
        rows.append(("Note", note))
    stamp = local_timestamp()
    content = f"""
    {_detail_table(rows)}
    <mj-text color="{THEME['text_muted']}" font-size="12px">Updated at {stamp}</mj-text>
    """
    text = f"{heading}\n\n" + "\n".join(f"{label}: {value}" for label, value in rows)
    text += f"\n\nUpdated at {stamp}"

    mjml = get_base_template(heading, subject, content, accent=accent, footer_text="Internal notification")
    return RenderedEmail(subject=subject, mjml=mjml, text=text)


# event type -> (subject prefix, heading, summary, action line, accent)
DELIVERY_ALERTS = {
    "email.bounced": (
        "🚨 EMAIL BOUNCED",
        "🚨 Email Bounced",
        "An email failed to deliver and bounced back.",
        "⚠️ Action required: Contact the client directly or verify their email address.",
        THEME["danger"],
    ),
    "email.complained": (
        "⚠️ SPAM COMPLAINT",
        "⚠️ Spam Complaint Received",
        "A recipient marked your email as spam.",
        "⚠️ This recipient should be removed from future emails to protect your sender reputation.",
        THEME["warning"],
    ),
    "email.delivery_delayed": (
        "⏳ EMAIL DELAYED",
        "⏳ Email Delivery Delayed",
        "An email is experiencing delivery delays. It may still be delivered.",
        "The email service will continue trying to deliver. You'll be notified if it bounces.",
        THEME["warning"],
    ),
    "email.failed": (
        "🚨 EMAIL FAILED",
        "🚨 Email Failed to Send",
        "An email completely failed to send.",
        "⚠️ Action required: The client did NOT receive this email. Contact them directly or try resending.",
        THEME["danger"],
    ),
    "email.suppressed": (
        "🚫 EMAIL SUPPRESSED",
        "🚫 Email Suppressed - Not Delivered",
        "This email was blocked because the recipient is on the suppression list (due to a previous bounce or complaint).",
        "⚠️ Action required: The client did NOT receive this email. Contact them directly with a different email address.",
        THEME["danger"],
    ),
}


def delivery_alert_template(
    event_type: str, recipient: str, email_subject: str, details: list[tuple[str, str]]
) -> RenderedEmail:
    """Ops alert for a problem event reported by the mail relay"""
    prefix, heading, summary, action, accent = DELIVERY_ALERTS[event_type]
    subject = f"{prefix}: {recipient}"
    rows = [("To", recipient), ("Subject", email_subject), *details]
    stamp = local_timestamp()
    content = f"""
    <mj-text>{esc(summary)}</mj-text>
    {_detail_table(rows)}
    <mj-text color="{accent}" font-weight="bold">{esc(action)}</mj-text>
    <mj-text color="{THEME['text_muted']}" font-size="12px">Received at {stamp}</mj-text>
    """
    text = (
        f"{heading}\n\n{summary}\n\n"
        + "\n".join(f"{label}: {value}" for label, value in rows)
        + f"\n\n{action}\n\nReceived at {stamp}"
    )
    mjml = get_base_template(heading, subject, content, accent=accent, footer_text="Internal notification")
    return RenderedEmail(subject=subject, mjml=mjml, text=text)


def reply_received_template(from_email: str, email_subject: str) -> RenderedEmail:
    """Forward notice for a client reply caught by the inbound webhook"""
    subject = f"📧 Reply from {from_email}: {email_subject}"
    content = f"""
    <mj-text font-size="20px"><strong>{esc(from_email)}</strong></mj-text>
    <mj-text font-size="14px" color="{THEME['text_muted']}">↑ Copy this email to reply to the client</mj-text>
    {_detail_table([("Subject", email_subject)])}
    <mj-text>
      A client has replied to your email. The message content is not included to stay within
      the email service rate limits. Check the Resend dashboard for the full message, or reply
      directly to <strong>{esc(from_email)}</strong>.
    </mj-text>
    """
    text = (
        f"Client Reply from {from_email}\n\nSubject: {email_subject}\n\n"
        "Please check your Resend Dashboard to view the full message."
    )
    mjml = get_base_template(
        "📧 Client Reply Received",
        subject,
        content,
        cta_url="https://resend.com/emails",
        cta_label="Open Resend Dashboard",
        footer_text="Internal notification",
    )
    return RenderedEmail(subject=subject, mjml=mjml, text=text)
