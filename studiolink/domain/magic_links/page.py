"""Server-rendered download page shown behind /download/<token>"""

from typing import Optional

from ...errors import LINK_UNAVAILABLE_MESSAGE
from ...utils.sanitization import sanitize_string as esc
from .schemas import MagicLinkView

PAGE_STYLE = """
body { margin: 0; font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;
       background: #f5f3ff; color: #111827; }
.header { background: linear-gradient(90deg, #6d28d9, #4c1d95); color: #fff; text-align: center;
          padding: 32px 16px 48px; }
.card { max-width: 640px; margin: -24px auto 32px; background: #fff; border-radius: 16px;
        box-shadow: 0 10px 25px rgba(0,0,0,.08); overflow: hidden; }
.section { padding: 20px 24px; border-bottom: 1px solid #e5e7eb; }
.muted { color: #6b7280; font-size: 14px; }
.file { display: flex; align-items: center; justify-content: space-between; gap: 12px;
        padding: 14px; margin-bottom: 12px; border: 2px solid #e5e7eb; border-radius: 12px;
        background: #f9fafb; }
.file a { background: #7c3aed; color: #fff; padding: 10px 16px; border-radius: 8px;
          text-decoration: none; font-weight: 600; white-space: nowrap; }
.pending { padding: 10px 14px; margin-bottom: 8px; border-radius: 10px; background: #fffbeb;
           color: #92400e; }
"""


def _page(title: str, body: str) -> str:
    return f"""<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1">
  <meta name="robots" content="noindex">
  <title>{esc(title)}</title>
  <style>{PAGE_STYLE}</style>
</head>
<body>
{body}
</body>
</html>"""


def render_download_page(view: MagicLinkView) -> str:
    file_rows = "".join(
        f"""
        <div class="file">
          <div>
            <div><strong>{esc(f.type)}</strong></div>
            <div class="muted">{esc(f.name or "download")}</div>
          </div>
          <a href="{esc(f.url)}" download="{esc(f.name or 'download')}" target="_blank" rel="noopener noreferrer">📥 Download</a>
        </div>"""
        for f in view.files
    )
    if not view.files:
        file_rows = '<p class="muted">There are no files available on this link right now.</p>'

    pending_section = ""
    if view.pending_files:
        pending_rows = "".join(f'<div class="pending">⏳ {esc(p.type)}</div>' for p in view.pending_files)
        pending_section = f"""
      <div class="section">
        <h2>Still in progress</h2>
        <p class="muted">We'll email you again when these are ready.</p>
        {pending_rows}
      </div>"""

    body = f"""
  <div class="header">
    <div style="font-size: 40px;">📁</div>
    <h1>Your Files Are Ready</h1>
    <p>Hi {esc(view.client_name)}!</p>
  </div>
  <div class="card">
    <div class="section">
      <div class="muted">Project</div>
      <div style="font-size: 18px; font-weight: 600;">{esc(view.project_name)}</div>
    </div>
    <div class="section">
      <h2>Files ({len(view.files)})</h2>
      {file_rows}
    </div>{pending_section}
    <div class="section muted">
      This link expires on {view.expires_at.strftime("%d %B %Y")}.
    </div>
  </div>"""
    return _page(f"{view.project_name} - Your Files", body)


def render_unavailable_page(message: Optional[str] = None) -> str:
    body = f"""
  <div class="card" style="margin-top: 64px; text-align: center;">
    <div class="section">
      <div style="font-size: 56px;">😕</div>
      <h1>Link Expired</h1>
      <p class="muted">{esc(message or LINK_UNAVAILABLE_MESSAGE)}</p>
    </div>
  </div>"""
    return _page("Link Expired", body)
