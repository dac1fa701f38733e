"""Anonymous, read-only report view reached through a share link.

No session is involved: the token in the URL is the only credential.
Invalid, revoked and expired links render a short page and never touch
report data.
"""

from __future__ import annotations

import html
from datetime import datetime

from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse

from pesthub.core.models import ReportSnapshot
from pesthub.exceptions import Expired, NotFound, Revoked, TokenNotFound

router = APIRouter(tags=["Share"])

_PAGE = """<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<meta name="robots" content="noindex">
<title>{title}</title>
<style>
body {{ font-family: sans-serif; max-width: 48rem; margin: 2rem auto; color: #222; }}
dt {{ font-weight: bold; margin-top: .5rem; }}
.logo {{ max-height: 4rem; }}
.signature {{ max-height: 6rem; border-bottom: 1px solid #999; }}
</style>
</head>
<body>
{body}
</body>
</html>
"""


def _text(value) -> str:
    if value is None or value == "":
        return "-"
    if isinstance(value, datetime):
        return html.escape(value.strftime("%Y-%m-%d %H:%M"))
    return html.escape(str(value))


def _message_page(title: str, message: str, status_code: int) -> HTMLResponse:
    body = f"<h1>{html.escape(title)}</h1>\n<p>{html.escape(message)}</p>"
    return HTMLResponse(_PAGE.format(title=html.escape(title), body=body), status_code=status_code)


def render_snapshot(snapshot: ReportSnapshot) -> str:
    """Render *snapshot* as a standalone HTML page. Every value is escaped."""
    parts = []
    if snapshot.logo_url:
        logo = html.escape(snapshot.logo_url)
        parts.append(f'<img class="logo" src="{logo}" alt="Company logo">')
    parts.append(f"<h1>{_text(snapshot.title)}</h1>")
    parts.append("<dl>")
    for label, value in (
        ("Status", snapshot.status),
        ("Location", snapshot.location_name),
        ("Unit", snapshot.unit),
        ("Technician", snapshot.author_name),
        ("License", snapshot.license_number),
        ("Time in", snapshot.time_in),
        ("Time out", snapshot.time_out),
        ("Last updated", snapshot.updated_at),
        ("Customer", snapshot.customer_name),
    ):
        parts.append(f"<dt>{label}</dt><dd>{_text(value)}</dd>")
    parts.append("</dl>")
    parts.append(f"<h2>Description</h2>\n<p>{_text(snapshot.description)}</p>")
    parts.append(f"<h2>Comments</h2>\n<p>{_text(snapshot.comments)}</p>")
    for label, url in (
        ("Technician signature", snapshot.technician_signature_url),
        ("Customer signature", snapshot.customer_signature_url),
    ):
        if url:
            parts.append(
                f'<h3>{label}</h3>\n<img class="signature" src="{html.escape(url)}" alt="{label}">'
            )
    return _PAGE.format(title=_text(snapshot.title), body="\n".join(parts))


@router.get(
    "/reports/share/{token}",
    response_class=HTMLResponse,
    summary="Read-only report view for a share link",
)
async def view_shared_report(request: Request, token: str):
    try:
        snapshot = await request.app.state.shares.resolve(token)
    except (TokenNotFound, Revoked):
        return _message_page("Link unavailable", "Invalid or revoked link", 404)
    except Expired:
        return _message_page("Link expired", "This link has expired", 410)
    except NotFound:
        return _message_page("Report not found", "Report not found", 404)
    return HTMLResponse(render_snapshot(snapshot))
