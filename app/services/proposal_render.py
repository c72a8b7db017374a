"""
Proposal downloads: a DOCX proposal document and an XLSX investment sheet.

Both renderers return a BytesIO buffer ready for Flask send_file. Money
columns arrive in cents and are printed in whole currency units.
"""

import io
from datetime import datetime, timezone

from docx import Document
from docx.shared import Pt
from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter

HEADER_FILL = PatternFill(start_color="DE3403", end_color="DE3403", fill_type="solid")
HEADER_FONT = Font(color="FFFFFF", bold=True, size=11)
TOTAL_FONT = Font(bold=True, size=11)
THIN_BORDER = Border(
    left=Side(style="thin"),
    right=Side(style="thin"),
    top=Side(style="thin"),
    bottom=Side(style="thin"),
)

DOCX_MIMETYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
XLSX_MIMETYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def money(value):
    return f"{(value or 0):,.2f}"


def _apply_header_style(ws, row: int, col_count: int) -> None:
    for col in range(1, col_count + 1):
        cell = ws.cell(row=row, column=col)
        cell.fill = HEADER_FILL
        cell.font = HEADER_FONT
        cell.border = THIN_BORDER
        cell.alignment = Alignment(horizontal="center", vertical="center", wrap_text=True)


def _auto_width(ws) -> None:
    """Auto-size column widths based on content (capped at 60 chars)."""
    for col in ws.columns:
        max_len = 0
        col_letter = get_column_letter(col[0].column)
        for cell in col:
            if cell.value:
                max_len = max(max_len, min(len(str(cell.value)), 60))
        ws.column_dimensions[col_letter].width = max(max_len + 4, 12)


# ═══════════════════════════════════════════════════════════════
# XLSX
# ═══════════════════════════════════════════════════════════════
def render_xlsx(proposal, project) -> io.BytesIO:
    wb = Workbook()

    # ── Sheet 1: Investment ──────────────────────────────────────
    ws = wb.active
    ws.title = "Investment"
    ws.merge_cells("A1:D1")
    ws["A1"] = f"Proposal v{proposal.version} - {project.name}"
    ws["A1"].font = Font(size=16, bold=True)
    ws["A2"] = f"Generated: {datetime.now(timezone.utc).strftime('%Y-%m-%d %H:%M UTC')}"
    ws["A2"].font = Font(size=10, italic=True, color="666666")

    row = 4
    headers = ["Phase", "Hours", "Value", "Deliverables"]
    for col, header in enumerate(headers, 1):
        ws.cell(row=row, column=col, value=header)
    _apply_header_style(ws, row, len(headers))

    for phase in (proposal.investment or {}).get("phases", []):
        row += 1
        values = [
            phase.get("name"),
            phase.get("hours") or 0,
            phase.get("value") or 0,
            ", ".join(d for d in phase.get("deliverables") or [] if d),
        ]
        for col, value in enumerate(values, 1):
            cell = ws.cell(row=row, column=col, value=value)
            cell.border = THIN_BORDER
        ws.cell(row=row, column=3).number_format = "#,##0.00"

    row += 2
    totals = [
        ("Total hours", proposal.total_hours),
        ("Hourly rate", proposal.hourly_rate / 100),
        ("Subtotal", proposal.subtotal / 100),
        ("Discount (%)", proposal.discount),
        ("Total", proposal.total_value / 100),
    ]
    for label, value in totals:
        ws.cell(row=row, column=1, value=label).font = TOTAL_FONT
        ws.cell(row=row, column=3, value=value).number_format = "#,##0.00"
        row += 1
    _auto_width(ws)

    # ── Sheet 2: Schedule ────────────────────────────────────────
    ws2 = wb.create_sheet("Schedule")
    headers = ["Phase", "Start", "End", "Hours", "Working days", "Milestones"]
    for col, header in enumerate(headers, 1):
        ws2.cell(row=1, column=col, value=header)
    _apply_header_style(ws2, 1, len(headers))
    for index, entry in enumerate(proposal.schedule or [], start=2):
        values = [
            entry.get("phase_name"),
            entry.get("start_date"),
            entry.get("end_date"),
            entry.get("hours"),
            entry.get("working_days"),
            "; ".join(entry.get("milestones") or []),
        ]
        for col, value in enumerate(values, 1):
            ws2.cell(row=index, column=col, value=value).border = THIN_BORDER
    _auto_width(ws2)

    buf = io.BytesIO()
    wb.save(buf)
    buf.seek(0)
    return buf


# ═══════════════════════════════════════════════════════════════
# DOCX
# ═══════════════════════════════════════════════════════════════
def _table(doc, headers, rows):
    table = doc.add_table(rows=1, cols=len(headers))
    table.style = "Table Grid"
    for cell, header in zip(table.rows[0].cells, headers):
        cell.text = header
        for run in cell.paragraphs[0].runs:
            run.bold = True
    for values in rows:
        cells = table.add_row().cells
        for cell, value in zip(cells, values):
            cell.text = "" if value is None else str(value)
    return table


def render_docx(proposal, project) -> io.BytesIO:
    doc = Document()
    doc.styles["Normal"].font.size = Pt(11)

    doc.add_heading(f"Commercial Proposal - {project.name}", level=0)
    client = project.client
    if client:
        doc.add_paragraph(f"Client: {client.name}" + (f" ({client.company})" if client.company else ""))
    doc.add_paragraph(f"Version {proposal.version} | Valid for {proposal.validity} days")

    if proposal.executive_summary:
        doc.add_heading("Executive Summary", level=1)
        doc.add_paragraph(proposal.executive_summary)

    scope = proposal.scope_section or {}
    if scope:
        doc.add_heading("Scope", level=1)
        if scope.get("objective"):
            doc.add_paragraph(scope["objective"])
        for feature in scope.get("features") or []:
            doc.add_paragraph(str(feature), style="List Bullet")
        if scope.get("exclusions"):
            doc.add_heading("Out of scope", level=2)
            for item in scope["exclusions"]:
                doc.add_paragraph(str(item), style="List Bullet")

    if proposal.methodology:
        doc.add_heading("Methodology", level=1)
        doc.add_paragraph(proposal.methodology)

    tech = proposal.technical_info or {}
    if tech.get("stack"):
        doc.add_heading("Technical Information", level=1)
        doc.add_paragraph("Stack: " + ", ".join(str(s) for s in tech["stack"]))
        if tech.get("architecture"):
            doc.add_paragraph(tech["architecture"])

    doc.add_heading("Investment", level=1)
    _table(doc, ["Phase", "Hours", "Value"], [
        (p.get("name"), p.get("hours"), money(p.get("value")))
        for p in (proposal.investment or {}).get("phases", [])
    ])
    doc.add_paragraph(f"Total hours: {proposal.total_hours}")
    doc.add_paragraph(f"Hourly rate: {money(proposal.hourly_rate / 100)}")
    if proposal.discount:
        doc.add_paragraph(f"Discount: {proposal.discount}%")
    doc.add_paragraph(f"Total investment: {money(proposal.total_value / 100)}").runs[0].bold = True

    if proposal.schedule:
        doc.add_heading("Schedule", level=1)
        _table(doc, ["Phase", "Start", "End", "Working days"], [
            (s.get("phase_name"), s.get("start_date"), s.get("end_date"), s.get("working_days"))
            for s in proposal.schedule
        ])

    if proposal.payment_terms:
        doc.add_heading("Payment Terms", level=1)
        doc.add_paragraph(proposal.payment_terms)
    if proposal.terms_and_conditions:
        doc.add_heading("Terms and Conditions", level=1)
        for block in proposal.terms_and_conditions.split("\n\n"):
            doc.add_paragraph(block)

    buf = io.BytesIO()
    doc.save(buf)
    buf.seek(0)
    return buf
