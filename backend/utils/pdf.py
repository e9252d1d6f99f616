"""
utils/pdf.py — Invoice PDF rendering using ReportLab.

Builds a firm-branded invoice (header, bill-to block, line items, totals)
in memory and returns the PDF bytes; nothing is written to disk.
"""

from io import BytesIO
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER, TA_LEFT, TA_RIGHT
from reportlab.lib.pagesizes import LETTER
from reportlab.lib.styles import ParagraphStyle
from reportlab.lib.units import mm
from reportlab.platypus import (
    SimpleDocTemplate, Paragraph, Spacer, HRFlowable, Table, TableStyle
)


# ─── Colour palette ──────────────────────────────────────────────────────────

NAVY      = colors.HexColor("#0f1a2e")   # headings / firm name
BLUE      = colors.HexColor("#2563eb")   # accent lines and labels
GREY      = colors.HexColor("#64748b")   # sub-labels / muted text
LIGHTGREY = colors.HexColor("#e2e8f0")   # table borders / dividers
ZEBRA     = colors.HexColor("#f8fafc")
WHITE     = colors.white
BLACK     = colors.HexColor("#1e293b")   # body text


# ─── Style sheet ─────────────────────────────────────────────────────────────

def _build_styles():
    return {
        "firm_name": ParagraphStyle(
            "FirmName", fontName="Helvetica-Bold", fontSize=18,
            textColor=NAVY, alignment=TA_LEFT, spaceAfter=2,
        ),
        "doc_title": ParagraphStyle(
            "DocTitle", fontName="Helvetica-Bold", fontSize=20,
            textColor=BLUE, alignment=TA_RIGHT,
        ),
        "label": ParagraphStyle(
            "Label", fontName="Helvetica", fontSize=8, textColor=GREY,
        ),
        "value": ParagraphStyle(
            "Value", fontName="Helvetica-Bold", fontSize=9, textColor=BLACK, leading=12,
        ),
        "cell": ParagraphStyle(
            "Cell", fontName="Helvetica", fontSize=8.5, textColor=BLACK, leading=11,
        ),
        "cell_right": ParagraphStyle(
            "CellRight", fontName="Helvetica", fontSize=8.5, textColor=BLACK, alignment=TA_RIGHT,
        ),
        "head": ParagraphStyle(
            "Head", fontName="Helvetica-Bold", fontSize=8, textColor=WHITE,
        ),
        "head_right": ParagraphStyle(
            "HeadRight", fontName="Helvetica-Bold", fontSize=8, textColor=WHITE, alignment=TA_RIGHT,
        ),
        "total_label": ParagraphStyle(
            "TotalLabel", fontName="Helvetica-Bold", fontSize=10, textColor=NAVY, alignment=TA_RIGHT,
        ),
        "body": ParagraphStyle(
            "Body", fontName="Helvetica", fontSize=9, textColor=BLACK, leading=13,
        ),
        "footer": ParagraphStyle(
            "Footer", fontName="Helvetica", fontSize=7, textColor=GREY, alignment=TA_CENTER,
        ),
    }


# ─── Main generator ──────────────────────────────────────────────────────────

def render_invoice_pdf(invoice, client, items, firm_name: str, case=None) -> bytes:
    """
    Render an invoice to PDF.

    Args:
        invoice:   Invoice ORM object
        client:    Client ORM object (bill-to)
        items:     iterable of InvoiceItem ORM objects
        firm_name: shown in the header and footer
        case:      optional Case ORM object for the matter line

    Returns:
        The PDF document as bytes.
    """
    buffer = BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=LETTER,
        topMargin=18 * mm,
        bottomMargin=18 * mm,
        leftMargin=20 * mm,
        rightMargin=20 * mm,
        title=f"Invoice {invoice.invoice_number}",
        author=firm_name,
    )

    styles = _build_styles()
    story  = []
    W      = LETTER[0] - 40 * mm   # usable page width

    # ── Header: firm name left, INVOICE right ────────────────────────────────
    header = Table(
        [[Paragraph(escape(firm_name), styles["firm_name"]), Paragraph("INVOICE", styles["doc_title"])]],
        colWidths=[W * 0.6, W * 0.4],
    )
    header.setStyle(TableStyle([
        ("VALIGN",        (0, 0), (-1, -1), "BOTTOM"),
        ("LEFTPADDING",   (0, 0), (-1, -1), 0),
        ("RIGHTPADDING",  (0, 0), (-1, -1), 0),
    ]))
    story.append(header)
    story.append(Spacer(1, 2 * mm))
    story.append(HRFlowable(width="100%", thickness=2, color=BLUE, spaceAfter=4 * mm))

    # ── Meta: bill-to / number / dates / status ─────────────────────────────
    bill_to = [escape(client.full_name)]
    for line in (client.email, client.address,
                 ", ".join(p for p in (client.city, client.state, client.zip_code) if p)):
        if line:
            bill_to.append(escape(line))

    meta = [
        [
            Paragraph("BILL TO", styles["label"]),
            Paragraph("INVOICE #", styles["label"]),
            Paragraph("ISSUED", styles["label"]),
            Paragraph("DUE", styles["label"]),
            Paragraph("STATUS", styles["label"]),
        ],
        [
            Paragraph("<br/>".join(bill_to), styles["value"]),
            Paragraph(escape(invoice.invoice_number), styles["value"]),
            Paragraph(_fmt_date(invoice.issue_date), styles["value"]),
            Paragraph(_fmt_date(invoice.due_date), styles["value"]),
            Paragraph(invoice.status.value.upper(), styles["value"]),
        ],
    ]
    meta_table = Table(meta, colWidths=[W * 0.36, W * 0.16, W * 0.16, W * 0.16, W * 0.16])
    meta_table.setStyle(TableStyle([
        ("VALIGN",        (0, 0), (-1, -1), "TOP"),
        ("LEFTPADDING",   (0, 0), (-1, -1), 0),
        ("TOPPADDING",    (0, 0), (-1, -1), 2),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 2),
    ]))
    story.append(meta_table)

    if case is not None:
        story.append(Spacer(1, 3 * mm))
        story.append(Paragraph(
            f"<b>Matter:</b> {escape(case.case_number)} — {escape(case.title)}", styles["body"]
        ))
    story.append(Spacer(1, 6 * mm))

    # ── Line items ───────────────────────────────────────────────────────────
    rows = [[
        Paragraph("DESCRIPTION", styles["head"]),
        Paragraph("HOURS", styles["head_right"]),
        Paragraph("RATE", styles["head_right"]),
        Paragraph("AMOUNT", styles["head_right"]),
    ]]
    for item in items:
        rows.append([
            Paragraph(escape(item.description or ""), styles["cell"]),
            Paragraph(f"{item.quantity:.2f}", styles["cell_right"]),
            Paragraph(_money(item.rate), styles["cell_right"]),
            Paragraph(_money(item.amount), styles["cell_right"]),
        ])
    if len(rows) == 1:
        rows.append([Paragraph("No line items.", styles["cell"]), "", "", ""])

    items_table = Table(rows, colWidths=[W * 0.55, W * 0.13, W * 0.15, W * 0.17], repeatRows=1)
    items_table.setStyle(TableStyle([
        ("BACKGROUND",     (0, 0), (-1, 0), NAVY),
        ("ROWBACKGROUNDS", (0, 1), (-1, -1), [WHITE, ZEBRA]),
        ("LINEBELOW",      (0, 1), (-1, -1), 0.5, LIGHTGREY),
        ("VALIGN",         (0, 0), (-1, -1), "MIDDLE"),
        ("TOPPADDING",     (0, 0), (-1, -1), 4),
        ("BOTTOMPADDING",  (0, 0), (-1, -1), 4),
    ]))
    story.append(items_table)
    story.append(Spacer(1, 4 * mm))

    # ── Totals ───────────────────────────────────────────────────────────────
    totals = Table(
        [
            [Paragraph("Subtotal", styles["cell_right"]), Paragraph(_money(invoice.subtotal), styles["cell_right"])],
            [Paragraph("Tax", styles["cell_right"]), Paragraph(_money(invoice.tax), styles["cell_right"])],
            [Paragraph("Total", styles["total_label"]), Paragraph(_money(invoice.total), styles["total_label"])],
        ],
        colWidths=[W * 0.83, W * 0.17],
    )
    totals.setStyle(TableStyle([
        ("LINEABOVE",     (0, 2), (-1, 2), 1, NAVY),
        ("TOPPADDING",    (0, 0), (-1, -1), 3),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 3),
    ]))
    story.append(totals)

    if invoice.notes:
        story.append(Spacer(1, 6 * mm))
        story.append(Paragraph("<b>Notes</b>", styles["body"]))
        story.append(Paragraph(_nl_to_para(escape(invoice.notes)), styles["body"]))

    # ── Footer ───────────────────────────────────────────────────────────────
    story.append(Spacer(1, 10 * mm))
    story.append(HRFlowable(width="100%", thickness=0.5, color=LIGHTGREY))
    story.append(Spacer(1, 2 * mm))
    story.append(Paragraph(
        f"{escape(firm_name)} · Payment due by {_fmt_date(invoice.due_date)} · Thank you for your business",
        styles["footer"]
    ))

    doc.build(story)
    return buffer.getvalue()


# ─── Helpers ─────────────────────────────────────────────────────────────────

def _money(value) -> str:
    return f"${float(value or 0):,.2f}"


def _fmt_date(value) -> str:
    return value.strftime("%B %d, %Y") if value else "—"


def _nl_to_para(text: str) -> str:
    """Convert newlines to ReportLab <br/> tags."""
    return text.replace("\r\n", "<br/>").replace("\n", "<br/>")
