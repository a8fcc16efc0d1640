"""Invoice PDF rendering."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from io import BytesIO

from reportlab.lib.colors import HexColor  # type: ignore
from reportlab.lib.pagesizes import A4  # type: ignore
from reportlab.pdfgen import canvas  # type: ignore

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class DocumentLine:
    description: str
    quantity: int
    unit_price: Decimal
    line_total: Decimal


@dataclass(frozen=True, slots=True)
class InvoiceDocument:
    """Everything printed on an invoice, detached from the ORM."""

    invoice_number: str
    status: str
    issue_date: datetime
    due_date: datetime
    account_name: str
    account_number: str
    lines: tuple[DocumentLine, ...]
    subtotal: Decimal
    platform_fee: Decimal
    total_amount: Decimal
    currency: str
    notes: str = ""

    @classmethod
    def from_model(cls, invoice) -> "InvoiceDocument":  # type: ignore
        return cls(
            invoice_number=invoice.invoice_number,
            status=invoice.get_status_display(),
            issue_date=invoice.issue_date,
            due_date=invoice.due_date,
            account_name=invoice.account.account_name,
            account_number=invoice.account.account_number,
            lines=tuple(
                DocumentLine(
                    description=item.description,
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                    line_total=item.line_total,
                )
                for item in invoice.items.all()
            ),
            subtotal=invoice.subtotal,
            platform_fee=invoice.platform_fee,
            total_amount=invoice.total_amount,
            currency=invoice.currency,
            notes=invoice.notes,
        )

    @property
    def filename(self) -> str:
        return f"{self.invoice_number}.pdf"


def _money(amount: Decimal, currency: str) -> str:
    return f"{amount:,.2f} {currency}"


def _date(value: datetime) -> str:
    return value.strftime("%d/%m/%Y")


class DocumentRenderer:
    """Draws an InvoiceDocument on a single A4 page (continued on more pages if needed)."""

    margin = 50
    row_height = 20

    primary_color = HexColor("#0F172A")
    accent_color = HexColor("#0D9488")
    muted_text = HexColor("#64748B")
    table_header_color = HexColor("#F0FDFA")
    border_color = HexColor("#E2E8F0")

    def render(self, document: InvoiceDocument) -> bytes:
        buffer = BytesIO()
        pdf_canvas = canvas.Canvas(buffer, pagesize=A4)
        pdf_canvas.setTitle(f"Factura {document.invoice_number}")
        width, height = A4

        y_position = self._draw_header(pdf_canvas, document, width, height)
        y_position = self._draw_bill_to(pdf_canvas, document, y_position)
        y_position = self._draw_table_header(pdf_canvas, width, y_position)

        columns = self._columns(width)
        pdf_canvas.setFont("Helvetica", 10)
        for line in document.lines:
            if y_position < self.margin + 120:
                pdf_canvas.showPage()
                y_position = self._draw_table_header(pdf_canvas, width, height - self.margin)
                pdf_canvas.setFont("Helvetica", 10)
            pdf_canvas.setFillColor(self.primary_color)
            pdf_canvas.drawString(columns[0], y_position, line.description[:60])
            pdf_canvas.drawRightString(columns[1], y_position, str(line.quantity))
            pdf_canvas.drawRightString(columns[2], y_position, _money(line.unit_price, document.currency))
            pdf_canvas.drawRightString(columns[3], y_position, _money(line.line_total, document.currency))
            pdf_canvas.setStrokeColor(self.border_color)
            pdf_canvas.line(self.margin, y_position - 6, width - self.margin, y_position - 6)
            y_position -= self.row_height

        y_position = self._draw_totals(pdf_canvas, document, width, y_position - 10)
        self._draw_footer(pdf_canvas, document, y_position)

        pdf_canvas.showPage()
        pdf_canvas.save()
        content = buffer.getvalue()
        logger.debug(f"Rendered {document.filename} ({len(content)} bytes)")
        return content

    def _columns(self, width: float) -> list[float]:
        return [self.margin + 10, self.margin + 320, self.margin + 410, width - self.margin - 10]

    def _draw_header(self, pdf_canvas, document: InvoiceDocument, width: float, height: float) -> float:
        header_height = 100
        pdf_canvas.setFillColor(self.primary_color)
        pdf_canvas.rect(0, height - header_height, width, header_height, fill=1, stroke=0)

        pdf_canvas.setFont("Helvetica-Bold", 20)
        pdf_canvas.setFillColor(HexColor("#FFFFFF"))
        pdf_canvas.drawString(self.margin, height - 55, "Factura Petcare")

        pdf_canvas.setFont("Helvetica", 10)
        pdf_canvas.setFillColor(HexColor("#CCFBF1"))
        pdf_canvas.drawRightString(width - self.margin, height - 45, f"Factura #: {document.invoice_number}")
        pdf_canvas.drawRightString(width - self.margin, height - 60, f"Fecha de Emisión: {_date(document.issue_date)}")
        pdf_canvas.drawRightString(
            width - self.margin, height - 75, f"Fecha de Vencimiento: {_date(document.due_date)}"
        )
        return height - header_height - 30

    def _draw_bill_to(self, pdf_canvas, document: InvoiceDocument, top: float) -> float:
        pdf_canvas.setFillColor(self.primary_color)
        pdf_canvas.setFont("Helvetica-Bold", 11)
        pdf_canvas.drawString(self.margin, top, "Facturado a:")
        pdf_canvas.setFont("Helvetica", 10)
        pdf_canvas.setFillColor(self.muted_text)
        pdf_canvas.drawString(self.margin, top - 16, document.account_name)
        pdf_canvas.drawString(self.margin, top - 30, f"Cuenta {document.account_number}")
        pdf_canvas.drawString(self.margin, top - 44, f"Estado: {document.status}")
        return top - 74

    def _draw_table_header(self, pdf_canvas, width: float, top: float) -> float:
        header_height = 24
        pdf_canvas.setFillColor(self.table_header_color)
        pdf_canvas.rect(self.margin, top - header_height, width - 2 * self.margin, header_height, fill=1, stroke=0)

        columns = self._columns(width)
        pdf_canvas.setFillColor(self.primary_color)
        pdf_canvas.setFont("Helvetica-Bold", 10)
        pdf_canvas.drawString(columns[0], top - 16, "Descripción")
        pdf_canvas.drawRightString(columns[1], top - 16, "Cantidad")
        pdf_canvas.drawRightString(columns[2], top - 16, "Precio")
        pdf_canvas.drawRightString(columns[3], top - 16, "Total")
        return top - header_height - 18

    def _draw_totals(self, pdf_canvas, document: InvoiceDocument, width: float, top: float) -> float:
        label_x = width - self.margin - 170
        value_x = width - self.margin - 10
        rows = (
            ("Subtotal", document.subtotal),
            ("Comisión Plataforma", document.platform_fee),
        )
        pdf_canvas.setFont("Helvetica", 10)
        pdf_canvas.setFillColor(self.muted_text)
        for label, amount in rows:
            pdf_canvas.drawString(label_x, top, label)
            pdf_canvas.drawRightString(value_x, top, _money(amount, document.currency))
            top -= 16

        pdf_canvas.setFont("Helvetica-Bold", 12)
        pdf_canvas.setFillColor(self.accent_color)
        pdf_canvas.drawString(label_x, top - 4, "Total a Pagar")
        pdf_canvas.drawRightString(value_x, top - 4, _money(document.total_amount, document.currency))
        return top - 40

    def _draw_footer(self, pdf_canvas, document: InvoiceDocument, top: float) -> None:
        pdf_canvas.setFillColor(self.muted_text)
        pdf_canvas.setFont("Helvetica", 9)
        for note_line in [line for line in document.notes.splitlines() if line.strip()][:6]:
            pdf_canvas.drawString(self.margin, top, note_line[:100])
            top -= 12
        pdf_canvas.setFont("Helvetica-Oblique", 10)
        pdf_canvas.drawString(self.margin, self.margin, "Gracias por confiar en Petcare.")


document_renderer = DocumentRenderer()
