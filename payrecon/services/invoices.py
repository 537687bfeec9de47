from __future__ import annotations

import html
import logging
from decimal import Decimal
from pathlib import Path

from payrecon.models import Transaction


logger = logging.getLogger(__name__)


def format_idr(amount) -> str:
    value = Decimal(str(amount or 0)).quantize(Decimal("1"))
    # Indonesian grouping uses dots: Rp 150.000
    return "Rp " + f"{int(value):,}".replace(",", ".")


def _build_invoice_html(tx: Transaction) -> str:
    esc = html.escape
    issued = tx.updated_at.strftime("%d %B %Y %H:%M") if tx.updated_at else ""
    return f"""
    <!doctype html>
    <html lang="id">
    <head><meta charset="utf-8"><title>Invoice {esc(tx.transaction_code)}</title></head>
    <body style="font-family: Arial, sans-serif; color: #0f172a; max-width: 640px; margin: 24px auto;">
      <h2 style="margin: 0 0 4px;">DIGIPRO - Invoice</h2>
      <p style="margin: 0 0 16px; color: #475569;">{esc(issued)}</p>
      <table style="width: 100%; border-collapse: collapse;">
        <tr><td>No. Transaksi</td><td><strong>{esc(tx.transaction_code)}</strong></td></tr>
        <tr><td>Pelanggan</td><td>{esc(tx.customer_name or "")}</td></tr>
        <tr><td>Metode</td><td>{esc(tx.payment_method or "-")}</td></tr>
        <tr><td>Total</td><td><strong>{esc(format_idr(tx.total_amount))}</strong></td></tr>
        <tr><td>Status</td><td><strong>LUNAS</strong></td></tr>
      </table>
    </body>
    </html>
    """.strip()


class InvoiceGenerator:
    def __init__(self, output_dir: str | Path, url_prefix: str = "/invoices"):
        self.output_dir = Path(output_dir)
        self.url_prefix = url_prefix.rstrip("/")

    def generate(self, tx: Transaction) -> str:
        self.output_dir.mkdir(parents=True, exist_ok=True)
        filename = f"invoice-{tx.transaction_code}.html"
        path = self.output_dir / filename
        path.write_text(_build_invoice_html(tx), encoding="utf-8")
        logger.info("Invoice for %s written to %s", tx.transaction_code, path)
        return f"{self.url_prefix}/{filename}"
