# Overview: PDF rendering (reportlab) for invoices, orders and franchise contracts.

from __future__ import annotations

import io
from datetime import date, datetime

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.pdfgen import canvas
from reportlab.platypus import Table, TableStyle


BRAND = "DRIV'N COOK"
PRIMARY = colors.HexColor("#c2410c")
DARK = colors.HexColor("#111827")
GRAY = colors.HexColor("#6b7280")
BORDER = colors.HexColor("#e5e7eb")


def _fmt_date(d) -> str:
    if not d:
        return "-"
    if isinstance(d, (datetime, date)):
        return d.strftime("%d/%m/%Y")
    return str(d)


def _money(cents) -> str:
    if cents is None:
        return "-"
    return f"{cents / 100:,.2f} EUR".replace(",", " ")


def _header(c, width, height, title: str, subtitle: str) -> None:
    c.setFillColor(PRIMARY)
    c.rect(0, height - 28 * mm, width, 28 * mm, stroke=0, fill=1)

    c.setFillColor(colors.white)
    c.setFont("Helvetica-Bold", 16)
    c.drawString(18 * mm, height - 16 * mm, BRAND)
    c.setFont("Helvetica", 9)
    c.drawString(18 * mm, height - 22 * mm, "Réseau de food trucks")

    c.setFont("Helvetica-Bold", 12)
    c.drawRightString(width - 18 * mm, height - 14 * mm, title)
    c.setFont("Helvetica", 9)
    c.drawRightString(width - 18 * mm, height - 20 * mm, subtitle)


def _footer(c, width) -> None:
    c.setFillColor(BORDER)
    c.rect(0, 0, width, 12 * mm, stroke=0, fill=1)
    c.setFillColor(GRAY)
    c.setFont("Helvetica", 8)
    c.drawString(18 * mm, 4 * mm, f"{BRAND} - Siège social, Paris")
    c.drawRightString(width - 18 * mm, 4 * mm, f"Généré le {_fmt_date(date.today())}")


def _party_block(c, x, y, heading: str, lines: list[str]) -> None:
    c.setFillColor(DARK)
    c.setFont("Helvetica-Bold", 11)
    c.drawString(x, y, heading)
    c.setFont("Helvetica", 9)
    for i, line in enumerate(l for l in lines if l):
        c.drawString(x, y - (6 + 5 * i) * mm, line[:80])


def _draw_table(c, data, col_widths, x, y, width, height) -> float:
    table = Table(data, colWidths=col_widths, hAlign="LEFT")
    table.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#f3f4f6")),
        ("TEXTCOLOR", (0, 0), (-1, 0), DARK),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("FONTSIZE", (0, 0), (-1, -1), 9),
        ("GRID", (0, 0), (-1, -1), 0.5, BORDER),
        ("VALIGN", (0, 0), (-1, -1), "TOP"),
        ("PADDING", (0, 0), (-1, -1), 6),
    ]))
    _, th = table.wrapOn(c, width - 36 * mm, height)
    table.drawOn(c, x, y - th)
    return y - th


def _franchise_lines(franchise) -> list[str]:
    if not franchise:
        return ["-"]
    return [
        franchise.business_name,
        franchise.address,
        f"{franchise.postal_code} {franchise.city}",
        f"SIRET {franchise.siret_number}",
        franchise.contact_email,
    ]


def render_invoice_pdf(invoice) -> bytes:
    """Render an Invoice PDF (no DB writes). Returns PDF bytes."""
    buf = io.BytesIO()
    c = canvas.Canvas(buf, pagesize=A4)
    width, height = A4

    _header(c, width, height, f"FACTURE {invoice.invoice_number}",
            f"Émise le {_fmt_date(invoice.issue_date)} - Échéance {_fmt_date(invoice.due_date)}")

    y = height - 40 * mm
    _party_block(c, 18 * mm, y, "Facturé à", _franchise_lines(invoice.franchise))
    _party_block(c, width / 2, y, "Statut", [invoice.payment_status,
                                             f"Payée le {_fmt_date(invoice.paid_date)}" if invoice.paid_date else ""])

    y -= 42 * mm
    data = [
        ["Description", "Montant"],
        [invoice.description, _money(invoice.amount_cents)],
    ]
    y = _draw_table(c, data, [130 * mm, 44 * mm], 18 * mm, y, width, height)

    c.setFont("Helvetica-Bold", 11)
    c.setFillColor(DARK)
    c.drawRightString(width - 18 * mm, y - 10 * mm, f"Total: {_money(invoice.amount_cents)}")

    _footer(c, width)
    c.showPage()
    c.save()

    pdf = buf.getvalue()
    buf.close()
    return pdf


def render_order_pdf(order) -> bytes:
    """Render an Order (purchase request) PDF. Returns PDF bytes."""
    buf = io.BytesIO()
    c = canvas.Canvas(buf, pagesize=A4)
    width, height = A4

    _header(c, width, height, f"BON DE COMMANDE {order.order_number}",
            f"Statut {order.status} - Date {_fmt_date(order.order_date)}")

    y = height - 40 * mm
    _party_block(c, 18 * mm, y, "Franchisé", _franchise_lines(order.franchise))
    _party_block(c, width / 2, y, "Livraison", [
        f"Souhaitée le {_fmt_date(order.requested_delivery_date)}",
        f"Livrée le {_fmt_date(order.actual_delivery_date)}" if order.actual_delivery_date else "",
    ])

    y -= 42 * mm
    data = [["Produit", "Entrepôt", "Qté", "Prix unitaire", "Total"]]
    for item in order.items:
        data.append([
            f"{item.product.name} ({item.product.sku})" if item.product else "-",
            item.warehouse.name if item.warehouse else "-",
            str(item.quantity),
            _money(item.unit_price_cents),
            _money(item.total_price_cents),
        ])
    if len(data) == 1:
        data.append(["(Aucun article)", "-", "-", "-", "-"])

    y = _draw_table(c, data, [62 * mm, 40 * mm, 14 * mm, 29 * mm, 29 * mm], 18 * mm, y, width, height)

    c.setFont("Helvetica-Bold", 11)
    c.setFillColor(DARK)
    c.drawRightString(width - 18 * mm, y - 10 * mm, f"Total: {_money(order.total_amount_cents)}")

    if order.notes:
        c.setFont("Helvetica-Bold", 10)
        c.drawString(18 * mm, y - 22 * mm, "Notes")
        c.setFont("Helvetica", 9)
        c.setFillColor(GRAY)
        c.drawString(18 * mm, y - 28 * mm, order.notes[:120])

    _footer(c, width)
    c.showPage()
    c.save()

    pdf = buf.getvalue()
    buf.close()
    return pdf


def render_contract_pdf(franchise) -> bytes:
    """Render the franchise contract summary. Returns PDF bytes."""
    buf = io.BytesIO()
    c = canvas.Canvas(buf, pagesize=A4)
    width, height = A4

    _header(c, width, height, "CONTRAT DE FRANCHISE", franchise.business_name)

    y = height - 40 * mm
    _party_block(c, 18 * mm, y, "Le franchisé", _franchise_lines(franchise))

    y -= 42 * mm
    data = [
        ["Clause", "Valeur"],
        ["Droit d'entrée", _money(franchise.entry_fee_cents)],
        ["Droit d'entrée réglé", "Oui" if franchise.entry_fee_paid else "Non"],
        ["Redevance sur le chiffre d'affaires", f"{franchise.royalty_rate:g} %"],
        ["Début du contrat", _fmt_date(franchise.contract_start_date)],
        ["Fin du contrat", _fmt_date(franchise.contract_end_date)],
    ]
    y = _draw_table(c, data, [100 * mm, 74 * mm], 18 * mm, y, width, height)

    c.setFont("Helvetica", 9)
    c.setFillColor(GRAY)
    c.drawString(18 * mm, y - 10 * mm, "Le franchisé s'engage à respecter les standards de la marque et les obligations financières ci-dessus.")
    c.drawString(18 * mm, y - 15 * mm, "Le franchiseur fournit support, formation et accompagnement.")

    c.setFillColor(DARK)
    c.drawString(18 * mm, y - 28 * mm, "Le franchisé")
    c.drawString(width / 2, y - 28 * mm, "Le franchiseur")
    c.drawString(width / 2, y - 33 * mm, BRAND)
    if franchise.user:
        c.drawString(18 * mm, y - 33 * mm, franchise.user.full_name)

    _footer(c, width)
    c.showPage()
    c.save()

    pdf = buf.getvalue()
    buf.close()
    return pdf
