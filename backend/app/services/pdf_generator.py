"""
PDF Generator Service for Leasehold.

Renders the executed lease agreement: parties, terms, clauses, signatures,
renewal addenda and the deposit ledger.
"""

import io
from datetime import datetime
from typing import Any, Optional

from reportlab.lib import colors
from reportlab.lib.pagesizes import letter
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import inch
from reportlab.platypus import (
    SimpleDocTemplate, Paragraph, Spacer, Table, TableStyle, HRFlowable
)
from reportlab.lib.enums import TA_CENTER

from app.models.enums import DocumentType, PartyRole
from app.models.lease import Lease

RULE_COLOR = colors.HexColor('#e0e0e0')


def format_cents(amount_cents: Optional[int]) -> str:
    if amount_cents is None:
        return "N/A"
    return f"${amount_cents / 100:,.2f}"


class PDFGenerator:
    """Generates the executed lease document."""

    def __init__(self):
        self.styles = getSampleStyleSheet()
        self._setup_custom_styles()

    def _setup_custom_styles(self):
        """Add custom paragraph styles."""
        self.styles.add(ParagraphStyle(
            name='LeaseTitle',
            parent=self.styles['Heading1'],
            fontSize=22,
            spaceAfter=24,
            alignment=TA_CENTER,
            textColor=colors.HexColor('#1a1a2e'),
        ))
        self.styles.add(ParagraphStyle(
            name='LeaseSubtitle',
            parent=self.styles['Normal'],
            fontSize=11,
            spaceAfter=18,
            alignment=TA_CENTER,
            textColor=colors.HexColor('#666666'),
        ))
        self.styles.add(ParagraphStyle(
            name='SectionHeader',
            parent=self.styles['Heading2'],
            fontSize=13,
            spaceBefore=18,
            spaceAfter=8,
            textColor=colors.HexColor('#1a1a2e'),
        ))
        self.styles.add(ParagraphStyle(
            name='Disclaimer',
            parent=self.styles['Normal'],
            fontSize=8,
            textColor=colors.HexColor('#888888'),
            alignment=TA_CENTER,
            spaceBefore=20,
        ))

    def _section(self, story: list, title: str) -> None:
        story.append(Paragraph(title, self.styles['SectionHeader']))
        story.append(HRFlowable(width="100%", thickness=1, color=RULE_COLOR))

    def _field_table(self, rows: list[list[str]]) -> Table:
        table = Table(rows, colWidths=[2.2*inch, 4.3*inch])
        table.setStyle(TableStyle([
            ('FONTNAME', (0, 0), (0, -1), 'Helvetica-Bold'),
            ('FONTSIZE', (0, 0), (-1, -1), 10),
            ('TEXTCOLOR', (0, 0), (0, -1), colors.HexColor('#666666')),
            ('VALIGN', (0, 0), (-1, -1), 'TOP'),
            ('BOTTOMPADDING', (0, 0), (-1, -1), 6),
        ]))
        return table

    def _grid_table(self, rows: list[list[str]], col_widths: list[float]) -> Table:
        table = Table(rows, colWidths=col_widths)
        table.setStyle(TableStyle([
            ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
            ('FONTSIZE', (0, 0), (-1, -1), 9),
            ('BACKGROUND', (0, 0), (-1, 0), colors.HexColor('#1a1a2e')),
            ('TEXTCOLOR', (0, 0), (-1, 0), colors.white),
            ('VALIGN', (0, 0), (-1, -1), 'MIDDLE'),
            ('GRID', (0, 0), (-1, -1), 0.5, RULE_COLOR),
            ('BOTTOMPADDING', (0, 0), (-1, -1), 6),
            ('TOPPADDING', (0, 0), (-1, -1), 6),
        ]))
        return table

    def generate_lease_document(self, lease: Lease) -> bytes:
        """
        Generate the PDF of an executed lease.

        Args:
            lease: Fully loaded lease aggregate

        Returns:
            PDF bytes
        """
        buffer = io.BytesIO()
        doc = SimpleDocTemplate(
            buffer,
            pagesize=letter,
            rightMargin=0.75*inch,
            leftMargin=0.75*inch,
            topMargin=0.75*inch,
            bottomMargin=0.75*inch,
            title=lease.title or "Residential Lease Agreement",
        )

        story: list = []

        story.append(Paragraph("Residential Lease Agreement", self.styles['LeaseTitle']))
        story.append(Paragraph(lease.title or "", self.styles['LeaseSubtitle']))

        # Parties
        self._section(story, "PARTIES & PROPERTY")
        listing = lease.listing
        story.append(self._field_table([
            ["Landlord:", self._person(lease.landlord)],
            ["Tenant:", self._person(lease.tenant)],
            ["Property:", listing.title if listing else str(lease.property_id)],
            ["Address:", ", ".join(p for p in (listing.address, listing.city) if p) if listing else "N/A"],
            ["Lease ID:", str(lease.id)],
        ]))

        # Terms
        self._section(story, "TERMS")
        utilities = lease.utilities or {}
        story.append(self._field_table([
            ["Start Date:", self._format_date(lease.start_date)],
            ["End Date:", self._format_date(lease.end_date)],
            ["Rent:", f"{format_cents(lease.rent_amount_cents)} ({lease.rent_frequency.value})"],
            ["Security Deposit:", format_cents(lease.security_deposit_cents)],
            ["Late Fee:", format_cents(lease.late_fee_cents)],
            ["Grace Period:", f"{lease.grace_period_days} days" if lease.grace_period_days is not None else "N/A"],
            ["Payment Due Day:", str(lease.payment_due_day or "N/A")],
            ["Utilities Included:", ", ".join(utilities.get("included_in_rent", [])) or "None"],
            ["Utilities Paid by Tenant:", ", ".join(utilities.get("paid_by_tenant", [])) or "None"],
        ]))

        if lease.maintenance_terms:
            self._section(story, "MAINTENANCE")
            story.append(Paragraph(lease.maintenance_terms, self.styles['Normal']))

        if lease.custom_clauses:
            self._section(story, "ADDITIONAL CLAUSES")
            for number, clause in enumerate(lease.custom_clauses, start=1):
                story.append(Paragraph(f"{number}. {clause}", self.styles['Normal']))

        # Signatures
        self._section(story, "SIGNATURES")
        rows = [["Party", "Signed By", "Signed At", "Method"]]
        for party in (PartyRole.LANDLORD, PartyRole.TENANT):
            signature = lease.signature_for(party)
            if signature is None:
                rows.append([party.value.title(), "Not signed", "-", "-"])
                continue
            signer = lease.landlord if party == PartyRole.LANDLORD else lease.tenant
            method = signature.signature_type.value
            if signature.typed_text:
                method = f"{method}: {signature.typed_text}"
            rows.append([
                party.value.title(),
                self._person(signer),
                self._format_datetime(signature.signed_at),
                method,
            ])
        story.append(self._grid_table(rows, [1.1*inch, 2.2*inch, 1.6*inch, 1.6*inch]))

        addenda = [d for d in lease.documents if d.document_type == DocumentType.ADDENDUM]
        if addenda:
            self._section(story, "RENEWAL ADDENDA")
            rows = [["Addendum", "Date", "New End Date", "New Rent"]]
            for document in addenda:
                details = document.details or {}
                rows.append([
                    document.name,
                    self._format_datetime(document.uploaded_at),
                    details.get("new_end_date", "N/A"),
                    format_cents(details.get("new_rent_cents")),
                ])
            story.append(self._grid_table(rows, [2*inch, 1.5*inch, 1.5*inch, 1.5*inch]))

        if lease.deposit_transactions:
            self._section(story, "SECURITY DEPOSIT LEDGER")
            rows = [["Date", "Type", "Amount", "Description"]]
            for tx in lease.deposit_transactions:
                rows.append([
                    self._format_datetime(tx.occurred_at),
                    tx.transaction_type.value,
                    format_cents(tx.amount_cents),
                    tx.description or "",
                ])
            story.append(self._grid_table(rows, [1.5*inch, 1*inch, 1.2*inch, 2.8*inch]))

        story.append(Spacer(1, 0.5*inch))
        story.append(HRFlowable(width="100%", thickness=1, color=RULE_COLOR))
        story.append(Paragraph(
            f"Status: {lease.status.value}. Generated by Leasehold on "
            f"{datetime.utcnow().strftime('%Y-%m-%d %H:%M UTC')}",
            self.styles['Disclaimer']
        ))

        doc.build(story)
        buffer.seek(0)
        return buffer.read()

    def _person(self, user: Any) -> str:
        if user is None:
            return "N/A"
        if user.full_name:
            return f"{user.full_name} <{user.email}>"
        return user.email

    def _format_date(self, value: Any) -> str:
        if value is None:
            return "N/A"
        return value.isoformat()

    def _format_datetime(self, dt: Any) -> str:
        """Format datetime for display."""
        if dt is None:
            return "N/A"
        if isinstance(dt, str):
            return dt[:19].replace("T", " ")
        if hasattr(dt, 'strftime'):
            return dt.strftime("%Y-%m-%d %H:%M")
        return str(dt)


def get_pdf_generator() -> PDFGenerator:
    """Get PDF generator instance."""
    return PDFGenerator()
