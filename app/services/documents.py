"""Rental agreement document generation and PDF rendering."""
from __future__ import annotations

import hashlib
import re
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from app.models.lease import Lease

DOCUMENT_TITLE = "RESIDENTIAL TENANCY AGREEMENT"


@dataclass(frozen=True)
class AgreementDoc:
    title: str
    content: str
    document_hash: str


def sha256_hex(s: str) -> str:
    return hashlib.sha256(s.encode("utf-8")).hexdigest()


def _format_money(amount: Decimal | float | int | None, currency: str | None) -> str:
    if amount is None:
        return "[Monthly Rent]"
    return f"{currency or 'MYR'} {Decimal(str(amount)):,.2f}"


def _format_date(d: date | None, placeholder: str) -> str:
    return d.strftime("%B %d, %Y") if d else placeholder


def build_lease_agreement(lease: Lease, version: int = 1) -> AgreementDoc:
    """Render the canonical agreement text for a lease.

    The text is kept free of signature data so the hash stays stable across
    signing; signatures are recorded on the agreement row and only filled into
    the rendered copy.
    """
    prop = lease.property
    landlord = lease.landlord
    tenant = lease.tenant
    landlord_name = (landlord.name if landlord else "").strip() or "[Landlord Name]"
    tenant_name = (tenant.name if tenant else "").strip() or "[Tenant Name]"
    address = ", ".join(p for p in [prop.address if prop else None, prop.city if prop else None] if p) or "[Property Address]"
    title = prop.title if prop else "[Property]"
    start = _format_date(lease.start_date, "[Start Date]")
    end = _format_date(lease.end_date, "[End Date]")
    rent = _format_money(lease.rent_amount, lease.currency_code)

    content = f"""{DOCUMENT_TITLE}
Lease reference: {lease.id}
Document version: {version}

1. PARTIES
This Tenancy Agreement is made between {landlord_name} ("Landlord") and {tenant_name} ("Tenant").

2. PREMISES
The Landlord lets to the Tenant the property "{title}" located at: {address} (the "Premises").

3. TERM
The tenancy begins on {start} and ends on {end}, unless terminated earlier in accordance with this Agreement.

4. RENT
The Tenant shall pay a monthly rent of {rent}, payable in advance on the first day of each month through the RentVerse platform.

5. USE OF PREMISES
The Tenant shall use the Premises as a private residence only and shall not sublet or assign any part of the Premises without the Landlord's written consent.

6. MAINTENANCE
The Tenant shall keep the Premises in good and tenantable condition, fair wear and tear excepted. The Landlord remains responsible for structural repairs.

7. ELECTRONIC SIGNATURES
Both parties agree that signing this Agreement electronically on RentVerse is legally binding. The Landlord signs first; the Agreement is complete once the Tenant has signed.

SIGNATURES (ELECTRONIC)
Landlord: ________________________   Date: __________
Tenant: ________________________   Date: __________
"""
    return AgreementDoc(title=DOCUMENT_TITLE, content=content, document_hash=sha256_hex(content))


def fill_signature_in_content(content: str, party: str, signer_name: str, signed_date: str) -> str:
    """Replace the blank signature line for party ("Landlord" or "Tenant") with the signer's name and date."""
    pattern = rf"{party}:\s*_{{10,}}\s+Date:\s*_{{10,}}"
    return re.sub(pattern, f"{party}: {signer_name}   Date: {signed_date}", content, count=1)


def _escape_for_reportlab(s: str) -> str:
    """Escape text for ReportLab Paragraph (XML-like markup)."""
    return (
        s.replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
    )


def agreement_content_to_pdf(title: str, content: str) -> bytes:
    """Generate a PDF from agreement title and content using reportlab. Content wraps to page width and is justified."""
    from io import BytesIO
    from reportlab.lib.pagesizes import A4
    from reportlab.lib.styles import getSampleStyleSheet
    from reportlab.lib.enums import TA_JUSTIFY
    from reportlab.lib.units import inch
    from reportlab.platypus import SimpleDocTemplate, Paragraph, Spacer

    buf = BytesIO()
    doc = SimpleDocTemplate(
        buf,
        pagesize=A4,
        leftMargin=0.75 * inch,
        rightMargin=0.75 * inch,
        topMargin=0.75 * inch,
        bottomMargin=0.75 * inch,
    )
    styles = getSampleStyleSheet()
    title_style = styles["Title"]
    body_style = styles["Normal"].clone("JustifiedBody", alignment=TA_JUSTIFY, spaceAfter=6)

    story = [Paragraph(_escape_for_reportlab(title.replace("\n", " ")), title_style), Spacer(1, 0.2 * inch)]

    # First line repeats the title
    for line in content.splitlines()[1:]:
        line = line.strip()
        if line:
            story.append(Paragraph(_escape_for_reportlab(line), body_style))
        else:
            story.append(Spacer(1, 0.12 * inch))

    doc.build(story)
    return buf.getvalue()
