# registration_service/services/export.py
from io import BytesIO
from typing import Optional

import pandas as pd
from sqlalchemy.orm import Session

from registration_service import crud

INDIVIDUAL_COLUMNS = [
    "Tracking Number",
    "Full Name",
    "Phone Number",
    "Email",
    "Gender",
    "State",
    "LGA",
    "Payment Status",
    "Admin Verified",
    "Amount",
    "Registration Date",
    "Checked In",
    "Check-In Time",
    "Checked In By",
]

SCHOOL_COLUMNS = [
    "Tracking Number",
    "School Name",
    "Contact Name",
    "Contact Phone",
    "Email",
    "Categories",
    "Participants",
    "Payment Status",
    "Admin Verified",
    "Amount",
    "Registration Date",
    "Group Pass Checked In",
]


def _format_date(value) -> str:
    return value.strftime("%Y-%m-%d %H:%M") if value else ""


def _individual_rows(registrations) -> list:
    rows = []
    for registration in registrations:
        ticket = next((t for t in registration.tickets if t.holder_key == "MAIN"), None)
        rows.append(
            {
                "Tracking Number": registration.tracking_number,
                "Full Name": registration.full_name,
                "Phone Number": registration.phone_number,
                "Email": registration.email or "",
                "Gender": registration.gender or "",
                "State": registration.state or "",
                "LGA": registration.lga or "",
                "Payment Status": registration.payment_status,
                "Admin Verified": "Yes" if registration.admin_verified else "No",
                "Amount": registration.amount_due,
                "Registration Date": _format_date(registration.created_at),
                "Checked In": "Yes" if ticket is not None and ticket.checked_in else "No",
                "Check-In Time": _format_date(ticket.checked_in_at) if ticket else "",
                "Checked In By": (ticket.checked_in_by or "") if ticket else "",
            }
        )
    return rows


def _school_rows(registrations) -> list:
    rows = []
    for registration in registrations:
        group_pass = next((t for t in registration.tickets if t.holder_key == "GROUP"), None)
        rows.append(
            {
                "Tracking Number": registration.tracking_number,
                "School Name": registration.school_name,
                "Contact Name": registration.contact_name,
                "Contact Phone": registration.contact_phone,
                "Email": registration.contact_email or "",
                "Categories": "; ".join(
                    s.category.name for s in registration.category_selections
                ),
                "Participants": len(registration.participants),
                "Payment Status": registration.payment_status,
                "Admin Verified": "Yes" if registration.admin_verified else "No",
                "Amount": registration.amount_due,
                "Registration Date": _format_date(registration.created_at),
                "Group Pass Checked In": "Yes"
                if group_pass is not None and group_pass.checked_in
                else "No",
            }
        )
    return rows


def export_registrations_csv(
    db: Session, *, kind: str = "individual", status_filter: Optional[str] = None
) -> BytesIO:
    """Read-only CSV dump of one registration table."""
    if kind == "school":
        registrations = crud.school_registration.get_all_for_export(db, status_filter=status_filter)
        df = pd.DataFrame(_school_rows(registrations), columns=SCHOOL_COLUMNS)
    else:
        registrations = crud.individual_registration.get_all_for_export(
            db, status_filter=status_filter
        )
        df = pd.DataFrame(_individual_rows(registrations), columns=INDIVIDUAL_COLUMNS)

    output = BytesIO()
    df.to_csv(output, index=False)
    output.seek(0)
    return output
