"""Column layouts for the xlsx export endpoint."""

from __future__ import annotations

from dataclasses import dataclass

from src.app.crm.schemas import EntityKind


@dataclass(frozen=True)
class ExportLayout:
    kind: EntityKind
    sheet_title: str
    filename: str
    columns: tuple[tuple[str, str], ...]


_PIPELINE_COLUMNS = (
    ("Company Name", "company_name"),
    ("Sector", "sector"),
    ("Custom Sector", "custom_sector"),
    ("Transaction Type", "transaction_type"),
    ("Custom Transaction Type", "custom_transaction_type"),
    ("Client POC", "client_poc"),
    ("Phone Number", "phone_number"),
    ("Email", "email_id"),
)

EXPORT_LAYOUTS: dict[str, ExportLayout] = {
    "leads": ExportLayout(
        kind=EntityKind.LEAD,
        sheet_title="Leads",
        filename="leads.xlsx",
        columns=_PIPELINE_COLUMNS + (
            ("Source Type", "source_type"),
            ("Inbound Source", "inbound_source"),
            ("Custom Inbound Source", "custom_inbound_source"),
            ("Outbound Source", "outbound_source"),
            ("Acceptance Stage", "acceptance_stage"),
            ("Status", "status"),
            ("Assigned To", "assigned_to"),
            ("Lead Assignment", "lead_assignment"),
            ("Co-Lead Assignment", "co_lead_assignment"),
            ("Converted", "is_converted"),
            ("Last Contacted", "last_contacted"),
            ("Notes", "notes"),
            ("Created At", "created_at"),
        ),
    ),
    "clients": ExportLayout(
        kind=EntityKind.CLIENT,
        sheet_title="Clients",
        filename="clients.xlsx",
        columns=_PIPELINE_COLUMNS + (
            ("Status", "status"),
            ("Assigned To", "assigned_to"),
            ("Lead Assignment", "lead_assignment"),
            ("Co-Lead Assignment", "co_lead_assignment"),
            ("Control Sheet", "control_sheet_link"),
            ("Last Contacted", "last_contacted"),
            ("Notes", "notes"),
            ("Created At", "created_at"),
        ),
    ),
    "partners": ExportLayout(
        kind=EntityKind.PARTNER,
        sheet_title="Partners",
        filename="partners.xlsx",
        columns=(
            ("Name", "name"),
            ("Email", "email"),
            ("Phone", "phone"),
            ("Website", "website"),
            ("Commission Rate", "commission_rate"),
            ("Active", "is_active"),
        ),
    ),
    "fund-tracker": ExportLayout(
        kind=EntityKind.FUND,
        sheet_title="Fund Tracker",
        filename="fund-tracker.xlsx",
        columns=(
            ("Fund Name", "fund_name"),
            ("Website", "website"),
            ("Fund Type", "fund_type"),
            ("Stages", "stages"),
            ("Source", "source"),
            ("Contact Person 1", "contact_person1"),
            ("Designation 1", "designation1"),
            ("Email 1", "email1"),
            ("Phone 1", "phone1"),
            ("Contact Person 2", "contact_person2"),
            ("Designation 2", "designation2"),
            ("Email 2", "email2"),
            ("Phone 2", "phone2"),
            ("Notes", "notes"),
        ),
    ),
    "client-master-data": ExportLayout(
        kind=EntityKind.MASTER_DATA,
        sheet_title="Client Master Data",
        filename="client-master-data.xlsx",
        columns=(
            ("Name", "name"),
            ("Designation", "designation"),
            ("Company", "company"),
            ("Industry", "industry"),
            ("Phone", "phone"),
            ("Email", "email"),
            ("Address", "address"),
            ("Notes", "notes"),
        ),
    ),
}
