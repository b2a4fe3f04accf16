"""
schema.py

Column layout and SQLite schema for the mandate store.

Tables
------
- mandateEvents   : one row per payment-processor event (PK id, insert-or-skip)
- crmAccounts     : current CRM truth (PK crm_id, upsert)
- elevateAccounts : billing accounts bridging account number -> mandate reference
                    (PK elevate_account_number, insert-or-skip)

Source files are mapped by column POSITION, not by header name, because the
exports are produced by third-party tools whose header labels drift.
"""

from __future__ import annotations

from typing import Dict, List

from sqlalchemy import Column, Index, MetaData, Table, Text


# ======================================================
# COLUMN CONTRACTS
# ======================================================

EVENT_COLUMNS: List[str] = [
    "id",
    "created_at",
    "resource_type",
    "action",
    "details_origin",
    "details_cause",
    "details_description",
    "details_scheme",
    "details_reason_code",
    "links_previous_customer_bank_account",
    "links_new_customer_bank_account",
    "links_parent_event",
    "links_mandate",
    "mandates_id",
    "mandates_created_at",
    "mandates_reference",
    "mandates_status",
    "mandates_scheme",
    "mandates_next_possible_charge_date",
    "mandates_payments_require_approval",
    "mandates_links_customer_bank_account",
    "mandates_links_creditor",
    "customers_id",
    "customers_given_name",
    "customers_family_name",
    "customers_company_name",
    "customers_metadata_leadID",
    "customers_metadata_link",
    "customers_metadata_xero",
    "mandates_metadata_xero",
    "imported_at",
    "customers_name",
]

# Columns 0..27 of the events export, in order. Xero metadata is not exported.
EVENT_SOURCE_COLUMNS: List[str] = EVENT_COLUMNS[:28]

CRM_COLUMNS: List[str] = [
    "crm_id",
    "crm_account_number",
    "crm_name",
    "crm_email",
    "crm_premise_address",
    "crm_stage_name",
    "crm_gocardless_id",
    "crm_zen_user_id",
]

# crm_account_number is fixed at first insert
CRM_UPDATE_COLUMNS: List[str] = [
    "crm_name",
    "crm_email",
    "crm_premise_address",
    "crm_stage_name",
    "crm_gocardless_id",
    "crm_zen_user_id",
]

CRM_SOURCE_POSITIONS: Dict[str, int] = {
    "crm_account_number": 0,
    "crm_premise_address": 2,
    "crm_stage_name": 4,
    "crm_name": 6,
    "crm_email": 7,
    "crm_gocardless_id": 8,
    "crm_id": 9,
    "crm_zen_user_id": 10,
}

ELEVATE_COLUMNS: List[str] = [
    "elevate_account_number",
    "elevate_mandate_reference",
    "elevate_customer_name",
]

ELEVATE_SOURCE_POSITIONS: Dict[str, int] = {
    "elevate_account_number": 0,
    "elevate_customer_name": 2,
    "elevate_mandate_reference": 30,
}

OUTPUT_COLUMNS: List[str] = EVENT_COLUMNS + [
    "crm_account_number",
    "crm_id",
    "crm_name",
    "crm_email",
    "crm_premise_address",
    "crm_stage_name",
    "crm_customer_name",
    "crm_gocardless_id",
    "target_team",
    "crm_zen_user_id",
]


# ======================================================
# TABLES
# ======================================================

metadata = MetaData()

mandate_events = Table(
    "mandateEvents",
    metadata,
    Column("id", Text, primary_key=True),
    *[Column(name, Text) for name in EVENT_COLUMNS[1:]],
    Index("idx_mandate_events_imported_at", "imported_at"),
)

crm_accounts = Table(
    "crmAccounts",
    metadata,
    Column("crm_id", Text, primary_key=True),
    *[Column(name, Text) for name in CRM_COLUMNS[1:]],
    Index("idx_crm_accounts_crm_account_number", "crm_account_number"),
    Index("idx_crm_accounts_crm_name", "crm_name"),
    Index("idx_crm_accounts_crm_gocardless_id", "crm_gocardless_id"),
)

elevate_accounts = Table(
    "elevateAccounts",
    metadata,
    Column("elevate_account_number", Text, primary_key=True),
    Column("elevate_mandate_reference", Text),
    Column("elevate_customer_name", Text),
    Index("idx_elevate_accounts_elevate_mandate_reference", "elevate_mandate_reference"),
)
