"""Pydantic models for the quote service."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class Category(str, Enum):
    LABOUR = "labour"
    MATERIALS = "materials"
    EXPENSES = "expenses"


# Render order of the category tables.
CATEGORY_ORDER: tuple[Category, ...] = (Category.LABOUR, Category.MATERIALS, Category.EXPENSES)


class LineItem(BaseModel):
    description: str = ""
    category: Category = Category.LABOUR
    quantity: float = 1.0
    sell_price: float = 0.0
    cost_price: float = 0.0


class QuoteTotals(BaseModel):
    subtotal: float = 0.0
    gst: float = 0.0
    total: float = 0.0


class GrossProfit(BaseModel):
    total_cost: float = 0.0
    margin: float = 0.0
    percent: float = 0.0
    on_target: bool = False


class QuoteDocument(BaseModel):
    """Everything the assembler needs besides the computed totals."""

    quote_number: str = "DRAFT"
    quote_name: str = ""
    date: str = ""
    client_name: str = ""
    client_address: str = ""
    contact_name: str = ""
    contact_email: str = ""
    contact_phone: str = ""
    technician_name: str = "Technician"
    validity_days: int = 30
    line_items: list[LineItem] = Field(default_factory=list)
    notes: str = ""
    collate_items: bool = False


class Defect(BaseModel):
    """An inspection finding that becomes the basis of a repair quote."""

    item_label: str = ""
    crane_name: str = ""
    severity: str = ""
    defect_type: str = ""
    rectification_timeframe: str = ""
    notes: str = ""
    recommended_action: str = ""


class ClientRecord(BaseModel):
    id: str = ""
    client_name: str
    location_address: str | None = None
    primary_contact_name: str | None = None
    primary_contact_email: str | None = None
    primary_contact_mobile: str | None = None
    primary_contact_given_name: str | None = None
    primary_contact_surname: str | None = None
    primary_contact_position: str | None = None
    status: str = "Active"


class AssetRecord(BaseModel):
    external_id: str | None = None
    class_name: str = "Unknown"
    asset_id1: str | None = None
    asset_id2: str | None = None
    status: str = "In Service"
    account_id: str | None = None
    account_name: str | None = None
    account_num: str | None = None
    barcode: str | None = None
    location_id: str | None = None
    location_name: str | None = None
    location_num: str | None = None
    area_name: str | None = None
    description: str | None = None
    urgent_note: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    asset_created_at: str | None = None
    created_by_id: str | None = None
    asset_type: str | None = None
    capacity: str | None = None
    manufacturer: str | None = None
    crane_manufacturer: str | None = None
    model_number: str | None = None
    serial_number: str | None = None
    length_lift: str | None = None
    power: str | None = None
    power_supply: str | None = None
    pendant_remote: str | None = None
    pendant_brand: str | None = None
    control_type: str | None = None
    configuration: str | None = None
    grade_size: str | None = None
    hook_type: str | None = None
    hoist_configuration: str | None = None
    trolley_configuration: str | None = None
    trolley_serial: str | None = None
    lifting_medium_hoist1: str | None = None
    manufacturer_hoist1: str | None = None
    model_hoist1: str | None = None
    serial_hoist1: str | None = None
    lifting_medium_hoist2: str | None = None
    manufacturer_hoist2: str | None = None
    model_hoist2: str | None = None
    serial_hoist2: str | None = None
    client_id: str | None = None


class AssetImportResult(BaseModel):
    total: int = 0
    linked: int = 0
    batches: list[list[AssetRecord]] = Field(default_factory=list)


class AssessmentScores(BaseModel):
    """Seven-facet lifting operations assessment."""

    site_name: str = ""
    assessment_type: str = ""
    facet_scores: list[float] = Field(default_factory=lambda: [0.0] * 7, min_length=7, max_length=7)
    total_score: float = 0.0
    count_not_yet: int = 0
    count_partial: int = 0
    highest_risk_facet: str = ""
    strongest_facet: str = ""


class ReceiptData(BaseModel):
    merchant_name: str | None = None
    amount: float | None = None
    receipt_date: str | None = None


class PendingQuote(BaseModel):
    id: str
    technician_name: str | None = None
    client_name: str = ""
    asset_name: str | None = None
    total: float = 0.0
    created_at: datetime
    quote_number: str | None = None
    status: str = "not_sent"
    reminder_sent: bool = False


class EmailAttachment(BaseModel):
    filename: str
    content: str
    type: str = "application/pdf"


class EmailMessage(BaseModel):
    sender: str = Field(serialization_alias="from")
    to: list[str]
    subject: str
    html: str
    attachments: list[EmailAttachment] = Field(default_factory=list)


class EmailResult(BaseModel):
    id: str = ""


class SendQuoteRequest(BaseModel):
    document: QuoteDocument
    site_name: str = ""
    defects: list[Defect] = Field(default_factory=list)


class QuoteOutcome(BaseModel):
    success: bool
    notification: str
    quote_id: str | None = None
    filename: str | None = None
    emailed_to: str | None = None
    totals: QuoteTotals | None = None


class ReportEmailRequest(BaseModel):
    to: list[str] | str
    client_name: str = ""
    site_name: str = ""
    pdf_base64: str
    filename: str


class ReminderResult(BaseModel):
    results: list[str] = Field(default_factory=list)
    reminded_ids: list[str] = Field(default_factory=list)


class ReceiptRequest(BaseModel):
    image_base64: str = Field(description="Data URI or bare base64 of the receipt photo")


class AssessmentSummary(BaseModel):
    summary: str


class AssetImportRequest(BaseModel):
    rows: list[dict] = Field(default_factory=list)
    clients: list[ClientRecord] = Field(default_factory=list)


class ReminderRequest(BaseModel):
    quotes: list[PendingQuote] = Field(default_factory=list)
    max_age_hours: float = 24
