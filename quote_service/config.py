"""Quote service configuration: all values from environment."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

ASSETS_DIR = Path(__file__).resolve().parent / "assets"


def _float_env(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, str(default)))
    except ValueError:
        return default


@dataclass(frozen=True)
class ServiceConfig:
    """Immutable configuration loaded once at startup."""

    api_key: str = field(default_factory=lambda: os.getenv("QUOTE_API_KEY", "demo-api-key-change-me"))

    # Email delivery (Resend)
    resend_api_key: str = field(default_factory=lambda: os.getenv("RESEND_API_KEY", ""))
    resend_url: str = field(default_factory=lambda: os.getenv("RESEND_URL", "https://api.resend.com/emails"))
    email_from: str = field(
        default_factory=lambda: os.getenv(
            "EMAIL_FROM", "RKA Crane Services <service@reports.rkaindustrialsolutions.com.au>"
        )
    )
    reminder_from: str = field(
        default_factory=lambda: os.getenv(
            "REMINDER_FROM", "RKA Reminders <service@reports.rkaindustrialsolutions.com.au>"
        )
    )
    admin_email: str = field(default_factory=lambda: os.getenv("ADMIN_EMAIL", "admin@rkaindustrialsolutions.com.au"))

    # Job management (AroFlo)
    aroflo_url: str = field(default_factory=lambda: os.getenv("AROFLO_URL", "https://api.aroflo.com/"))
    aroflo_u_encoded: str = field(default_factory=lambda: os.getenv("AROFLO_U_ENCODED", ""))
    aroflo_p_encoded: str = field(default_factory=lambda: os.getenv("AROFLO_P_ENCODED", ""))
    aroflo_org_encoded: str = field(default_factory=lambda: os.getenv("AROFLO_ORG_ENCODED", ""))
    aroflo_secret_key: str = field(default_factory=lambda: os.getenv("AROFLO_SECRET_KEY", ""))
    aroflo_request_delay: float = field(default_factory=lambda: _float_env("AROFLO_REQUEST_DELAY", 1.1))

    # AI gateway (OpenAI-compatible)
    ai_api_key: str = field(default_factory=lambda: os.getenv("AI_API_KEY", ""))
    ai_base_url: str = field(default_factory=lambda: os.getenv("AI_BASE_URL", "https://ai.gateway.lovable.dev/v1"))
    ai_model: str = field(default_factory=lambda: os.getenv("AI_MODEL", "google/gemini-2.5-flash"))

    # Brand images
    header_image: str = field(
        default_factory=lambda: os.getenv("QUOTE_HEADER_IMAGE", str(ASSETS_DIR / "pdf-header.png"))
    )
    footer_image: str = field(
        default_factory=lambda: os.getenv("QUOTE_FOOTER_IMAGE", str(ASSETS_DIR / "pdf-footer.png"))
    )

    # Observability
    service_name: str = field(default_factory=lambda: os.getenv("OTEL_SERVICE_NAME", "quote-service"))
    otel_endpoint: str = field(default_factory=lambda: os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT", ""))
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))

    @property
    def aroflo_configured(self) -> bool:
        return all(
            (self.aroflo_u_encoded, self.aroflo_p_encoded, self.aroflo_org_encoded, self.aroflo_secret_key)
        )


Colour = tuple[int, int, int]


@dataclass(frozen=True)
class Branding:
    """Look and wording of a client-facing quote.

    Passed to the assembler at call time so another brand or tax
    jurisdiction needs a different value, not a source edit.
    """

    company_name: str = "RKA Crane Services"
    tagline: str = "Crane Inspection & Maintenance"
    contact_line: str = "service@reports.rkaindustrialsolutions.com.au"
    title: str = "QUOTATION"
    accent: Colour = (96, 179, 76)
    email_accent: str = "#228B45"
    dark: Colour = (40, 32, 39)
    muted: Colour = (100, 100, 100)
    light_gray: Colour = (245, 245, 245)
    border_gray: Colour = (220, 220, 220)
    white: Colour = (255, 255, 255)
    currency_symbol: str = "$"
    tax_label: str = "GST"
    tax_rate: float = 0.10
    terms: tuple[str, ...] = (
        "This quote is valid for {validity_days} days from the date of issue.",
        "All prices are in Australian Dollars (AUD).",
        "Payment terms: 14 days from date of invoice.",
        "Work performed in accordance with relevant Australian Standards (AS 2550, AS 1418, AS 4991).",
    )

    def money(self, value: float) -> str:
        return f"{self.currency_symbol}{value:.2f}"


@dataclass(frozen=True)
class QuotePolicy:
    """Commercial defaults used while composing a quote."""

    gp_target: float = 0.50
    labour_cost_rate: float = 117.0
    labour_sell_rate: float = 195.0


config = ServiceConfig()
