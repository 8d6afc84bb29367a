#!/usr/bin/env python3
"""
run_demo.py: One-command demo entry point.

Usage:
  python run_demo.py                         # Direct mode (render in-process)
  python run_demo.py --mode service          # Through the HTTP API
  python run_demo.py --quote my_quote.json   # Custom quote document

This script:
1. Loads a sample quote document
2. Renders the quote PDF (directly, or via POST /quotes/preview on a
   background quote service)
3. Saves the PDF and prints the computed totals
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import signal
import subprocess
import sys
import time
from pathlib import Path

import httpx
from dotenv import load_dotenv

load_dotenv()

HERE = Path(__file__).resolve().parent
DEFAULT_QUOTE = HERE / "sample_data" / "sample_quote.json"
SERVICE_HOST = "127.0.0.1"
SERVICE_PORT = int(os.getenv("QUOTE_PORT", "8002"))
SERVICE_URL = os.getenv("QUOTE_URL", f"http://{SERVICE_HOST}:{SERVICE_PORT}")
QUOTE_API_KEY = os.getenv("QUOTE_API_KEY", "demo-api-key-change-me")

SEP = "--------------------------------------------------"


# ============================================================
# Quote service lifecycle
# ============================================================


def start_quote_service() -> subprocess.Popen:
    """Launch the quote FastAPI service as a subprocess."""
    env = os.environ.copy()
    env["QUOTE_API_KEY"] = QUOTE_API_KEY
    return subprocess.Popen(
        [
            sys.executable,
            "-m",
            "uvicorn",
            "quote_service.main:app",
            "--host",
            SERVICE_HOST,
            "--port",
            str(SERVICE_PORT),
            "--log-level",
            "warning",
        ],
        env=env,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
    )


def wait_for_service(timeout: float = 15.0) -> bool:
    """Block until /health responds or timeout."""
    deadline = time.time() + timeout
    while time.time() < deadline:
        try:
            r = httpx.get(f"{SERVICE_URL}/health", timeout=2.0)
            if r.status_code == 200:
                return True
        except (httpx.ConnectError, httpx.ReadError):
            pass
        time.sleep(0.3)
    return False


def stop_process(proc: subprocess.Popen) -> None:
    if proc.poll() is None:
        if sys.platform == "win32":
            proc.terminate()
        else:
            proc.send_signal(signal.SIGTERM)
        try:
            proc.wait(timeout=5)
        except subprocess.TimeoutExpired:
            proc.kill()


# ============================================================
# Rendering
# ============================================================


def render_direct(document: dict) -> tuple[bytes, str]:
    from quote_service.models import QuoteDocument
    from quote_service.workflow import QuoteWorkflow

    export, filename = QuoteWorkflow().preview_quote(QuoteDocument.model_validate(document))
    return export.to_bytes(), filename


def render_via_service(document: dict) -> tuple[bytes, str]:
    resp = httpx.post(
        f"{SERVICE_URL}/quotes/preview",
        json=document,
        headers={"X-API-Key": QUOTE_API_KEY},
        timeout=60.0,
    )
    resp.raise_for_status()
    disposition = resp.headers.get("content-disposition", "")
    filename = disposition.split("filename=")[-1].strip('"') or "Quote_DRAFT.pdf"
    return resp.content, filename


def print_demo_output(document: dict, path: Path, size: int) -> None:
    from quote_service.calculator import compute_totals, gross_profit
    from quote_service.models import LineItem

    items = [LineItem.model_validate(i) for i in document.get("line_items", [])]
    totals = compute_totals(items)
    gp = gross_profit(items)

    print()
    print(SEP)
    print("CRANE SERVICES QUOTE DEMO")
    print(SEP)
    print(f"Client: {document.get('client_name', '')}")
    print(f"Quote: {document.get('quote_name', '')}")
    print(f"Line items: {len(items)}")
    print()
    print(f"Subtotal (ex GST): ${totals.subtotal:.2f}")
    print(f"GST (10%): ${totals.gst:.2f}")
    print(f"TOTAL (inc GST): ${totals.total:.2f}")
    print(f"Gross profit: {gp.percent:.1f}% ({'on target' if gp.on_target else 'below target'})")
    print()
    print(f"PDF saved: {path} ({size} bytes)")
    print(SEP)


# ============================================================
# Main
# ============================================================


def main() -> None:
    parser = argparse.ArgumentParser(description="Crane services quote PDF demo")
    parser.add_argument(
        "--mode",
        choices=["direct", "service"],
        default="direct",
        help="Execution mode: 'direct' (default, in-process) or 'service' (HTTP API)",
    )
    parser.add_argument("--quote", default=str(DEFAULT_QUOTE), help="Path to a quote document JSON file")
    parser.add_argument("--out-dir", default=".", help="Directory for the rendered PDF")
    parser.add_argument(
        "--no-service",
        action="store_true",
        help="Skip starting the quote service (if already running)",
    )

    args = parser.parse_args()
    logging.basicConfig(level=logging.WARNING)

    document = json.loads(Path(args.quote).read_text(encoding="utf-8"))
    service_proc = None

    try:
        if args.mode == "service":
            if not args.no_service:
                service_proc = start_quote_service()
                if not wait_for_service():
                    print("ERROR: Quote service failed to start.", file=sys.stderr)
                    stop_process(service_proc)
                    sys.exit(1)
            content, filename = render_via_service(document)
        else:
            content, filename = render_direct(document)

        path = Path(args.out_dir) / filename
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
        print_demo_output(document, path, len(content))

    except KeyboardInterrupt:
        print("\nInterrupted.")
    except Exception as exc:
        print(f"\nERROR: {exc}", file=sys.stderr)
        sys.exit(1)
    finally:
        if service_proc:
            stop_process(service_proc)


if __name__ == "__main__":
    main()
