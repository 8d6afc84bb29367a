#!/usr/bin/env python3
"""Generate placeholder brand graphics for the quote PDF.

Outputs:
  quote_service/assets/pdf-header.png  : green banner with company name
  quote_service/assets/pdf-footer.png  : thin contact strip

Run:
  python sample_data/generate_brand_images.py
"""

from __future__ import annotations

import os
from pathlib import Path

from PIL import Image, ImageDraw

from quote_service.config import ASSETS_DIR, Branding

# A4 width at ~10 px/mm keeps the aspect ratio the renderer scales by.
WIDTH = 2100


def _banner(height: int, fill: tuple[int, int, int], lines: list[str], output_path: Path) -> None:
    img = Image.new("RGB", (WIDTH, height), fill)
    draw = ImageDraw.Draw(img)
    y = height // 4
    for line in lines:
        draw.text((80, y), line, fill=(255, 255, 255))
        y += height // 4
    output_path.parent.mkdir(parents=True, exist_ok=True)
    img.save(output_path, format="PNG")
    print(f"  Generated: {output_path}  ({os.path.getsize(output_path)} bytes)")


def main() -> None:
    branding = Branding()
    print("Generating brand images...")
    _banner(360, branding.accent, [branding.company_name, branding.tagline], ASSETS_DIR / "pdf-header.png")
    _banner(120, branding.dark, [branding.contact_line], ASSETS_DIR / "pdf-footer.png")
    print("Done.")


if __name__ == "__main__":
    main()
