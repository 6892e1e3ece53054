#!/usr/bin/env python3
"""
Upload availability slots from a CSV file to a running booking API
Usage: python upload_slots.py <availability.csv>

Environment:
    API_URL         base URL of the API (default http://localhost:8000)
    EXPORT_API_KEY  admin key, must match the server's EXPORT_API_KEY

CSV format (header row, any column order, case-insensitive):
    | Professional | Date           | Time     |
    | Dr. Priya    | Monday, Mar 3  | 10:00 AM |
"""

import logging
import os
import sys
from pathlib import Path

import httpx

logging.basicConfig(level=logging.INFO, format="%(message)s")
logger = logging.getLogger(__name__)

API_URL = os.getenv("API_URL", "http://localhost:8000")


def upload_slots(file_path: str, api_url: str, api_key: str) -> dict:
    """POST the file to /api/slots/upload and return the JSON response"""
    path = Path(file_path).resolve()
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")
    if path.suffix.lower() != ".csv":
        raise ValueError(f'Unsupported file type "{path.suffix}". Use .csv')

    content = path.read_bytes()
    logger.info(f'📄 Uploading "{path.name}" ({len(content)} bytes)...')

    response = httpx.post(
        f"{api_url.rstrip('/')}/api/slots/upload",
        headers={"X-API-Key": api_key},
        files={"slots": (path.name, content, "text/csv")},
        timeout=30.0,
    )
    data = response.json()
    if response.status_code != 200 or not data.get("success"):
        raise RuntimeError(data.get("error") or f"HTTP {response.status_code}")
    return data


if __name__ == "__main__":
    if len(sys.argv) < 2:
        logger.error("Usage: python upload_slots.py <availability.csv>")
        sys.exit(1)

    api_key = os.getenv("EXPORT_API_KEY")
    if not api_key:
        logger.error("❌ EXPORT_API_KEY is not set")
        sys.exit(1)

    try:
        result = upload_slots(sys.argv[1], API_URL, api_key)
    except (OSError, ValueError, RuntimeError, httpx.HTTPError) as e:
        logger.error(f"❌ Upload failed: {e}")
        sys.exit(1)

    logger.info(f"✅ {result['message']}")
    for warning in result.get("warnings", []):
        logger.info(f"  ⚠️ {warning}")
    for error in result.get("parseErrors", []):
        logger.info(f"  ❌ {error}")

    status = result.get("status", {})
    logger.info(
        f"📊 {status.get('availableSlots', 0)} available / {status.get('totalSlots', 0)} total "
        f"across {len(status.get('professionals', []))} professional(s)"
    )
