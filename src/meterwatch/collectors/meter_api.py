"""Meter data service importer.

Downloads a readings CSV export over HTTP and imports it.

Endpoint: <base_url>/readings.csv
Parameters:
  - consumer: consumer id (optional, all consumers when absent)
  - from / to: date range, YYYY-MM-DD
"""

import io
import logging
import os
from datetime import date
from pathlib import Path

import httpx
from dotenv import load_dotenv

from .meter_csv import parse_csv, save_parsed

# Load environment variables from .env file
load_dotenv()

logger = logging.getLogger(__name__)


class MeterApiError(Exception):
    """Raised when the meter data service cannot be reached or answers badly."""
    pass


def get_base_url() -> str:
    """Get the service URL from environment."""
    url = os.environ.get("METERWATCH_API_URL")
    if not url:
        raise MeterApiError(
            "METERWATCH_API_URL environment variable not set.\n"
            "Then set it: export METERWATCH_API_URL='https://meters.example.com/api'"
        )
    return url


def fetch_csv_data(
    base_url: str,
    consumer_id: str | None = None,
    start: date | None = None,
    end: date | None = None,
    token: str | None = None,
    timeout: float = 120.0,
    transport: httpx.BaseTransport | None = None,
) -> str:
    """Fetch a readings CSV export.

    Args:
        base_url: Service base URL
        consumer_id: Restrict to one consumer, None for all
        start: First day to include
        end: Day after the last day to include
        token: Bearer token (defaults to METERWATCH_API_TOKEN)
        timeout: Request timeout in seconds
        transport: Optional httpx transport, used by tests

    Returns:
        Raw CSV string with headers
    """
    url = f"{base_url.rstrip('/')}/readings.csv"
    params = {}
    if consumer_id:
        params["consumer"] = consumer_id
    if start:
        params["from"] = start.isoformat()
    if end:
        params["to"] = end.isoformat()

    token = token or os.environ.get("METERWATCH_API_TOKEN")
    headers = {"Authorization": f"Bearer {token}"} if token else {}

    try:
        with httpx.Client(timeout=timeout, transport=transport) as client:
            response = client.get(url, params=params, headers=headers)
            response.raise_for_status()
    except httpx.HTTPStatusError as e:
        raise MeterApiError(f"HTTP error from meter service: {e.response.status_code}")
    except httpx.HTTPError as e:
        raise MeterApiError(f"Network error connecting to meter service: {e}")

    logger.info("Downloaded %d bytes from %s", len(response.content), url)
    return response.text


def fetch_and_import(
    base_url: str | None = None,
    consumer_id: str | None = None,
    start: date | None = None,
    end: date | None = None,
    db_path: Path | None = None,
    transport: httpx.BaseTransport | None = None,
) -> dict:
    """Download readings and save them.

    Returns dict with 'imported', 'skipped' and 'rejected' counts.
    """
    text = fetch_csv_data(
        base_url or get_base_url(), consumer_id, start, end, transport=transport
    )
    try:
        readings, names, rejected = parse_csv(io.StringIO(text))
    except ValueError as e:
        raise MeterApiError(f"Unexpected response from meter service: {e}")
    return save_parsed(readings, names, rejected, db_path)
