"""Scheduled fallback for missed payment webhooks.

Run from cron, e.g. every 6 hours::

    0 */6 * * * payrecon-reconcile >> /var/log/payrecon-cron.log 2>&1

It asks the API to re-check every pending transaction from the last
``MAX_TRANSACTION_HOURS`` hours against the gateway and logs the report.
"""

from __future__ import annotations

import argparse
import logging
import time
from typing import Any

import httpx

from payrecon.core.config import DEFAULT_CRON_API_KEY, get_settings
from payrecon.core.logging import configure_logging


logger = logging.getLogger("payrecon.cron")

RECONCILE_PATH = "/admin/update-all-pending-transactions"


class CronError(Exception):
    pass


def build_headers(api_key: str | None) -> dict[str, str]:
    headers = {"Content-Type": "application/json"}
    if not api_key or api_key == DEFAULT_CRON_API_KEY:
        logger.warning("CRON_API_KEY is missing or the default placeholder; set a secure key in .env")
    if api_key:
        headers["X-API-Key"] = api_key
    return headers


def request_reconciliation(
    client: httpx.Client,
    api_url: str,
    *,
    hours: int,
    api_key: str | None,
    retries: int = 2,
    retry_delay_seconds: float = 5.0,
) -> dict[str, Any]:
    url = f"{api_url.rstrip('/')}{RECONCILE_PATH}"
    headers = build_headers(api_key)
    last_error: Exception | None = None
    for attempt in range(retries + 1):
        try:
            resp = client.get(url, params={"hours": hours}, headers=headers)
            if resp.status_code in {502, 503, 504} and attempt < retries:
                logger.warning("Transient HTTP %s, retrying (%s/%s)", resp.status_code, attempt + 1, retries)
                time.sleep(retry_delay_seconds)
                continue
            if resp.status_code != 200:
                raise CronError(f"HTTP {resp.status_code}: {resp.text[:500]}")
            body = resp.json()
            data = body.get("data") if isinstance(body, dict) else None
            if not isinstance(data, dict):
                raise CronError("Response did not contain a report")
            return data
        except (httpx.ConnectTimeout, httpx.ReadTimeout, httpx.ConnectError, httpx.RemoteProtocolError) as exc:
            last_error = exc
            if attempt >= retries:
                break
            logger.warning("Transient error (%s), retrying (%s/%s)", exc, attempt + 1, retries)
            time.sleep(retry_delay_seconds)
        except (httpx.HTTPError, ValueError) as exc:
            raise CronError(f"Request failed: {exc}") from exc
    raise CronError(f"Request failed: {last_error}")


def log_report(report: dict[str, Any]) -> None:
    logger.info("Total transactions: %s", report.get("total", 0))
    logger.info("Updated: %s", report.get("updated", 0))
    logger.info("Unchanged: %s", report.get("unchanged", 0))
    logger.info("Failed: %s", report.get("failed", 0))
    for tx in report.get("updated_transactions") or []:
        logger.info(
            "- %s: %s -> %s (%s)",
            tx.get("transaction_code"),
            tx.get("previous_status"),
            tx.get("new_status"),
            tx.get("payment_method"),
        )
    for tx in report.get("failed_transactions") or []:
        logger.warning("- %s: %s", tx.get("transaction_code"), tx.get("error"))


def main(argv: list[str] | None = None) -> int:
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Reconcile pending payment transactions")
    parser.add_argument("--api-url", default=settings.api_url)
    parser.add_argument("--hours", type=int, default=settings.max_transaction_hours)
    parser.add_argument("--timeout", type=float, default=300.0)
    parser.add_argument("--retries", type=int, default=2)
    args = parser.parse_args(argv)

    configure_logging()
    logger.info("===== CRON: UPDATE PENDING TRANSACTIONS =====")
    logger.info("Checking transactions from last %s hours", args.hours)
    try:
        # The server sleeps between gateway calls; large batches take a while.
        with httpx.Client(timeout=args.timeout) as client:
            report = request_reconciliation(
                client,
                args.api_url,
                hours=args.hours,
                api_key=settings.cron_api_key,
                retries=args.retries,
            )
    except CronError as exc:
        logger.error("Error running transaction update: %s", exc)
        return 1
    log_report(report)
    logger.info("Done")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
