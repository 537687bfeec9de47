#!/usr/bin/env python3
"""Cron entry point: reconcile pending transactions against Midtrans."""

from payrecon.cron import main


if __name__ == "__main__":
    raise SystemExit(main())
