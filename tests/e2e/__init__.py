#!/usr/bin/env python3
"""
End-to-end tests for the sales ledger CLI.

These tests execute actual CLI commands via subprocess against temporary data
directories and .eml input, so no real mailbox is ever contacted.
"""
