"""
Command Line Interface Package

Command Structure:
- sales-ledger: main entry point with utility commands (version, config)
- sales-ledger init: create the sales sheet
- sales-ledger run / ingest / export: one capped pass over the labeled mailbox
"""
