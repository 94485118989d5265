"""
Test Suite for PSA Sales Ledger

Test Structure:
- fixtures/: Sample sale emails and a fake message source
- unit/: Unit tests mirroring src/ package structure
- integration/: Pipeline, message source, config and CLI tests
- e2e/: CLI commands executed in a subprocess

All sale emails are synthetic; no test touches a real mailbox.
"""
