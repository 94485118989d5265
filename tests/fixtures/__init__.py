"""
Test Fixtures and Utilities

Synthetic sale notification emails (parsed and raw RFC822) and an in-memory
message source for driving the ingestor.
"""
