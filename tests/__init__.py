"""
Test suite for the Bet Ledger project.

This package contains tests for all modules including:
- CSV validation and import
- Metrics engine
- Database layer
- Import API and client
- Session state, authentication and dashboard helpers
"""
