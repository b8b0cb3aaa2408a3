"""
Signage Test Package.

This package contains tests for the pairing service including:
- Unit tests for the rate limiter, activation issuer and credential store
- Integration tests for the pairing API endpoints
- The end-to-end pairing scenario
"""
