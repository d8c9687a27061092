"""Check module for the FTP server image harness.

- ExpectationSet: Name-presence tracking for directory listings
- CheckReport: Non-fatal failure collection per scenario
"""
