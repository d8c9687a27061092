"""Utility module for the FTP server image harness.

This module provides cross-cutting utilities:
- Logging: Configured logging with credential redaction
- Validators: Input validation for ports, port ranges and image references
"""
