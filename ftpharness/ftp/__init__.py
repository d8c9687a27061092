"""FTP operations module for the FTP server image harness.

This module handles all FTP-related functionality:
- FTPConnectionManager: Session lifecycle, TLS and retrying connect
- Listing: LIST and MLSD parsing
- Exceptions: FTP-specific error types
"""
