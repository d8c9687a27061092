"""Container module for the FTP server image harness.

- ServerProvisioner: Start, wait for and purge server containers
- Exceptions: Infrastructure error types
"""
