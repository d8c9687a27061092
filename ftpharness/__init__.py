"""FTP server image harness.

Checks third-party FTP/FTPS server container images against ftplib:
- config: Server scenarios and harness settings
- containers: Container provisioning via testcontainers
- ftp: Client session driver, listing parsing, exceptions
- checks: Golden-value comparisons and check reports
- scenario: Operation script and scenario runner
"""

__version__ = "0.1.0"
