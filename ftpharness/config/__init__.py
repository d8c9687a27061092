"""Configuration module for the FTP server image harness.

This module holds the scenario table and harness tunables:
- ServerScenario: Immutable description of one server image under test
- SCENARIOS: Built-in scenario table
- HarnessSettings: Retry budgets, readiness timeouts, logging options
"""
