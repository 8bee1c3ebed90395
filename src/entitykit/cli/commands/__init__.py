"""CLI command implementations for entitykit.

This module contains the command group implementations:
- filters: Parse and compile query-string filters
- config: Manage configuration
- audit: Inspect the SQL audit trail
"""
