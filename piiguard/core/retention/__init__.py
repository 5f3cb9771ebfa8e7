"""
Retention windows and erasure lifecycle.

This package provides:
- longest-window retention resolution per classification
- deletion / anonymization audit records (legal holds respected)
- a report over caller-supplied audit records

It does not persist audit records; callers own storage.
"""
