"""
Durable background jobs.

This package provides:
- Database-backed queue with atomic claims and delayed scheduling
- Registry-based pluggable job types
- Fixed-delay retries with a per-job attempt limit
- Recovery of jobs stuck in running after a crash or timeout
"""
