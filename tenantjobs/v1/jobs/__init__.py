"""
Background jobs with per-attempt dependency scopes.

This package provides:
- A creation pipeline that attaches metadata (tenant, request id) to jobs
- In-memory and SQL queues persisting jobs together with their metadata
- A dispatcher executing each attempt inside an isolated, disposable scope
- Execution filters that rebuild tenant context from persisted metadata
"""
