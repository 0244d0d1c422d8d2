"""
Creation and execution pipelines.

Creation filters run while a job is being submitted and may write to its
metadata. Execution filters run around every execution attempt; they read the
(frozen) metadata and seed values into the attempt's scope before the job is
resolved.
"""

from collections.abc import Hashable
from dataclasses import dataclass
from typing import Any

import structlog

from tenantjobs.v1.jobs.metadata import MetadataStore
from tenantjobs.v1.jobs.schemas import JobDescriptor, JobOutcome
from tenantjobs.v1.jobs.scope import ExecutionScope

REQUEST_ID_KEY = "RequestId"


@dataclass
class CreatingContext:
    descriptor: JobDescriptor
    metadata: MetadataStore

    def set_parameter(self, key: str, value: Any) -> None:
        self.metadata.set(key, value)


@dataclass
class CreatedContext:
    descriptor: JobDescriptor
    metadata: MetadataStore


@dataclass
class PerformingContext:
    descriptor: JobDescriptor
    metadata: MetadataStore
    scope: ExecutionScope

    def get_parameter(self, key: str, default: Any = None) -> Any:
        return self.metadata.get(key, default)

    def seed(self, key: Hashable, value: Any) -> None:
        self.scope.seed(key, value)


@dataclass
class PerformedContext:
    descriptor: JobDescriptor
    metadata: MetadataStore
    scope: ExecutionScope
    outcome: JobOutcome


class CreationFilter:
    """Base class for creation pipeline stages. Both hooks default to no-ops."""

    def on_creating(self, context: CreatingContext) -> None:
        pass

    def on_created(self, context: CreatedContext) -> None:
        pass


class ExecutionFilter:
    """Base class for execution pipeline stages. Both hooks default to no-ops."""

    def on_performing(self, context: PerformingContext) -> None:
        pass

    def on_performed(self, context: PerformedContext) -> None:
        pass


class RequestIdWriterFilter(CreationFilter):
    """Records the id of the request that submitted the job."""

    def __init__(self, request_id: str | None):
        self.request_id = request_id

    def on_creating(self, context: CreatingContext) -> None:
        if self.request_id:
            context.set_parameter(REQUEST_ID_KEY, self.request_id)


class RequestIdLoggingFilter(ExecutionFilter):
    """Tags log lines of an attempt with the id of the originating request."""

    def on_performing(self, context: PerformingContext) -> None:
        request_id = context.get_parameter(REQUEST_ID_KEY)
        if request_id:
            structlog.contextvars.bind_contextvars(origin_request_id=request_id)

    def on_performed(self, context: PerformedContext) -> None:
        structlog.contextvars.unbind_contextvars("origin_request_id")
