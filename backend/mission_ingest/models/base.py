"""Shared SQLModel base exposing ``Model.objects`` query helpers."""

from __future__ import annotations

from typing import ClassVar

from sqlmodel import SQLModel

from mission_ingest.db.query_manager import ManagerDescriptor


class QueryModel(SQLModel, table=False):
    """Base class for persisted tables."""

    objects: ClassVar[ManagerDescriptor] = ManagerDescriptor()
