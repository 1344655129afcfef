"""Lightweight ``Model.objects`` query helpers for SQLModel tables."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from sqlalchemy import func
from sqlmodel import SQLModel, col, select

if TYPE_CHECKING:
    from sqlmodel.ext.asyncio.session import AsyncSession

ModelT = TypeVar("ModelT", bound=SQLModel)


@dataclass(frozen=True)
class ModelQuery(Generic[ModelT]):
    """Immutable select builder bound to one model class."""

    model: type[ModelT]
    conditions: tuple[Any, ...] = ()
    ordering: tuple[Any, ...] = ()
    row_limit: int | None = None

    def filter(self, *conditions: Any) -> ModelQuery[ModelT]:
        return replace(self, conditions=self.conditions + conditions)

    def order_by(self, *ordering: Any) -> ModelQuery[ModelT]:
        return replace(self, ordering=self.ordering + ordering)

    def limit(self, value: int) -> ModelQuery[ModelT]:
        return replace(self, row_limit=value)

    def statement(self) -> Any:
        statement = select(self.model)
        for condition in self.conditions:
            statement = statement.where(condition)
        if self.ordering:
            statement = statement.order_by(*self.ordering)
        if self.row_limit is not None:
            statement = statement.limit(self.row_limit)
        return statement

    async def first(self, session: AsyncSession) -> ModelT | None:
        return (await session.exec(self.statement())).first()

    async def all(self, session: AsyncSession) -> list[ModelT]:
        return list((await session.exec(self.statement())).all())

    async def count(self, session: AsyncSession) -> int:
        statement = select(func.count()).select_from(self.model)
        for condition in self.conditions:
            statement = statement.where(condition)
        return int((await session.exec(statement)).one())


class ModelManager(Generic[ModelT]):
    """Entry point for building queries against a model class."""

    def __init__(self, model: type[ModelT]) -> None:
        self.model = model

    def all(self) -> ModelQuery[ModelT]:
        return ModelQuery(self.model)

    def by_id(self, value: object) -> ModelQuery[ModelT]:
        return ModelQuery(self.model, conditions=(col(self.model.id) == value,))  # type: ignore[attr-defined]

    def filter_by(self, **kwargs: object) -> ModelQuery[ModelT]:
        conditions = tuple(col(getattr(self.model, key)) == value for key, value in kwargs.items())
        return ModelQuery(self.model, conditions=conditions)


class ManagerDescriptor:
    """Class-level descriptor returning a ``ModelManager`` for the owner model."""

    def __get__(self, instance: object, owner: type[ModelT]) -> ModelManager[ModelT]:
        return ModelManager(owner)
