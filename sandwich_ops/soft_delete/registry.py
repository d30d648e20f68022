"""Registry of tables that take part in the soft delete lifecycle."""

import logging
from typing import Any, Dict, Iterator, List, Type, Union

from sqlalchemy import inspect

from .exceptions import UnknownTableError
from .mixins import SoftDeleteMixin, is_soft_deletable

logger = logging.getLogger(__name__)

TableRef = Union[str, Type[Any]]


class TableRegistry:
    """Maps table names to mapped classes that satisfy ``SoftDeletable``."""

    def __init__(self) -> None:
        self._models: Dict[str, Type[Any]] = {}

    def register(self, model: Type[Any]) -> Type[Any]:
        """
        Register a mapped class under its table name.

        Usable as a class decorator.

        Raises:
            TypeError: If the class lacks ``id``, ``deleted_at`` or ``deleted_by``
        """
        if not is_soft_deletable(model):
            raise TypeError(
                f"{model.__name__} must map id, deleted_at and deleted_by columns"
            )
        self._models[table_name_of(model)] = model
        return model

    @classmethod
    def from_base(cls, base_class: Type[Any]) -> "TableRegistry":
        """Build a registry from every ``SoftDeleteMixin`` class of a declarative base."""
        registry = cls()
        for mapper in base_class.registry.mappers:
            if issubclass(mapper.class_, SoftDeleteMixin):
                registry.register(mapper.class_)
        logger.debug(f"Registered soft delete tables: {registry.table_names()}")
        return registry

    def resolve(self, table: TableRef) -> Type[Any]:
        """
        Turn a table name or mapped class into a mapped class.

        Raises:
            UnknownTableError: If a name is not registered
            TypeError: If a class is not soft-deletable
        """
        if isinstance(table, str):
            try:
                return self._models[table]
            except KeyError:
                raise UnknownTableError(table) from None

        if not is_soft_deletable(table):
            raise TypeError(
                f"{getattr(table, '__name__', table)!r} is not a soft-deletable model"
            )
        return table

    def table_names(self) -> List[str]:
        return sorted(self._models)

    def __contains__(self, table: object) -> bool:
        if isinstance(table, str):
            return table in self._models
        return table in self._models.values()

    def __iter__(self) -> Iterator[Type[Any]]:
        return iter(self._models.values())

    def __len__(self) -> int:
        return len(self._models)


def table_name_of(model: Type[Any]) -> str:
    """Name recorded in the ledger for a mapped class."""
    return str(inspect(model).local_table.name)


def coerce_id(model: Type[Any], record_id: Any) -> Any:
    """
    Convert a record id to the Python type of the model's ``id`` column.

    Ids arrive as text from the CLI and from the ledger.
    """
    if not isinstance(record_id, str):
        return record_id

    column = inspect(model).columns["id"]
    try:
        python_type = column.type.python_type
    except NotImplementedError:
        return record_id

    if python_type is int:
        try:
            return int(record_id)
        except ValueError:
            return record_id
    return record_id
