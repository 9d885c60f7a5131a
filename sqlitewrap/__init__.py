from .command import Binder, Command
from .config import LoadedSettings, Settings, load_settings
from .database import MEMORY_PATH, Database
from .domain.result_codes import ColumnType, OpenFlag, ResultCode
from .errors import (
    AppError,
    BindError,
    DatabaseConnectionError,
    DatabaseError,
    EngineUnavailableError,
    PrepareError,
    RowExpiredError,
    StepError,
    TransactionError,
)
from .query import Query, QueryIterator, Row, RowReader
from .statement import Statement
from .transaction import Transaction

__all__ = [
    "Database",
    "MEMORY_PATH",
    "Statement",
    "Command",
    "Binder",
    "Query",
    "QueryIterator",
    "Row",
    "RowReader",
    "Transaction",
    "Settings",
    "LoadedSettings",
    "load_settings",
    "ResultCode",
    "ColumnType",
    "OpenFlag",
    "AppError",
    "DatabaseError",
    "DatabaseConnectionError",
    "PrepareError",
    "BindError",
    "StepError",
    "TransactionError",
    "RowExpiredError",
    "EngineUnavailableError",
]
