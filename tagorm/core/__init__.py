"""Public core API for schema parsing, query building, and CRUD operations."""

from .conditions import (
    C,
    Condition,
    OrderBy,
    conditions_from_example,
    conditions_from_mapping,
    parse_condition_key,
    to_conditions,
)
from .context import QueryContext
from .contracts import DatabasePort, DialectPort, ExecResult, ExecutorPort, TransactionPort
from .engine import Engine, Transaction
from .errors import (
    ExecutionError,
    OperationCancelledError,
    OrmError,
    RecordNotFoundError,
    RegistryError,
    SchemaError,
    TransactionClosedError,
    UsageError,
)
from .hooks import (
    AfterCreate,
    AfterDelete,
    AfterFind,
    AfterUpdate,
    BeforeCreate,
    BeforeDelete,
    BeforeUpdate,
    Hook,
    HookInvoker,
)
from .migrate import create_index_sql, create_table_sql, migration_statements
from .migrations import MigrationHistory, MigrationScript, parse_migration
from .naming import DefaultNamingStrategy, NamingStrategy
from .parser import SchemaParser
from .query_builder import CompiledFragment, compile_where
from .result import Result
from .schema import Field, Index, Model
from .tags import column, parse_tag

__all__ = [
    "AfterCreate",
    "AfterDelete",
    "AfterFind",
    "AfterUpdate",
    "BeforeCreate",
    "BeforeDelete",
    "BeforeUpdate",
    "C",
    "CompiledFragment",
    "Condition",
    "DatabasePort",
    "DefaultNamingStrategy",
    "DialectPort",
    "Engine",
    "ExecResult",
    "ExecutionError",
    "ExecutorPort",
    "Field",
    "Hook",
    "HookInvoker",
    "Index",
    "MigrationHistory",
    "MigrationScript",
    "Model",
    "NamingStrategy",
    "OperationCancelledError",
    "OrderBy",
    "OrmError",
    "QueryContext",
    "RecordNotFoundError",
    "RegistryError",
    "Result",
    "SchemaError",
    "SchemaParser",
    "Transaction",
    "TransactionClosedError",
    "TransactionPort",
    "UsageError",
    "column",
    "compile_where",
    "conditions_from_example",
    "conditions_from_mapping",
    "create_index_sql",
    "create_table_sql",
    "migration_statements",
    "parse_condition_key",
    "parse_migration",
    "parse_tag",
    "to_conditions",
]
