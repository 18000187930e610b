# ============================================================================
# PYDANTIC TO SQL GENERATOR
# ============================================================================
# EPOCH: 1 - RECIPE ENGINE
# STATUS: Core - DDL generation from Pydantic models
# PURPOSE: Generate PostgreSQL CREATE statements from Pydantic models
# CREATED: 19 OCT 2026
# ============================================================================
"""
Pydantic to PostgreSQL Schema Generator.

Generates PostgreSQL DDL statements from Pydantic models.
Pydantic models are the SINGLE SOURCE OF TRUTH for schema.

Model Metadata Convention:
    Models define SQL metadata via ClassVar attributes:
    - __sql_table__: Table name
    - __sql_schema__: Schema name
    - __sql_primary_key__: Primary key column(s) - string or list
    - __sql_foreign_keys__: Dict of {column: "schema.table(column)"}
    - __sql_indexes__: List of index definitions, (name, columns) tuples
      or {"name", "columns", "descending", "partial_where"} dicts

Type mapping:
    str (max_length)     -> VARCHAR(n)
    int / float / bool   -> INTEGER / DOUBLE PRECISION / BOOLEAN
    datetime             -> TIMESTAMPTZ
    Enum                 -> schema-qualified ENUM type (snake_case name)
    dict / list / models -> JSONB
    Any                  -> JSONB, nullable

Usage:
    generator = PydanticToSQL(schema_name="recipeapp")
    statements = generator.generate_all()
    for stmt in statements:
        cursor.execute(stmt)
"""

import re
import logging
from typing import Any, Dict, List, Type, Union, get_args, get_origin
from datetime import datetime
from enum import Enum
from pydantic import BaseModel
from pydantic.fields import FieldInfo
from psycopg import sql
from annotated_types import MaxLen

from core.schema.ddl_utils import CommentBuilder, IndexBuilder, SchemaUtils, TriggerBuilder

logger = logging.getLogger(__name__)


class PydanticToSQL:
    """
    Convert Pydantic models to PostgreSQL DDL statements.

    Analyzes Pydantic models with __sql_* metadata and generates
    corresponding PostgreSQL CREATE TABLE statements.
    """

    TYPE_MAP = {
        str: "VARCHAR",
        int: "INTEGER",
        float: "DOUBLE PRECISION",
        bool: "BOOLEAN",
        datetime: "TIMESTAMPTZ",
        dict: "JSONB",
        Dict: "JSONB",
        list: "JSONB",
        List: "JSONB",
    }

    def __init__(self, schema_name: str = "recipeapp", destructive: bool = False):
        """
        Initialize the generator.

        Args:
            schema_name: PostgreSQL schema name
            destructive: If True, use DROP+CREATE for enums (data loss risk).
                        If False (default), create only when missing.
        """
        self.schema_name = schema_name
        self.destructive = destructive
        self.enums: Dict[str, Type[Enum]] = {}

    # =========================================================================
    # METADATA EXTRACTION
    # =========================================================================

    @staticmethod
    def get_model_metadata(model: Type[BaseModel]) -> Dict[str, Any]:
        """
        Extract SQL DDL metadata from a Pydantic model.

        Looks for __sql_* attributes (which Python mangles to _ClassName__sql_*).
        """
        def get_attr(name: str, default=None):
            mangled = f"_{model.__name__}__{name}"
            return getattr(model, mangled, getattr(model, f"__{name}", default))

        metadata = {
            "table": get_attr("sql_table__"),
            "schema": get_attr("sql_schema__", "recipeapp"),
            "primary_key": get_attr("sql_primary_key__", []),
            "foreign_keys": get_attr("sql_foreign_keys__", {}),
            "indexes": get_attr("sql_indexes__", []),
        }

        if isinstance(metadata["primary_key"], str):
            metadata["primary_key"] = [metadata["primary_key"]]

        return metadata

    # =========================================================================
    # TYPE CONVERSION
    # =========================================================================

    def python_type_to_sql(self, field_type: Any, field_info: FieldInfo) -> str:
        """Convert a field annotation to a PostgreSQL type."""
        actual_type = field_type
        origin = get_origin(field_type)

        # Unwrap Optional
        if origin is Union:
            non_null = [a for a in get_args(field_type) if a is not type(None)]
            actual_type = non_null[0] if len(non_null) == 1 else Any
            origin = get_origin(actual_type)

        if origin in (dict, Dict, list, List) or actual_type is Any:
            return "JSONB"

        if actual_type == str:
            for constraint in field_info.metadata or []:
                if isinstance(constraint, MaxLen):
                    return f"VARCHAR({constraint.max_length})"
            return "VARCHAR"

        if isinstance(actual_type, type) and issubclass(actual_type, Enum):
            enum_name = re.sub(r'(?<!^)(?=[A-Z])', '_', actual_type.__name__).lower()
            self.enums[enum_name] = actual_type
            return enum_name

        return self.TYPE_MAP.get(actual_type, "JSONB")

    @staticmethod
    def is_nullable(field_type: Any) -> bool:
        if field_type is Any:
            return True
        return get_origin(field_type) is Union and type(None) in get_args(field_type)

    # =========================================================================
    # ENUM GENERATION
    # =========================================================================

    def generate_enum(self, enum_name: str, enum_class: Type[Enum], schema: str) -> List[sql.Composed]:
        """
        Generate PostgreSQL ENUM type DDL.

        - destructive=True: DROP CASCADE + CREATE (destroys dependent columns!)
        - destructive=False: DO block that creates the type only if missing
        """
        values_list = [member.value for member in enum_class]

        if self.destructive:
            return [
                sql.SQL("DROP TYPE IF EXISTS {}.{} CASCADE").format(
                    sql.Identifier(schema),
                    sql.Identifier(enum_name)
                ),
                sql.SQL("CREATE TYPE {}.{} AS ENUM ({})").format(
                    sql.Identifier(schema),
                    sql.Identifier(enum_name),
                    sql.SQL(', ').join(sql.Literal(v) for v in values_list)
                )
            ]

        values_str = ', '.join(f"'{v}'" for v in values_list)
        do_block = f"""
DO $$
BEGIN
    IF NOT EXISTS (SELECT 1 FROM pg_type WHERE typname = '{enum_name}' AND typnamespace = (SELECT oid FROM pg_namespace WHERE nspname = '{schema}')) THEN
        CREATE TYPE "{schema}"."{enum_name}" AS ENUM ({values_str});
    END IF;
END$$
"""
        return [sql.SQL(do_block)]

    # =========================================================================
    # TABLE GENERATION
    # =========================================================================

    def _column_default(self, field_name: str, field_info: FieldInfo, sql_type: str, schema: str) -> List[sql.Composable]:
        default = field_info.default

        if field_info.default_factory is not None:
            if sql_type == "TIMESTAMPTZ":
                return [sql.SQL(" DEFAULT NOW()")]
            if sql_type == "JSONB":
                empty = "'[]'" if isinstance(field_info.default_factory(), list) else "'{}'"
                return [sql.SQL(f" DEFAULT {empty}::jsonb")]
            return []

        if isinstance(default, Enum):
            return [
                sql.SQL(" DEFAULT "),
                sql.Literal(default.value),
                sql.SQL("::"),
                sql.Identifier(schema),
                sql.SQL("."),
                sql.Identifier(sql_type),
            ]
        if isinstance(default, bool):
            return [sql.SQL(" DEFAULT "), sql.SQL("true" if default else "false")]
        if isinstance(default, (str, int, float)):
            return [sql.SQL(" DEFAULT "), sql.Literal(default)]
        return []

    def generate_table(self, model: Type[BaseModel]) -> sql.Composed:
        """
        Generate CREATE TABLE DDL from a Pydantic model.

        Computed fields are not stored.
        """
        meta = self.get_model_metadata(model)
        table_name = meta["table"]
        schema_name = self.schema_name or meta["schema"]
        primary_key = meta["primary_key"]

        if not table_name:
            raise ValueError(f"Model {model.__name__} missing __sql_table__ attribute")

        logger.debug(f"Generating table {schema_name}.{table_name} from {model.__name__}")

        columns = []
        constraints = []

        for field_name, field_info in model.model_fields.items():
            field_type = field_info.annotation
            sql_type = self.python_type_to_sql(field_type, field_info)

            column_parts: List[sql.Composable] = [sql.Identifier(field_name), sql.SQL(" ")]

            if sql_type in self.enums:
                column_parts.extend([
                    sql.Identifier(schema_name),
                    sql.SQL("."),
                    sql.Identifier(sql_type)
                ])
            else:
                column_parts.append(sql.SQL(sql_type))

            if not self.is_nullable(field_type) and field_name not in primary_key:
                column_parts.append(sql.SQL(" NOT NULL"))

            column_parts.extend(self._column_default(field_name, field_info, sql_type, schema_name))
            columns.append(sql.SQL("").join(column_parts))

        if primary_key:
            constraints.append(
                sql.SQL("PRIMARY KEY ({})").format(
                    sql.SQL(", ").join(sql.Identifier(col) for col in primary_key)
                )
            )

        for fk_column, fk_reference in meta["foreign_keys"].items():
            match = re.match(r"(\w+)\.(\w+)\((\w+)\)", fk_reference)
            if match:
                ref_schema, ref_table, ref_column = match.groups()
                constraints.append(
                    sql.SQL("FOREIGN KEY ({}) REFERENCES {}.{} ({}) ON DELETE CASCADE").format(
                        sql.Identifier(fk_column),
                        sql.Identifier(ref_schema),
                        sql.Identifier(ref_table),
                        sql.Identifier(ref_column)
                    )
                )

        return sql.SQL("CREATE TABLE IF NOT EXISTS {}.{} ({})").format(
            sql.Identifier(schema_name),
            sql.Identifier(table_name),
            sql.SQL(", ").join(columns + constraints)
        )

    # =========================================================================
    # INDEX GENERATION
    # =========================================================================

    def generate_indexes(self, model: Type[BaseModel]) -> List[sql.Composed]:
        """Generate CREATE INDEX statements from a model's __sql_indexes__."""
        meta = self.get_model_metadata(model)
        table_name = meta["table"]
        schema_name = self.schema_name or meta["schema"]

        result = []
        for idx_def in meta["indexes"]:
            if isinstance(idx_def, tuple):
                name = idx_def[0]
                columns = idx_def[1] if len(idx_def) > 1 else []
                partial_where = idx_def[2] if len(idx_def) > 2 else None
                descending = False
            elif isinstance(idx_def, dict):
                name = idx_def.get("name")
                columns = idx_def.get("columns", [])
                partial_where = idx_def.get("partial_where")
                descending = idx_def.get("descending", False)
            else:
                continue

            if not columns or not name:
                continue

            result.append(IndexBuilder.btree(
                schema_name, table_name, columns,
                name=name,
                partial_where=partial_where,
                descending=descending
            ))

        return result

    # =========================================================================
    # COMPLETE SCHEMA GENERATION
    # =========================================================================

    def generate_drop_schema(self) -> sql.Composed:
        """
        Generate DROP SCHEMA CASCADE statement.

        WARNING: This destroys ALL data in the schema!
        """
        return SchemaUtils.drop_schema(self.schema_name)

    def generate_all(self) -> List[sql.Composed]:
        """
        Generate complete DDL for the execution store.

        Returns:
            List of sql.Composed statements ready for execution
        """
        from core.models import ExecutionContext

        meta = self.get_model_metadata(ExecutionContext)

        statements = [
            SchemaUtils.create_schema(self.schema_name),
            SchemaUtils.set_search_path(self.schema_name),
        ]

        # Columns are generated first so enum types referenced by them are collected
        table = self.generate_table(ExecutionContext)
        for enum_name, enum_class in self.enums.items():
            statements.extend(self.generate_enum(enum_name, enum_class, self.schema_name))

        statements.append(table)
        statements.extend(self.generate_indexes(ExecutionContext))
        statements.append(CommentBuilder.table(
            self.schema_name,
            meta["table"],
            "Recipe executions: one row per run, updated after every node",
        ))

        statements.extend(TriggerBuilder.updated_at(self.schema_name, meta["table"]))

        logger.info(f"Generated {len(statements)} DDL statements for schema {self.schema_name}")
        return statements

    def execute(self, conn, dry_run: bool = False) -> int:
        """
        Execute all DDL statements.

        Args:
            conn: psycopg (sync) connection
            dry_run: If True, log statements but don't execute

        Returns:
            Number of statements executed
        """
        statements = self.generate_all()

        if dry_run:
            for stmt in statements:
                logger.info(f"[DRY RUN] {stmt.as_string(conn)[:100]}...")
            return len(statements)

        with conn.cursor() as cur:
            for stmt in statements:
                cur.execute(stmt)

        logger.info(f"Executed {len(statements)} DDL statements")
        return len(statements)


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = ['PydanticToSQL']
