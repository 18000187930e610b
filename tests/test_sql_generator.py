# ============================================================================
# SQL GENERATOR TESTS
# ============================================================================
# EPOCH: 1 - RECIPE ENGINE
# STATUS: Tests - DDL generation for the execution store
# PURPOSE: Verify type mapping and generated statements
# CREATED: 19 OCT 2026
# ============================================================================
"""
SQL Generator Tests

Statements are rendered without a connection, so no database is needed.

Run with:
    pytest tests/test_sql_generator.py -v
"""

import pytest
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from core.models import ExecutionContext
from core.schema import PydanticToSQL


# ============================================================================
# FIXTURES
# ============================================================================

def _render(statements):
    return [s.as_string(None) for s in statements]


@pytest.fixture
def generator():
    return PydanticToSQL(schema_name="recipeapp")


class Colour(str, Enum):
    RED = "red"
    BLUE = "blue"


class Sample(BaseModel):
    name: str = Field(..., max_length=32)
    label: str
    count: int = 0
    ratio: Optional[float] = None
    enabled: bool = True
    colour: Colour = Colour.RED
    tags: List[str] = Field(default_factory=list)
    attrs: Dict[str, Any] = Field(default_factory=dict)
    blob: Any = None


# ============================================================================
# TYPE MAPPING
# ============================================================================

class TestTypeMapping:

    @pytest.mark.parametrize("field,expected", [
        ("name", "VARCHAR(32)"),
        ("label", "VARCHAR"),
        ("count", "INTEGER"),
        ("ratio", "DOUBLE PRECISION"),
        ("enabled", "BOOLEAN"),
        ("colour", "colour"),
        ("tags", "JSONB"),
        ("attrs", "JSONB"),
        ("blob", "JSONB"),
    ])
    def test_python_type_to_sql(self, generator, field, expected):
        info = Sample.model_fields[field]
        assert generator.python_type_to_sql(info.annotation, info) == expected

    def test_enum_collected(self, generator):
        info = Sample.model_fields["colour"]
        generator.python_type_to_sql(info.annotation, info)
        assert generator.enums == {"colour": Colour}

    def test_nullability(self):
        assert PydanticToSQL.is_nullable(Optional[int])
        assert PydanticToSQL.is_nullable(Any)
        assert not PydanticToSQL.is_nullable(int)


# ============================================================================
# STATEMENTS
# ============================================================================

class TestExecutionTable:

    def test_table_columns(self, generator):
        ddl = generator.generate_table(ExecutionContext).as_string(None)

        assert ddl.startswith('CREATE TABLE IF NOT EXISTS "recipeapp"."recipe_executions"')
        assert '"execution_id" VARCHAR(64)' in ddl
        assert '"recipe_id" VARCHAR(64) NOT NULL' in ddl
        assert '"status" "recipeapp"."execution_status" NOT NULL DEFAULT \'running\'' in ddl
        assert '"node_outputs" JSONB NOT NULL DEFAULT \'{}\'::jsonb' in ddl
        assert '"action_results" JSONB NOT NULL DEFAULT \'[]\'::jsonb' in ddl
        assert '"cancel_requested" BOOLEAN NOT NULL DEFAULT false' in ddl
        assert '"started_at" TIMESTAMPTZ NOT NULL DEFAULT NOW()' in ddl
        assert 'PRIMARY KEY ("execution_id")' in ddl

    def test_computed_fields_not_stored(self, generator):
        ddl = generator.generate_table(ExecutionContext).as_string(None)
        assert "is_terminal" not in ddl
        assert "duration_ms" not in ddl

    def test_generate_all_order(self, generator):
        statements = _render(generator.generate_all())

        assert statements[0] == 'CREATE SCHEMA IF NOT EXISTS "recipeapp"'
        assert statements[1].startswith("SET search_path")
        enum_index = next(i for i, s in enumerate(statements) if "CREATE TYPE" in s)
        table_index = next(i for i, s in enumerate(statements) if "CREATE TABLE" in s)
        assert enum_index < table_index
        assert sum("CREATE INDEX" in s for s in statements) == 3
        assert any("CREATE TRIGGER" in s for s in statements)

    def test_custom_schema(self):
        statements = _render(PydanticToSQL(schema_name="staging").generate_all())
        assert statements[0] == 'CREATE SCHEMA IF NOT EXISTS "staging"'
        assert all('"recipeapp"' not in s for s in statements)

    def test_destructive_enum(self):
        generator = PydanticToSQL(destructive=True)
        statements = _render(generator.generate_enum("colour", Colour, "recipeapp"))

        assert statements[0] == 'DROP TYPE IF EXISTS "recipeapp"."colour" CASCADE'
        assert statements[1] == "CREATE TYPE \"recipeapp\".\"colour\" AS ENUM ('red', 'blue')"

    def test_dry_run_executes_nothing(self, generator):
        assert generator.execute(None, dry_run=True) == len(generator.generate_all())
