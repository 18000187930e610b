#!/usr/bin/env python
# ============================================================================
# SCHEMA DEPLOYMENT SCRIPT
# ============================================================================
# EPOCH: 1 - RECIPE ENGINE
# PURPOSE: Deploy recipeapp schema to PostgreSQL using PydanticToSQL
# USAGE:
#   python scripts/deploy_schema.py --dry-run    # Preview SQL
#   python scripts/deploy_schema.py              # Execute deployment
#   python scripts/deploy_schema.py --status     # Check current status
# ============================================================================

import sys
import os
import argparse
import logging

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import psycopg
from psycopg import sql

from core.config import get_defaults
from core.schema import PydanticToSQL
from repositories.database import get_connection_string

logger = logging.getLogger(__name__)


def print_status(conn, schema: str) -> int:
    """Print tables, column counts and row counts in the schema."""
    with conn.cursor() as cur:
        cur.execute(
            "SELECT EXISTS (SELECT 1 FROM pg_namespace WHERE nspname = %s)",
            (schema,),
        )
        exists = cur.fetchone()[0]
        print(f"Schema exists: {exists}")
        if not exists:
            return 1

        cur.execute(
            """
            SELECT table_name, COUNT(*) FROM information_schema.columns
            WHERE table_schema = %s
            GROUP BY table_name ORDER BY table_name
            """,
            (schema,),
        )
        tables = cur.fetchall()
        print(f"\nTables ({len(tables)}):")
        for table, columns in tables:
            cur.execute(sql.SQL("SELECT COUNT(*) FROM {}").format(sql.Identifier(schema, table)))
            rows = cur.fetchone()[0]
            print(f"  - {schema}.{table} ({columns} columns, {rows} rows)")
    return 0


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        description="Deploy recipeapp schema to PostgreSQL",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python scripts/deploy_schema.py --dry-run     # Preview DDL without executing
  python scripts/deploy_schema.py               # Deploy schema
  python scripts/deploy_schema.py --status      # Check current installation

Environment Variables:
  DATABASE_URL          Full PostgreSQL connection string
  POSTGRES_HOST         Database host (default: localhost)
  POSTGRES_DB           Database name (default: postgres)
  POSTGRES_USER         Database user (default: postgres)
  POSTGRES_PASSWORD     Database password
  POSTGRES_PORT         Database port (default: 5432)
  DB_SCHEMA             Target schema (default: recipeapp)
        """
    )
    parser.add_argument("--dry-run", action="store_true", help="Print DDL without executing")
    parser.add_argument("--status", action="store_true", help="Check current installation status")
    parser.add_argument("--connection", type=str, help="PostgreSQL connection string (overrides environment)")
    parser.add_argument("--schema", type=str, default=None, help="Target schema (overrides DB_SCHEMA)")
    parser.add_argument("--destructive", action="store_true", help="Drop and recreate enum types")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    schema = args.schema or get_defaults().database.schema
    generator = PydanticToSQL(schema_name=schema, destructive=args.destructive)

    print("=" * 70)
    print("RECIPE ENGINE - Schema Deployment")
    print(f"Schema: {schema}")
    print("=" * 70)

    if args.dry_run and not args.connection and not os.environ.get("DATABASE_URL"):
        # Render without a server; as_string() accepts no context on psycopg >= 3.2
        for stmt in generator.generate_all():
            print(stmt.as_string(None).strip() + ";\n")
        return 0

    conninfo = args.connection or get_connection_string()
    with psycopg.connect(conninfo, autocommit=True) as conn:
        if args.status:
            return print_status(conn, schema)

        if args.dry_run:
            for stmt in generator.generate_all():
                print(stmt.as_string(conn).strip() + ";\n")
            return 0

        try:
            count = generator.execute(conn)
        except psycopg.Error as e:
            logger.error(f"Schema deployment failed: {e}")
            print(f"Deployment failed: {e}")
            return 1

    print(f"Deployment completed: {count} statements executed")
    return 0


if __name__ == "__main__":
    sys.exit(main())
