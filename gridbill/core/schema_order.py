"""
Schema bootstrap planning.

Orders table definitions so every table is created after the tables its
foreign keys reference, and emits the DDL to build them.

Bootstrap runs in two phases:
1. CREATE TABLE for every table, without foreign keys
2. ALTER TABLE ... ADD CONSTRAINT for every foreign key

The topological sort is a pure function over an explicit graph value. When
it reports a cycle the planner falls back to declaration order; the
deferred constraints make that order safe.
"""

import json
import logging
import re
from collections import deque
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)

RESERVED_WORDS = {"DATE"}

# Constraint names are capped for dialects with short identifiers
MAX_CONSTRAINT_NAME = 30

_REFERENCE_PATTERN = re.compile(r'REFERENCES\s+([A-Za-z0-9_"\-]+)\s*\(([^)]+)\)', re.IGNORECASE)


@dataclass(frozen=True)
class DependencyGraph:
    """Table dependency graph.

    ``edges[a]`` lists the tables that reference ``a`` (edge from referenced
    to referencing table); ``in_degree[t]`` counts the references ``t``
    makes. ``nodes`` keeps declaration order.
    """
    nodes: List[str]
    edges: Dict[str, List[str]]
    in_degree: Dict[str, int]


@dataclass(frozen=True)
class SortResult:
    """Outcome of a topological sort; ``order`` is None on a cycle."""
    order: Optional[List[str]]
    cycle_detected: bool


@dataclass(frozen=True)
class BootstrapPlan:
    """DDL statements in execution order."""
    create_statements: List[str]
    constraint_statements: List[str]
    cycle_detected: bool

    @property
    def statements(self) -> List[str]:
        return self.create_statements + self.constraint_statements


def to_identifier(name: str) -> str:
    """Normalize a table or column name to an unquoted upper-case identifier."""
    cleaned = re.sub(r"[^A-Za-z0-9_]", "_", name).upper()
    if cleaned in RESERVED_WORDS:
        return f"{cleaned}_COL"
    return cleaned


def _parse_reference(table_name: str, column: str, reference: str):
    match = _REFERENCE_PATTERN.search(reference)
    if not match:
        raise ValueError(f"Invalid foreign key format for {table_name}.{column}: {reference}")
    ref_table = to_identifier(match.group(1).replace('"', ""))
    ref_column = to_identifier(match.group(2).strip())
    return ref_table, ref_column


def _single_entry(mapping: Dict, what: str):
    if not isinstance(mapping, dict) or len(mapping) != 1:
        raise ValueError(f"{what} must be a single-entry mapping, got: {mapping!r}")
    return next(iter(mapping.items()))


def table_dependencies(table: Dict) -> List[str]:
    """Identifiers of the tables this table references."""
    deps = []
    name = to_identifier(table["name"])
    for fk in table.get("foreign_keys") or []:
        column, reference = _single_entry(fk, f"Foreign key on {name}")
        ref_table, _ = _parse_reference(name, column, reference)
        deps.append(ref_table)
    return deps


def build_dependency_graph(tables: List[Dict]) -> DependencyGraph:
    """Build the dependency graph for a list of table definitions.

    References to tables outside the list are ignored; they are assumed to
    exist already.
    """
    nodes = [to_identifier(t["name"]) for t in tables]
    edges: Dict[str, List[str]] = {n: [] for n in nodes}
    in_degree: Dict[str, int] = {n: 0 for n in nodes}

    for table in tables:
        dependent = to_identifier(table["name"])
        for dep in table_dependencies(table):
            if dep not in edges:
                continue
            edges[dep].append(dependent)
            in_degree[dependent] += 1

    return DependencyGraph(nodes=nodes, edges=edges, in_degree=in_degree)


def topological_order(graph: DependencyGraph) -> SortResult:
    """Kahn's algorithm over a dependency graph.

    Ties are broken by declaration order. The input graph is not modified.

    Returns:
        SortResult with the total order, or cycle_detected=True when some
        tables could not be ordered
    """
    remaining = dict(graph.in_degree)
    queue = deque(n for n in graph.nodes if remaining[n] == 0)
    order = []

    while queue:
        node = queue.popleft()
        order.append(node)
        for neighbour in graph.edges[node]:
            remaining[neighbour] -= 1
            if remaining[neighbour] == 0:
                queue.append(neighbour)

    if len(order) != len(graph.nodes):
        return SortResult(order=None, cycle_detected=True)
    return SortResult(order=order, cycle_detected=False)


def build_create_table_sql(table: Dict) -> str:
    """CREATE TABLE statement for a table definition, without foreign keys."""
    name = to_identifier(table["name"])
    columns = table.get("columns") or []
    if not columns:
        raise ValueError(f"Table {name} has no columns")
    column_defs = []
    for column in columns:
        col_name, col_type = _single_entry(column, f"Column on {name}")
        column_defs.append(f"{to_identifier(col_name)} {col_type}")
    body = ",\n  ".join(column_defs)
    return f"CREATE TABLE {name} (\n  {body}\n)"


def build_foreign_key_statements(table: Dict) -> List[str]:
    """ALTER TABLE statements adding each foreign key of a table."""
    name = to_identifier(table["name"])
    statements = []
    for idx, fk in enumerate(table.get("foreign_keys") or [], start=1):
        column, reference = _single_entry(fk, f"Foreign key on {name}")
        ref_table, ref_column = _parse_reference(name, column, reference)
        col = to_identifier(column)
        constraint = f"FK_{name}_{col}_{idx}"[:MAX_CONSTRAINT_NAME]
        statements.append(
            f"ALTER TABLE {name} ADD CONSTRAINT {constraint} "
            f"FOREIGN KEY ({col}) REFERENCES {ref_table}({ref_column})"
        )
    return statements


def plan_bootstrap(tables: List[Dict]) -> BootstrapPlan:
    """Plan the two-phase creation of a schema.

    Args:
        tables: Table definitions with ``name``, ``columns`` and optional
            ``foreign_keys``

    Returns:
        BootstrapPlan with CREATE statements in dependency order (declaration
        order on a cycle) followed by every foreign key constraint

    Raises:
        ValueError: If a definition is malformed
    """
    by_name = {to_identifier(t["name"]): t for t in tables}
    if len(by_name) != len(tables):
        raise ValueError("Duplicate table names in schema definition")

    result = topological_order(build_dependency_graph(tables))
    if result.cycle_detected:
        logger.warning("Circular foreign key dependency detected; using declaration order")
        ordered = list(tables)
    else:
        ordered = [by_name[n] for n in result.order]

    create_statements = [build_create_table_sql(t) for t in ordered]
    constraint_statements = [stmt for t in tables for stmt in build_foreign_key_statements(t)]

    return BootstrapPlan(
        create_statements=create_statements,
        constraint_statements=constraint_statements,
        cycle_detected=result.cycle_detected
    )


def load_table_specs(path: str) -> List[Dict]:
    """Read table definitions from a JSON schema file.

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValueError: If the JSON has no ``tables`` list
    """
    schema_path = Path(path)
    if not schema_path.exists():
        raise FileNotFoundError(f"Schema file not found: {path}")
    with open(schema_path, "r", encoding="utf-8") as f:
        raw = json.load(f)
    tables = raw.get("tables") if isinstance(raw, dict) else None
    if not isinstance(tables, list):
        raise ValueError("Schema file must contain a 'tables' list")
    return tables
