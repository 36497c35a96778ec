"""Table registry: prefixed table names, column membership and quoting."""

from typing import Dict, Iterable, List, Mapping, Optional

from fluentquery.common.exceptions import table_not_found_error, usage_error


class TableRegistry:
    """Registered tables and their columns, plus identifier quoting.

    Column selection helpers (``pick``, ``except_``) only ever emit columns
    that were registered, so user input routed through them cannot inject
    arbitrary identifiers.

    The default quoting wraps only the column in backticks and leaves the
    table name bare (``users.`id```), which is how MySQL statements built
    against a prefixed table name have always been rendered here.
    """

    def __init__(self, table_prefix: str = ""):
        self._tables: Dict[str, Dict[str, str]] = {}
        self._table_prefix = table_prefix

    @property
    def table_prefix(self) -> str:
        return self._table_prefix

    @table_prefix.setter
    def table_prefix(self, value: str) -> None:
        self._table_prefix = value

    def set_table_prefix(self, prefix: str) -> "TableRegistry":
        self._table_prefix = prefix
        return self

    def add_table(self, name: str, columns: Iterable[str]) -> "TableRegistry":
        """Register ``name`` with ``columns``, replacing any earlier registration."""
        self._tables[name] = {column: column for column in columns}
        return self

    def get_tables(self) -> Dict[str, Dict[str, str]]:
        return self._tables

    def set_tables(self, tables: Mapping[str, Iterable[str]]) -> "TableRegistry":
        self._tables = {name: {c: c for c in columns} for name, columns in tables.items()}
        return self

    def is_table(self, name: str) -> bool:
        return name in self._tables

    def has_column(self, table: str, column: str) -> bool:
        return column in self._tables.get(table, {})

    def get_table(self, name: str) -> str:
        """Return the prefixed table name.

        Raises:
            TableNotFoundError: If ``name`` was never registered.
        """
        if self.is_table(name):
            return f"{self._table_prefix}{name}"
        raise table_not_found_error(name)

    def pick(self, table_to_columns: Mapping[str, List[str]]) -> str:
        """Quote the requested columns of each table, dropping unknown ones.

        Args:
            table_to_columns: ``{"users": ["id", "email"], "posts": ["title"]}``

        Returns:
            Comma separated quoted ``table.column`` references, in mapping
            order and then in requested order.
        """
        picked: List[str] = []
        for table, columns in table_to_columns.items():
            known = self._tables.get(table, {})
            prefixed = self.get_table(table)
            self._ensure_list(table, columns)
            picked.extend(
                self.transform_table_column(prefixed, column)
                for column in columns if column in known
            )
        return ", ".join(picked)

    def pick_table(self, table: str, columns: List[str]) -> str:
        return self.pick({table: columns})

    def get_column(self, table: str, column: str) -> str:
        return self.pick({table: [column]})

    def except_(self, table_to_columns: Mapping[str, List[str]]) -> str:
        """Quote every registered column of each table except the excluded ones."""
        picked: List[str] = []
        for table, excluded in table_to_columns.items():
            known = self._tables.get(table, {})
            prefixed = self.get_table(table)
            self._ensure_list(table, excluded)
            skip = set(excluded)
            picked.extend(
                self.transform_table_column(prefixed, column)
                for column in known if column not in skip
            )
        return ", ".join(picked)

    def pick_table_except(self, table: str, columns: List[str]) -> str:
        return self.except_({table: columns})

    def get_all_columns(self) -> str:
        """Every registered column of every registered table."""
        picked: List[str] = []
        for table, columns in self._tables.items():
            prefixed = self.get_table(table)
            picked.extend(self.transform_table_column(prefixed, column) for column in columns)
        return ", ".join(picked)

    def transform_table_column(self, table: Optional[str], column: str) -> str:
        if not table:
            return f"`{column}`"
        return f"{table}.`{column}`"

    @staticmethod
    def _ensure_list(table: str, columns) -> None:
        if not isinstance(columns, (list, tuple)):
            raise usage_error(
                "Columns to pick should be a list",
                argument=table,
                value=columns,
            )
