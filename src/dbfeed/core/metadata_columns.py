"""
Mapping from content-query columns to metadata names.
"""

from dbfeed.core.errors import InvalidConfigurationError

# Columns that carry access control and are never emitted as metadata.
ACL_COLUMNS = frozenset({
    "GSA_PERMIT_USERS",
    "GSA_DENY_USERS",
    "GSA_PERMIT_GROUPS",
    "GSA_DENY_GROUPS",
})


class MetadataColumns:
    """
    Parsed ``db.metadataColumns`` value: ``"COL[:name], COL2[:name2]"``.

    Example:
        >>> cols = MetadataColumns("title, AUTHOR_NAME:author")
        >>> cols.get_metadata_name("AUTHOR_NAME")
        'author'
    """

    def __init__(self, spec: str = ""):
        self._columns: dict[str, str] = {}
        for part in (spec or "").split(","):
            part = part.strip()
            if not part:
                continue
            column, _, alias = part.partition(":")
            column = column.strip()
            alias = alias.strip() or column
            if not column:
                raise InvalidConfigurationError(f"Empty column name in metadata columns: {spec!r}")
            self._columns[column] = alias

    def is_metadata_column_name(self, column_name: str) -> bool:
        return column_name in self._columns and column_name not in ACL_COLUMNS

    def get_metadata_name(self, column_name: str) -> str:
        return self._columns[column_name]

    def __len__(self) -> int:
        return len(self._columns)

    def __repr__(self) -> str:
        return f"MetadataColumns({self._columns})"
