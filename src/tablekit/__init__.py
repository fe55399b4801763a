"""Data-table query composition: fields, filters, search, sort and pagination over SQLAlchemy."""

from __future__ import annotations

from .codec import decode_filters, encode_filters, update_filter_params
from .composer import list_resources, project_columns
from .config import DEFAULT_TABLE_OPTIONS, TableOptions, deep_merge, resolve_table_options
from .exceptions import (
    ConfigurationError,
    DuplicateKeyError,
    FilterDecodeError,
    TableError,
    UnknownAssociationError,
    UnknownFieldError,
)
from .execution import fetch_page
from .expressions import Bindings, Expr, F
from .fields import FieldDescriptor, FieldRef, field
from .filters import (
    BooleanFilter,
    Filter,
    RangeFilter,
    SelectFilter,
    TransformerFilter,
    apply_filters,
    apply_transformers,
)
from .joins import association_alias, join_associations, required_associations
from .options import PaginationSpec, QueryOptions, SortSpec
from .pagination import PageResult, PaginationParser, next_page, paginate, split_overflow
from .provider import CustomQueryProvider, SchemaProvider
from .query_string import (
    build_query_options,
    build_query_string,
    encode_query_options,
    parse_query_string,
    parse_sort_params,
)
from .resource import TableResource
from .search import SearchMode, build_search_condition
from .sorting import SortDirection, apply_sort, merge_sort_params, sort_toggle

__all__ = [
    "DEFAULT_TABLE_OPTIONS",
    "Bindings",
    "BooleanFilter",
    "ConfigurationError",
    "CustomQueryProvider",
    "DuplicateKeyError",
    "Expr",
    "F",
    "FieldDescriptor",
    "FieldRef",
    "Filter",
    "FilterDecodeError",
    "PageResult",
    "PaginationParser",
    "PaginationSpec",
    "QueryOptions",
    "RangeFilter",
    "SchemaProvider",
    "SearchMode",
    "SelectFilter",
    "SortDirection",
    "SortSpec",
    "TableError",
    "TableOptions",
    "TableResource",
    "TransformerFilter",
    "UnknownAssociationError",
    "UnknownFieldError",
    "apply_filters",
    "apply_sort",
    "apply_transformers",
    "association_alias",
    "build_query_options",
    "build_query_string",
    "build_search_condition",
    "decode_filters",
    "deep_merge",
    "encode_filters",
    "encode_query_options",
    "fetch_page",
    "field",
    "join_associations",
    "list_resources",
    "merge_sort_params",
    "next_page",
    "paginate",
    "parse_query_string",
    "parse_sort_params",
    "project_columns",
    "required_associations",
    "resolve_table_options",
    "sort_toggle",
    "split_overflow",
]
