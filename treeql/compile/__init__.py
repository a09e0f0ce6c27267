"""treeQL compilation layer: query tree → parameterized SQL."""
from treeql.compile.ansi import ANSI
from treeql.compile.base import (
    BacktickQuoter,
    DoubleQuoteQuoter,
    QueryResult,
    Quoter,
    numeric_placeholder,
    qmark_placeholder,
)
from treeql.compile.builder import QueryBuilder
from treeql.compile.context import Binder, CompileContext
from treeql.compile.dialect import Dialect, DialectBuilder
from treeql.compile.expression_builder import ExpressionCompiler
from treeql.compile.mysql import MYSQL
from treeql.compile.postgres import POSTGRES
from treeql.compile.registry import DialectFactory, OperatorRegistry
from treeql.compile.syntax import SyntaxTemplate, parse

__all__ = [
    "ANSI",
    "MYSQL",
    "POSTGRES",
    "BacktickQuoter",
    "Binder",
    "CompileContext",
    "Dialect",
    "DialectBuilder",
    "DialectFactory",
    "DoubleQuoteQuoter",
    "ExpressionCompiler",
    "OperatorRegistry",
    "QueryBuilder",
    "QueryResult",
    "Quoter",
    "SyntaxTemplate",
    "numeric_placeholder",
    "parse",
    "qmark_placeholder",
]
