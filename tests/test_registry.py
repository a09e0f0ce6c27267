"""Unit tests for registries, dialect composition, configuration and logging."""

from __future__ import annotations

import pytest
from structlog.testing import capture_logs

import treeql
from treeql import BuilderOptions, SQLBuilder
from treeql.compile.ansi import ANSI
from treeql.compile.base import BacktickQuoter, DoubleQuoteQuoter, QueryResult
from treeql.compile.builder import QueryBuilder
from treeql.compile.dialect import DialectBuilder
from treeql.compile.mysql import MYSQL
from treeql.compile.postgres import POSTGRES
from treeql.compile.registry import DialectFactory, OperatorRegistry
from treeql.errors import (
    DialectConfigError,
    TemplateSyntaxError,
    UnknownDialectError,
    UnknownOperatorError,
    ValidationError,
)


def _noop(value, node, identifier, ctx):
    return "NOOP"


def _regexp(value, node, identifier, ctx):
    return f"{ctx.quote(identifier)} REGEXP {ctx.bind(value)}"


@pytest.fixture()
def isolated_factory(monkeypatch):
    """Let a test register dialects without leaking them into other tests."""
    monkeypatch.setattr(DialectFactory, "_dialects", dict(DialectFactory._dialects))


# ---------------------------------------------------------------------------
# OperatorRegistry
# ---------------------------------------------------------------------------


class TestOperatorRegistry:
    def test_fallback_resolution(self):
        base = OperatorRegistry("base")
        base.register("$a", _noop)
        derived = OperatorRegistry("derived", fallback=base)
        assert derived.get("$a") is _noop
        assert "$a" in derived
        assert derived.get("$b") is None

    def test_resolve_miss_names_the_dialect(self):
        registry = OperatorRegistry("derived", fallback=OperatorRegistry("base"))
        with pytest.raises(UnknownOperatorError) as info:
            registry.resolve("$b")
        assert info.value.dialect == "derived"

    def test_override_shadows_base(self):
        base = OperatorRegistry("base")
        base.register("$a", _noop)
        derived = OperatorRegistry("derived", fallback=base)
        derived.register("$a", _regexp)
        assert derived.resolve("$a") is _regexp
        assert base.resolve("$a") is _noop

    def test_decorator_form(self):
        registry = OperatorRegistry("x")

        @registry.register("$shout")
        def _shout(value, node, identifier, ctx):
            return str(value).upper()

        assert registry.resolve("$shout") is _shout

    @pytest.mark.parametrize("name", ["plain", "$", "", 5])
    def test_bad_names(self, name):
        with pytest.raises(DialectConfigError):
            OperatorRegistry("x").register(name, _noop)

    def test_frozen_registry_rejects_registration(self):
        registry = OperatorRegistry("x").freeze()
        assert registry.frozen
        with pytest.raises(DialectConfigError):
            registry.register("$a", _noop)

    def test_registered_operators_include_fallback(self):
        base = OperatorRegistry("base")
        base.register("$a", _noop)
        derived = OperatorRegistry("derived", fallback=base)
        derived.register("$b", _noop)
        assert derived.registered_operators() == ["$a", "$b"]


# ---------------------------------------------------------------------------
# Dialect composition
# ---------------------------------------------------------------------------


class TestDialectBuilder:
    def test_custom_operator_in_derived_dialect(self):
        builder = DialectBuilder("custom", base=ANSI)
        builder.register("$regexp", _regexp)
        dialect = builder.build()

        r = QueryBuilder(dialect).build({"$select": {"$from": "people", "$where": {"name": {"$regexp": "^J"}}}})
        assert r.sql == "SELECT * FROM `people` WHERE `name` REGEXP ?"
        assert r.values == ("^J",)
        assert "$regexp" not in ANSI.registry

    def test_derived_dialect_inherits_templates_and_settings(self):
        dialect = DialectBuilder("plain", base=ANSI).build()
        assert dialect.base is ANSI
        assert dialect.template("$select") is ANSI.template("$select")
        assert dialect.statements == ANSI.statements
        assert dialect.max_limit == ANSI.max_limit

    def test_update_syntax_replaces_wholesale(self):
        builder = DialectBuilder("short", base=ANSI)
        builder.update_syntax("$select", "SELECT [$columns] { FROM [$from] }", defaults={"$columns": "*"})
        dialect = builder.build()

        assert QueryBuilder(dialect).build({"$select": {"$from": "t"}}).sql == "SELECT * FROM `t`"
        with pytest.raises(UnknownOperatorError):
            QueryBuilder(dialect).build({"$select": {"$from": "t", "$limit": 1}})
        assert dialect.is_statement("$select")
        assert ANSI.template("$select").keys >= {"$limit", "$where"}

    def test_custom_filter_predicate(self):
        builder = DialectBuilder("custom", base=ANSI)

        @builder.register("$exists", predicate=True)
        def _exists(value, node, identifier, ctx):
            return f"EXISTS (SELECT 1 FROM {ctx.quote(value)})"

        dialect = builder.build()
        assert dialect.is_predicate("$exists")
        assert dialect.is_predicate("$not")
        assert not ANSI.is_predicate("$exists")

        query = {"$select": {"$from": "people", "$where": {"$exists": "orders", "id": 1}}}
        r = QueryBuilder(dialect).build(query)
        assert r.sql == "SELECT * FROM `people` WHERE EXISTS (SELECT 1 FROM `orders`) AND `id` = ?"
        with pytest.raises(UnknownOperatorError):
            QueryBuilder(ANSI).build(query)

    def test_operator_without_predicate_flag_is_not_a_filter(self):
        builder = DialectBuilder("custom", base=ANSI)
        builder.register("$exists", _noop)
        dialect = builder.build()
        with pytest.raises(UnknownOperatorError):
            QueryBuilder(dialect).build({"$select": {"$from": "people", "$where": {"$exists": "orders"}}})

    def test_update_unknown_syntax(self):
        with pytest.raises(DialectConfigError):
            DialectBuilder("x", base=ANSI).update_syntax("$merge", "MERGE <$table>")

    def test_register_new_statement(self):
        builder = DialectBuilder("x", base=ANSI)
        builder.register_syntax("$truncate", "TRUNCATE TABLE <$table>", statement=True)
        dialect = builder.build()
        assert QueryBuilder(dialect).build({"$truncate": {"$table": "logs"}}).sql == "TRUNCATE TABLE `logs`"
        with pytest.raises(UnknownOperatorError):
            QueryBuilder(ANSI).build({"$truncate": {"$table": "logs"}})

    def test_bad_grammar_fails_at_registration(self):
        with pytest.raises(TemplateSyntaxError):
            DialectBuilder("x", base=ANSI).register_syntax("$broken", "{ NOTHING HERE }")

    def test_builder_is_single_use(self):
        builder = DialectBuilder("x", base=ANSI)
        builder.build()
        with pytest.raises(DialectConfigError):
            builder.register("$a", _noop)
        with pytest.raises(DialectConfigError):
            builder.build()

    def test_built_dialects_are_immutable(self):
        with pytest.raises(DialectConfigError):
            ANSI.registry.register("$a", _noop)
        with pytest.raises(TypeError):
            ANSI.syntax["$select"] = None  # type: ignore[index]
        with pytest.raises(AttributeError):
            ANSI.name = "other"  # type: ignore[misc]

    def test_settings(self):
        assert isinstance(ANSI.quoter, BacktickQuoter)
        assert isinstance(MYSQL.quoter, BacktickQuoter)
        assert isinstance(POSTGRES.quoter, DoubleQuoteQuoter)
        assert POSTGRES.placeholder(3) == "$3"
        assert MYSQL.base is ANSI
        assert POSTGRES.base is ANSI

    def test_composition_is_logged(self):
        with capture_logs() as logs:
            DialectBuilder("logged", base=ANSI).build()
        assert {"event": "dialect.composed", "log_level": "debug"}.items() <= logs[-1].items()
        assert logs[-1]["dialect"] == "logged"
        assert logs[-1]["base"] == "ansi"


# ---------------------------------------------------------------------------
# Quoting
# ---------------------------------------------------------------------------


class TestQuoter:
    @pytest.mark.parametrize(
        "name, expected",
        [
            ("people", "`people`"),
            ("*", "*"),
            ("people.*", "`people`.*"),
            ("db.people.id", "`db`.`people`.`id`"),
            ("odd`name", "`odd``name`"),
        ],
    )
    def test_backticks(self, name, expected):
        assert BacktickQuoter().quote_identifier(name) == expected

    def test_double_quotes(self):
        assert DoubleQuoteQuoter().quote_identifier('a"b.c') == '"a""b"."c"'

    def test_segment_keeps_dots(self):
        assert DoubleQuoteQuoter().quote_segment("fr_FR.UTF8") == '"fr_FR.UTF8"'

    @pytest.mark.parametrize("name", ["", "a..b", ".a", None, 5])
    def test_invalid_identifiers(self, name):
        with pytest.raises(ValidationError):
            BacktickQuoter().quote_identifier(name)


# ---------------------------------------------------------------------------
# DialectFactory / SQLBuilder / BuilderOptions
# ---------------------------------------------------------------------------


class TestDialectFactory:
    def test_builtin_dialects(self):
        assert DialectFactory.get("ansi") is ANSI
        assert DialectFactory.get("MySQL") is MYSQL
        assert DialectFactory.get("postgres") is POSTGRES
        assert {"ansi", "mysql", "postgres", "postgresql"} <= set(DialectFactory.registered_dialects())

    def test_unknown_dialect(self):
        with pytest.raises(UnknownDialectError) as info:
            DialectFactory.get("oracle")
        assert info.value.name == "oracle"
        assert "mysql" in info.value.registered

    def test_register_custom_dialect(self, isolated_factory):
        builder = DialectBuilder("sqlite", base=ANSI)
        builder.quoter(DoubleQuoteQuoter())
        DialectFactory.register_dialect(builder.build(), "sqlite3")

        r = SQLBuilder("sqlite3").build({"$select": {"$from": "people"}})
        assert r.sql == 'SELECT * FROM "people"'
        assert r.dialect == "sqlite"


class TestSQLBuilder:
    def test_default_is_ansi(self):
        assert SQLBuilder().dialect is ANSI

    def test_options(self):
        builder = SQLBuilder(options=BuilderOptions(dialect="mysql"))
        assert builder.dialect is MYSQL
        assert builder.options.dialect == "mysql"

    def test_explicit_dialect_wins_over_options(self):
        builder = SQLBuilder("postgresql", options=BuilderOptions(dialect="mysql"))
        assert builder.dialect is POSTGRES

    def test_unknown_dialect_raises(self):
        with pytest.raises(UnknownDialectError):
            SQLBuilder("oracle")

    def test_fallback_to_ansi(self):
        with capture_logs() as logs:
            builder = SQLBuilder("oracle", options=BuilderOptions(fallback_to_ansi=True))
        assert builder.dialect is ANSI
        assert any(
            log["event"] == "dialect.fallback" and log["log_level"] == "warning" for log in logs
        )

    @pytest.mark.parametrize(
        "data",
        [
            {"dialect": "mysql", "strict": True},
            {"dialect": ""},
            {"fallback_to_ansi": "maybe"},
        ],
    )
    def test_invalid_options(self, data):
        with pytest.raises(ValidationError) as info:
            BuilderOptions.parse(data)
        assert info.value.details["errors"]

    def test_empty_dialect_name(self):
        with pytest.raises(ValidationError):
            SQLBuilder("")

    def test_build_is_logged(self):
        with capture_logs() as logs:
            treeql.build({"$select": {"$from": "people", "$where": {"id": 1}}}, dialect="mysql")
        compiled = [log for log in logs if log["event"] == "query.compiled"]
        assert compiled == [
            {"event": "query.compiled", "log_level": "debug", "dialect": "mysql", "values": 1}
        ]

    def test_failure_is_logged_and_raised(self):
        with capture_logs() as logs, pytest.raises(UnknownOperatorError):
            treeql.build({"$select": {"$from": "people", "$rollup": True}})
        failed = [log for log in logs if log["event"] == "query.compile_failed"]
        assert failed[0]["error"] == "UnknownOperatorError"
        assert failed[0]["code"] == "UNKNOWN_OPERATOR"

    def test_query_result_is_frozen(self):
        result = QueryResult(sql="SELECT 1", values=(), dialect="ansi")
        with pytest.raises(AttributeError):
            result.sql = "SELECT 2"  # type: ignore[misc]
