"""Unit tests for the MySQL dialect."""

from __future__ import annotations

import pytest

from treeql import SQLBuilder
from treeql.errors import UnknownOperatorError, ValidationError


class TestMySQLSelect:
    def test_calc_found_rows_and_rollup(self, mysql: SQLBuilder):
        r = mysql.build(
            {
                "$select": {
                    "$calcFoundRows": True,
                    "$columns": {"job_title": 1, "total_salary": {"$sum": "salary"}},
                    "$from": "people",
                    "$groupBy": "job_title",
                    "$rollup": True,
                }
            }
        )
        assert r.sql == (
            "SELECT SQL_CALC_FOUND_ROWS `job_title`, SUM(`salary`) AS `total_salary` "
            "FROM `people` GROUP BY `job_title` WITH ROLLUP"
        )
        assert r.values == ()

    def test_rollup_false_is_absent(self, mysql: SQLBuilder):
        query = {"$select": {"$columns": ["a"], "$from": "t", "$groupBy": "a"}}
        without = mysql.build(query)
        disabled = mysql.build({"$select": {**query["$select"], "$rollup": False}})
        assert disabled.sql == without.sql == "SELECT `a` FROM `t` GROUP BY `a`"

    @pytest.mark.parametrize("rollup", [True, "yes"])
    def test_rollup_requires_group_by(self, mysql: SQLBuilder, rollup):
        with pytest.raises(ValidationError) as info:
            mysql.build({"$select": {"$from": "t", "$rollup": rollup}})
        assert info.value.operator == "$rollup"

    def test_into_variables(self, mysql: SQLBuilder):
        r = mysql.build(
            {
                "$select": {
                    "$columns": ["first_name", "last_name"],
                    "$into": ["@firstname", "@lastname"],
                    "$from": "people",
                }
            }
        )
        assert r.sql == "SELECT `first_name`, `last_name` INTO @firstname, @lastname FROM `people`"
        assert len(r.values) == 0

    @pytest.mark.parametrize("variable", ["1abc", "@a b", "@x; DROP TABLE t", 5])
    def test_into_rejects_bad_variables(self, mysql: SQLBuilder, variable):
        with pytest.raises(ValidationError):
            mysql.build({"$select": {"$from": "people", "$into": [variable]}})

    def test_outfile(self, mysql: SQLBuilder):
        r = mysql.build(
            {
                "$select": {
                    "$columns": ["first_name", "last_name"],
                    "$from": "people",
                    "$outfile": {
                        "$file": "/tmp/people.txt",
                        "$fields": {"$terminatedBy": ", ", "$enclosedBy": '"', "$escapedBy": "\\"},
                        "$lines": {"$terminatedBy": "\n"},
                    },
                }
            }
        )
        assert r.sql == (
            "SELECT `first_name`, `last_name` FROM `people` INTO OUTFILE ? "
            "FIELDS TERMINATED BY ? ENCLOSED BY ? ESCAPED BY ? LINES TERMINATED BY ?"
        )
        assert r.values == ("/tmp/people.txt", ", ", '"', "\\", "\n")

    def test_outfile_lines_only(self, mysql: SQLBuilder):
        r = mysql.build(
            {
                "$select": {
                    "$from": "people",
                    "$outfile": {"$file": "/tmp/p.txt", "$lines": {"$startingBy": "> ", "$terminatedBy": "\n"}},
                }
            }
        )
        assert r.sql == "SELECT * FROM `people` INTO OUTFILE ? LINES STARTING BY ? TERMINATED BY ?"
        assert r.values == ("/tmp/p.txt", "> ", "\n")

    def test_empty_fields_block_renders_nothing(self, mysql: SQLBuilder):
        r = mysql.build({"$select": {"$from": "people", "$outfile": {"$file": "/tmp/p.txt", "$fields": {}}}})
        assert r.sql == "SELECT * FROM `people` INTO OUTFILE ?"

    def test_into_outfile_before_from(self, mysql: SQLBuilder):
        r = mysql.build({"$select": {"$from": "people", "$into": {"$outfile": {"$file": "/tmp/p.txt"}}}})
        assert r.sql == "SELECT * INTO OUTFILE ? FROM `people`"

    def test_into_dumpfile(self, mysql: SQLBuilder):
        r = mysql.build({"$select": {"$from": "people", "$into": {"$dumpfile": "/tmp/row.bin"}}})
        assert r.sql == "SELECT * INTO DUMPFILE ? FROM `people`"
        assert r.values == ("/tmp/row.bin",)

    def test_into_unknown_target(self, mysql: SQLBuilder):
        with pytest.raises(UnknownOperatorError):
            mysql.build({"$select": {"$from": "people", "$into": {"$pipe": "x"}}})

    @pytest.mark.parametrize(
        "options",
        [
            {"$file": "/tmp/p.txt", "$format": "csv"},
            {"$file": "/tmp/p.txt", "$fields": {"$terminatedBy": 1}},
            {"$file": "/tmp/p.txt", "$lines": {"$endingBy": "\n"}},
            {"$fields": {"$terminatedBy": ","}},
            {"$file": ""},
            "/tmp/p.txt",
        ],
    )
    def test_outfile_options_are_validated(self, mysql: SQLBuilder, options):
        with pytest.raises(ValidationError) as info:
            mysql.build({"$select": {"$from": "people", "$outfile": options}})
        assert info.value.operator == "$outfile"
        assert info.value.details["errors"]

    def test_limit_all(self, mysql: SQLBuilder):
        r = mysql.build({"$select": {"$from": "people", "$limit": "all", "$offset": 5}})
        assert r.sql == "SELECT * FROM `people` LIMIT 18446744073709551615 OFFSET ?"
        assert r.values == (5,)

    def test_inherits_ansi_filters(self, mysql: SQLBuilder):
        r = mysql.build({"$select": {"$from": "people", "$where": {"age": {"$gte": 21}}}})
        assert r.sql == "SELECT * FROM `people` WHERE `age` >= ?"

    def test_postgres_only_operator_rejected(self, mysql: SQLBuilder):
        with pytest.raises(UnknownOperatorError):
            mysql.build({"$select": {"$from": "people", "$where": {"name": {"$ilike": "j%"}}}})


class TestMySQLCreateTable:
    def test_auto_increment_and_comment(self, mysql: SQLBuilder):
        r = mysql.build(
            {
                "$createTable": {
                    "$table": "people",
                    "$define": {
                        "id": {
                            "$column": {
                                "$type": "INT",
                                "$notNull": True,
                                "$autoIncrement": True,
                                "$primary": True,
                                "$comment": "row id",
                            }
                        },
                    },
                }
            }
        )
        assert r.sql == (
            "CREATE TABLE `people` (`id` INT NOT NULL AUTO_INCREMENT PRIMARY KEY COMMENT ?)"
        )
        assert r.values == ("row id",)

    def test_comment_must_be_string(self, mysql: SQLBuilder):
        with pytest.raises(ValidationError):
            mysql.build(
                {"$createTable": {"$table": "t", "$define": {"id": {"$column": {"$type": "INT", "$comment": 1}}}}}
            )
