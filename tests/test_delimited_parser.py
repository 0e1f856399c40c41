from __future__ import annotations

import unittest

from app.mappers.header_mapper import HeaderMapper
from app.parsers.delimited_parser import (
    DelimitedRowParser,
    HeaderValidationError,
    split_line,
    split_list_field,
)


class TestDelimitedRowParser(unittest.TestCase):
    def setUp(self) -> None:
        self.parser = DelimitedRowParser()
        self.required = HeaderMapper().required_column_groups()

    def test_parses_rows_keyed_by_header(self) -> None:
        text = "Section,Category,Field,Value\nExecutive Summary,Core Metrics,People Served,4960000\n"

        parsed = self.parser.parse(text, required_columns=self.required)
        rows = list(parsed)

        self.assertEqual(parsed.headers, ("Section", "Category", "Field", "Value"))
        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0].line_number, 2)
        self.assertEqual(rows[0].values["Field"], "People Served")
        self.assertEqual(rows[0].values["Value"], "4960000")

    def test_quoted_fields_keep_delimiters_and_escaped_quotes(self) -> None:
        self.assertEqual(
            split_line('executive,"Revenue, net","He said ""hi""",12'),
            ["executive", "Revenue, net", 'He said "hi"', "12"],
        )

    def test_trims_whitespace_around_fields(self) -> None:
        self.assertEqual(split_line("  a ,  b  ,c "), ["a", "b", "c"])

    def test_skips_blank_lines_and_leading_blank_header_lines(self) -> None:
        text = "\n\nsection,metric_name,current_value\n\nexecutive,Donors,10\n   \nfinancial,Revenue,20\n"

        parsed = self.parser.parse(text, required_columns=self.required)

        self.assertEqual(parsed.count(), 2)
        self.assertEqual([row.line_number for row in parsed], [5, 7])

    def test_strips_byte_order_mark_from_header(self) -> None:
        parsed = self.parser.parse("\ufeffsection,field,value\nexecutive,Donors,10", required_columns=self.required)

        self.assertEqual(parsed.headers[0], "section")

    def test_field_count_mismatch_is_a_row_error(self) -> None:
        text = "section,field,value\nexecutive,Donors\nexecutive,Meals,5\n"

        parsed = self.parser.parse(text, required_columns=self.required)
        rows = list(parsed)

        self.assertEqual(len(rows), 1)
        self.assertEqual(len(parsed.errors), 1)
        self.assertEqual(parsed.errors[0].line_number, 2)
        self.assertEqual(parsed.count(), 2)

    def test_iteration_is_restartable(self) -> None:
        parsed = self.parser.parse("section,field,value\na,b,1\nc,d,2\n", required_columns=self.required)

        self.assertEqual(len(list(parsed)), 2)
        self.assertEqual(len(list(parsed)), 2)

    def test_missing_required_column_is_fatal(self) -> None:
        with self.assertRaises(HeaderValidationError) as ctx:
            self.parser.parse("section,field\nexecutive,Donors\n", required_columns=self.required)

        self.assertEqual(ctx.exception.missing_columns, ("current_value",))

    def test_metric_key_satisfies_metric_name_requirement(self) -> None:
        parsed = self.parser.parse("section_key,metric_key,current_value\nexecutive,donors,1", required_columns=self.required)

        self.assertEqual(parsed.count(), 1)

    def test_empty_document_is_fatal(self) -> None:
        with self.assertRaises(HeaderValidationError):
            self.parser.parse("\n \n", required_columns=self.required)

    def test_custom_delimiter(self) -> None:
        parser = DelimitedRowParser(delimiter=";")
        parsed = parser.parse("section;field;value\nexecutive;Donors;1,200", required_columns=self.required)

        self.assertEqual(next(iter(parsed)).values["value"], "1,200")

    def test_split_list_field_accepts_commas_and_semicolons(self) -> None:
        self.assertEqual(split_list_field("Sector avg 12%; Top quartile 18%, Peer median"), (
            "Sector avg 12%",
            "Top quartile 18%",
            "Peer median",
        ))
        self.assertEqual(split_list_field("  "), ())
        self.assertEqual(split_list_field(None), ())


if __name__ == "__main__":
    unittest.main()
