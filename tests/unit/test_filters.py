"""salesdash.filters: date range, department constraint, facets and text search."""

from __future__ import annotations

from dataclasses import replace

import pandas as pd

from salesdash.data import process_data
from salesdash.filters import ALL, FilterState, default_filters, filter_data, filter_options, normalize_filters


def _range(start, end) -> FilterState:
    return FilterState(start_year=start[0], start_month=start[1], end_year=end[0], end_month=end[1])


class TestDateRange:
    def test_inclusive_both_ends(self, raw_factory) -> None:
        dates = ["2023-02-28", "2023-03-01", "2023-04-15", "2023-05-31", "2023-06-01"]
        data = process_data(raw_factory([{"date": d} for d in dates]))
        out = filter_data(data, _range((2023, 3), (2023, 5)))
        assert out["date"].tolist() == ["2023-03-01", "2023-04-15", "2023-05-31"]

    def test_cross_year_range(self, raw_factory) -> None:
        dates = ["2022-10-01", "2022-11-05", "2023-01-10", "2023-02-01", "2023-03-01"]
        data = process_data(raw_factory([{"date": d} for d in dates]))
        out = filter_data(data, _range((2022, 11), (2023, 2)))
        assert out["date"].tolist() == ["2022-11-05", "2023-01-10", "2023-02-01"]

    def test_inverted_range_is_empty(self, sample_data) -> None:
        assert filter_data(sample_data, _range((2023, 6), (2023, 1))).empty

    def test_open_bounds(self, sample_data) -> None:
        assert len(filter_data(sample_data, FilterState())) == len(sample_data)


class TestDepartmentConstraint:
    def test_constraint_applies(self, sample_data) -> None:
        out = filter_data(sample_data, _range((2020, 1), (2030, 12)), dept_constraint="Sales-A")
        assert set(out["department"]) == {"Sales-A"}

    def test_explicit_filter_cannot_widen(self, sample_data) -> None:
        f = replace(_range((2020, 1), (2030, 12)), department="Sales-B")
        assert filter_data(sample_data, f, dept_constraint="Sales-A").empty

    def test_all_with_constraint(self, sample_data) -> None:
        f = replace(_range((2020, 1), (2030, 12)), department=ALL)
        out = filter_data(sample_data, f, dept_constraint="Sales-B")
        assert len(out) == 2


class TestFacetsAndText:
    def test_exact_facets(self, sample_data) -> None:
        f = replace(_range((2020, 1), (2030, 12)), salesperson="李娜", business_unit="华南事业部")
        out = filter_data(sample_data, f)
        assert out["product_name"].tolist() == ["Premium Soy Sauce"]

    def test_empty_facet_means_all(self, sample_data) -> None:
        f = replace(_range((2020, 1), (2030, 12)), category="")
        assert len(filter_data(sample_data, f)) == len(sample_data)

    def test_category_facet(self, sample_data) -> None:
        f = replace(_range((2020, 1), (2030, 12)), category="食用油")
        assert filter_data(sample_data, f)["product_name"].tolist() == ["压榨花生油5L"]

    def test_product_substring_is_case_sensitive(self, sample_data) -> None:
        f = replace(_range((2020, 1), (2030, 12)), product_name="Soy")
        assert filter_data(sample_data, f)["product_name"].tolist() == ["Premium Soy Sauce"]
        f = replace(f, product_name="soy")
        assert filter_data(sample_data, f).empty

    def test_substring_is_literal(self, raw_factory) -> None:
        data = process_data(raw_factory([{"product_name": "酱油(特级)"}, {"product_name": "酱油特级"}]))
        f = replace(_range((2020, 1), (2030, 12)), product_name="(特级)")
        assert filter_data(data, f)["product_name"].tolist() == ["酱油(特级)"]

    def test_customer_substring(self, sample_data) -> None:
        f = replace(_range((2020, 1), (2030, 12)), customer_name="永辉")
        assert filter_data(sample_data, f)["customer_name"].tolist() == ["永辉超市福州店"]


class TestFilterProperties:
    def test_idempotent(self, sample_data) -> None:
        f = replace(_range((2023, 1), (2023, 12)), department="Sales-A")
        once = filter_data(sample_data, f)
        pd.testing.assert_frame_equal(filter_data(once, f), once)

    def test_preserves_order_and_input(self, sample_data) -> None:
        before = sample_data.copy()
        out = filter_data(sample_data, _range((2023, 1), (2023, 12)))
        assert list(out.index) == sorted(out.index)
        pd.testing.assert_frame_equal(sample_data, before)

    def test_empty_input(self) -> None:
        assert filter_data(pd.DataFrame(), FilterState()).empty


class TestNormalizeFilters:
    def test_defaults_to_latest_year(self) -> None:
        f = normalize_filters({}, available_years=[2021, 2023, 2022])
        assert (f.start_year, f.start_month, f.end_year, f.end_month) == (2023, 1, 2023, 12)
        assert f.department == ALL

    def test_coerces_loose_values(self) -> None:
        f = normalize_filters(
            {"start_year": "2022", "start_month": "0", "end_year": 2023, "end_month": "13", "department": "  ", "product_name": " 油 "},
            available_years=[2023],
        )
        assert (f.start_year, f.start_month, f.end_year, f.end_month) == (2022, 1, 2023, 12)
        assert f.department == ALL
        assert f.product_name == "油"

    def test_no_years(self) -> None:
        f = normalize_filters({})
        assert f.start_key() is None and f.end_key() is None

    def test_linearized_keys(self) -> None:
        f = _range((2022, 11), (2023, 2))
        assert (f.start_key(), f.end_key()) == (202211, 202302)

    def test_default_filters_for_department(self) -> None:
        f = default_filters([2022, 2023], department="Sales-A")
        assert f.department == "Sales-A"
        assert f.start_year == 2023


class TestFilterOptions:
    def test_sorted_distinct(self, sample_data) -> None:
        opts = filter_options(sample_data)
        assert opts["department"] == ["Sales-A", "Sales-B"]
        assert opts["salesperson"] == sorted({"张伟", "王芳", "李娜"})

    def test_constrained(self, sample_data) -> None:
        opts = filter_options(sample_data, "Sales-B")
        assert opts["department"] == ["Sales-B"]
        assert opts["salesperson"] == ["李娜"]

    def test_empty(self) -> None:
        assert filter_options(pd.DataFrame())["category"] == []
