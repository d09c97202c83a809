import altair as alt
import pandas as pd
import streamlit as st
from contextlib import contextmanager
from dataclasses import asdict
from typing import List, Optional

from salesdash.charts import ranking_chart, share_chart, trend_chart
from salesdash.config import configure_logging, get_settings
from salesdash.data import format_wan, read_records_file
from salesdash.errors import AuthenticationError, IngestionError
from salesdash.export import build_summary_csv, summary_filename
from salesdash.filters import ALL, FilterState, default_filters, filter_data, filter_options
from salesdash.metrics import (
    ADMIN_STAT_FIELDS,
    AggregatedPoint,
    PAGE_SIZE,
    aggregate_by_field,
    annual_totals,
    get_trend_data,
    paginate,
)
from salesdash.session import UserSession, authenticate
from salesdash.store import current_snapshot, get_store

alt.data_transformers.disable_max_rows()
settings = get_settings()
configure_logging(settings.log_level)


# ---------- UI / layout helpers ----------
def inject_base_styles():
    if st.session_state.get("_base_css_injected"):
        return
    st.markdown(
        """
        <style>
        .app-top-bar {padding: 6px 0 4px;border-bottom: 1px solid #e5e7eb;margin-bottom: 10px;}
        .app-top-bar .breadcrumb {color: #6b7280;font-size: 0.9rem;margin-bottom: 2px;}
        .app-top-bar .page-title {font-size: 1.4rem;font-weight: 700;color: #111827;}
        .card {border: 1px solid #e5e7eb;border-radius: 12px;padding: 16px;background: #ffffff;
               box-shadow: 0 1px 2px rgba(0,0,0,0.04); margin-bottom: 12px;}
        .card-title {font-weight: 600;font-size: 1.0rem;color: #111827;margin-bottom: 8px;}
        .chip-row {display: flex;flex-wrap: wrap;gap: 6px;margin-top: 6px;}
        .chip {background: #f3f4f6;border: 1px solid #e5e7eb;border-radius: 14px;padding: 4px 10px;font-size: 0.85rem;color: #374151;}
        </style>
        """,
        unsafe_allow_html=True,
    )
    st.session_state["_base_css_injected"] = True


@contextmanager
def card(title: str):
    container = st.container()
    container.markdown(f"<div class='card'><div class='card-title'>{title}</div>", unsafe_allow_html=True)
    body = container.container()
    with body:
        yield body
    container.markdown("</div>", unsafe_allow_html=True)


def format_filter_summary(filters: FilterState) -> str:
    chips = [f"Period: {filters.start_year}-{filters.start_month:02d} → {filters.end_year}-{filters.end_month:02d}"]
    for label, value in [
        ("Business unit", filters.business_unit),
        ("Department", filters.department),
        ("Salesperson", filters.salesperson),
        ("Category", filters.category),
        ("Sub-category", filters.sub_category),
    ]:
        if value and value != ALL:
            chips.append(f"{label}: {value}")
    for label, value in [("Customer", filters.customer_name), ("Product", filters.product_name)]:
        if value:
            chips.append(f"{label} ~ {value}")
    return "".join([f"<span class='chip'>{txt}</span>" for txt in chips])


def render_ranking(title: str, points: List[AggregatedPoint], key: str):
    with card(title):
        if not points:
            st.info("No data.")
            return
        page_key = f"page_{key}"
        total_pages = max(1, -(-len(points) // PAGE_SIZE))
        page = st.number_input("Page", min_value=1, max_value=total_pages, value=1, step=1, key=page_key)
        result = paginate(points, page=int(page), page_size=PAGE_SIZE)
        table = pd.DataFrame(result["rows"], columns=["rank", "name", "value", "percentage"])
        table["value"] = table["value"].apply(format_wan)
        table["percentage"] = table["percentage"].apply(lambda v: f"{v:.1f}%")
        st.dataframe(table, hide_index=True, use_container_width=True)
        st.caption(f"Page {result['page']} / {result['total_pages']}")


# ---------- Login ----------
st.set_page_config(page_title="Sales Dashboard", layout="wide")
inject_base_styles()

session: Optional[UserSession] = st.session_state.get("session")
if session is None:
    st.title("Sales Dashboard")
    with st.form("login"):
        username = st.text_input("Username (admin or department name)")
        password = st.text_input("Password", type="password")
        submitted = st.form_submit_button("Sign in")
    if submitted:
        try:
            st.session_state["session"] = authenticate(username, password, settings)
            st.session_state.pop("filters", None)
            st.rerun()
        except AuthenticationError as exc:
            st.error(str(exc))
    st.stop()

snapshot = current_snapshot()
data = snapshot.processed
years = snapshot.years

# A new dataset generation resets the filters to the defaults for that data.
if st.session_state.get("generation") != snapshot.generation or "filters" not in st.session_state:
    st.session_state["filters"] = asdict(default_filters(years, department=session.department_filter))
    st.session_state["generation"] = snapshot.generation
current = st.session_state["filters"]
options = filter_options(data, session.department_filter)

# ----- Sidebar: account + filters -----
with st.sidebar:
    st.markdown(f"### {session.username}")
    st.caption("Administrator" if session.is_admin else f"Department account · {session.department_filter}")
    if st.button("Sign out"):
        for k in ["session", "filters", "generation"]:
            st.session_state.pop(k, None)
        st.rerun()

    if session.is_admin:
        st.markdown("---")
        st.markdown("### Data source")
        st.caption(f"{snapshot.source} · {len(data):,} records" + (" · custom" if snapshot.is_custom else ""))
        upload = st.file_uploader("Import data (Excel/JSON)", type=["json", "xlsx", "xls"])
        if upload is not None and st.button("Load file"):
            try:
                get_store().replace(read_records_file(upload.getvalue(), upload.name), source=upload.name)
                st.rerun()
            except IngestionError as exc:
                st.error(str(exc))
        if snapshot.is_custom and st.button("Reset to mock data"):
            get_store().reset(settings)
            st.rerun()

    st.markdown("---")
    st.markdown("### Filters")
    year_options = years or [None]
    month_options = list(range(1, 13))

    def _index(seq, value, default=0):
        return seq.index(value) if value in seq else default

    c1, c2 = st.columns(2)
    start_year = c1.selectbox("Start year", year_options, index=_index(year_options, current["start_year"]))
    start_month = c2.selectbox("Start month", month_options, index=_index(month_options, current["start_month"]), format_func=lambda m: f"{m}月")
    c3, c4 = st.columns(2)
    end_year = c3.selectbox("End year", year_options, index=_index(year_options, current["end_year"]))
    end_month = c4.selectbox("End month", month_options, index=_index(month_options, current["end_month"], 11), format_func=lambda m: f"{m}月")

    def _facet(label: str, name: str) -> str:
        choices = [ALL] + options[name]
        return st.selectbox(label, choices, index=_index(choices, current[name]))

    if session.is_admin:
        business_unit = _facet("Business unit", "business_unit")
        department = _facet("Department", "department")
    else:
        business_unit, department = ALL, current["department"]
    salesperson = _facet("Salesperson", "salesperson")
    category = _facet("Category", "category")
    sub_category = _facet("Sub-category", "sub_category")
    customer_name = st.text_input("Customer name contains", current["customer_name"])
    product_name = st.text_input("Product name contains", current["product_name"])

filters = FilterState(
    start_year=start_year,
    start_month=start_month,
    end_year=end_year,
    end_month=end_month,
    business_unit=business_unit,
    department=department,
    salesperson=salesperson,
    category=category,
    sub_category=sub_category,
    customer_name=customer_name.strip(),
    product_name=product_name.strip(),
)
st.session_state["filters"] = asdict(filters)

filtered = filter_data(data, filters, session.department_filter)
stats = {name: aggregate_by_field(filtered, name) for name in ADMIN_STAT_FIELDS}
trend_points, trend_years = get_trend_data(filtered)

# ----- Header -----
top = st.container()
h1, h2 = top.columns([8, 2])
with h1:
    st.markdown(
        "<div class='app-top-bar'><div class='breadcrumb'>Home / Dashboard</div><div class='page-title'>Sales Dashboard</div></div>",
        unsafe_allow_html=True,
    )
with h2:
    if session.is_admin:
        st.download_button(
            "Export summary CSV",
            data=build_summary_csv(stats).encode("utf-8"),
            file_name=summary_filename(),
            mime="text/csv",
        )
st.markdown(f"<div class='chip-row'>{format_filter_summary(filters)}</div>", unsafe_allow_html=True)

# ----- KPI tiles -----
k1, k2, k3 = st.columns(3)
k1.metric("Total amount", format_wan(filtered["amount"].sum() if not filtered.empty else 0.0))
k2.metric("Total quantity", f"{filtered['quantity'].sum() if not filtered.empty else 0:,.0f}")
k3.metric("Records", f"{len(filtered):,}")

with card("Year-over-year monthly trend"):
    if not trend_years:
        st.info("No data for the selected filters.")
    else:
        st.altair_chart(trend_chart(trend_points, trend_years), use_container_width=True)
        totals = annual_totals(filtered)
        st.caption(" · ".join(f"{y}: {format_wan(v)}" for y, v in totals.items()))

if session.is_admin:
    row1 = st.columns(2)
    with row1[0]:
        with card("Department share"):
            if stats["department"]:
                st.altair_chart(share_chart(stats["department"], inner_radius=60), use_container_width=True)
            else:
                st.info("No data.")
    with row1[1]:
        with card("Salesperson ranking (top 10)"):
            if stats["salesperson"]:
                st.altair_chart(ranking_chart(stats["salesperson"]), use_container_width=True)
            else:
                st.info("No data.")
    row2 = st.columns(2)
    with row2[0]:
        with card("Category share"):
            if stats["category"]:
                st.altair_chart(share_chart(stats["category"]), use_container_width=True)
            else:
                st.info("No data.")
    with row2[1]:
        render_ranking("Sub-category ranking", stats["sub_category"], "sub_category")
    row3 = st.columns(2)
    with row3[0]:
        render_ranking("Customer ranking", stats["customer_name"], "customer_name")
    with row3[1]:
        render_ranking("Product ranking", stats["product_name"], "product_name")
else:
    row1 = st.columns(2)
    with row1[0]:
        with card("Team performance"):
            if stats["salesperson"]:
                st.altair_chart(ranking_chart(stats["salesperson"], top_n=len(stats["salesperson"])), use_container_width=True)
            else:
                st.info("No data.")
    with row1[1]:
        with card("Category mix"):
            if stats["category"]:
                st.altair_chart(share_chart(stats["category"], inner_radius=0), use_container_width=True)
            else:
                st.info("No data.")
    row2 = st.columns(2)
    with row2[0]:
        render_ranking("Customer distribution", stats["customer_name"], "customer_name")
    with row2[1]:
        render_ranking("Sub-category detail", stats["sub_category"], "sub_category")
    render_ranking("Best-selling products", stats["product_name"], "product_name")
