import altair as alt
import pandas as pd
import streamlit as st
from contextlib import contextmanager
from typing import Dict, List, Optional

from auditor.charts import volume_group_chart
from auditor.columns import PCT_COLS, VOLUME_GROUP_COL
from auditor.data import UploadParseError, format_percent_columns, load_campaign_data, prepare_context, volume_group_labels
from auditor.filters import DEFAULT_CUTOFFS, format_cutoff_list, normalize_filters
from auditor.metrics_comparison import comparison_metrics
from auditor.metrics_debug import compute_debug
from auditor.metrics_summary import summary_metrics

alt.data_transformers.disable_max_rows()
# ---------- UI / layout helpers ----------
def inject_base_styles():
    if st.session_state.get("_base_css_injected"):
        return
    st.markdown(
        """
        <style>
        .card {border: 1px solid #e5e7eb;border-radius: 12px;padding: 16px;background: #ffffff;
               box-shadow: 0 1px 2px rgba(0,0,0,0.04); margin-bottom: 12px;}
        .card-header {display: flex;justify-content: space-between;align-items: center;margin-bottom: 8px;}
        .card-title {font-weight: 600;font-size: 1.0rem;color: #111827;}
        .card-actions {font-size: 0.9rem;color: #2563eb;}
        </style>
        """,
        unsafe_allow_html=True,
    )
    st.session_state["_base_css_injected"] = True


@contextmanager
def card(title: str, actions: Optional[str] = None):
    container = st.container()
    container.markdown(
        f"""
        <div class="card">
          <div class="card-header">
            <div class="card-title">{title}</div>
            <div class="card-actions">{actions or ""}</div>
          </div>
        """,
        unsafe_allow_html=True,
    )
    body = container.container()
    with body:
        yield body
    container.markdown("</div>", unsafe_allow_html=True)


def reset_session():
    # Bumping the uploader key remounts the widget so the old file is dropped too.
    generation = st.session_state.get("uploader_gen", 0) + 1
    for key in list(st.session_state.keys()):
        del st.session_state[key]
    st.session_state["uploader_gen"] = generation


def render_column_filters(columns: List[str]) -> Dict[str, Dict[str, str]]:
    out: Dict[str, Dict[str, str]] = {}
    chosen = st.multiselect("Columns to filter", [c for c in columns if "date" not in c.lower()], key="filter_cols")
    for col in chosen:
        st.caption(col)
        equals = st.text_input("Equals", key=f"eq_{col}")
        c1, c2 = st.columns(2)
        low = c1.text_input("Min", key=f"min_{col}")
        high = c2.text_input("Max", key=f"max_{col}")
        contains = st.text_input("Contains", key=f"contains_{col}")
        out[col] = {"equals": equals, "min": low, "max": high, "contains": contains}
    return out


def render_audit_settings(numeric_cols: List[str]) -> Dict[str, object]:
    enabled = st.checkbox("Enable Audit Highlighting", key="audit_enabled")
    isolate = st.toggle("Only Show Rows Failing Audit", key="audit_isolate")
    rules: Dict[str, Dict[str, object]] = {}
    mode = "OR"
    if enabled:
        mode_label = st.radio("Audit Logic Mode", ["Match ANY (OR)", "Match ALL (AND)"], key="audit_mode")
        mode = "AND" if "AND" in mode_label else "OR"
        targets = st.multiselect("Audit Metrics", numeric_cols, key="audit_targets")
        for t in targets:
            op = st.selectbox(f"Condition for {t}", ["<", "<=", ">", ">="], key=f"audit_op_{t}")
            step = 0.001 if t in PCT_COLS else 1.0
            threshold = st.number_input(f"Threshold for {t}", value=0.0, step=step, key=f"audit_val_{t}")
            rules[t] = {"op": op, "threshold": threshold}
    return {"enabled": enabled, "mode": mode, "rules": rules, "isolate": isolate}


def render_comparison_settings(columns: List[str]) -> Dict[str, object]:
    enabled = st.checkbox("Enable Side-by-Side Comparison", key="compare_enabled")
    if not enabled:
        return {"enabled": False}
    default_idx = columns.index(VOLUME_GROUP_COL) if VOLUME_GROUP_COL in columns else 0
    column = st.selectbox("Column to Compare", columns, index=default_idx, key="compare_col")
    segment_a = st.text_input("Segment A Search", key="segment_a")
    segment_b = st.text_input("Segment B Search", key="segment_b")
    return {"enabled": True, "column": column, "segment_a": segment_a, "segment_b": segment_b}


def render_comparison(result: Optional[Dict[str, object]]):
    if not result:
        return
    a, b, deltas = result["segment_a"], result["segment_b"], result["deltas"]
    with card("Segment Comparison", f"{result['column']}"):
        c1, c2, c3 = st.columns(3)
        c1.info(f"Segment A: {a['name']} ({a['count']} items)")
        c1.metric("Open Rate", f"{a['open_rate']:.2%}")
        c1.metric("Click Rate", f"{a['click_rate']:.2%}")
        c1.metric("CTOR", f"{a['click_to_open_rate']:.2%}")
        c2.metric("Open Rate Delta", f"{deltas['open_rate']:.2%}", delta=f"{deltas['open_rate']:.2%}")
        c2.metric("CTOR Delta", f"{deltas['click_to_open_rate']:.2%}", delta=f"{deltas['click_to_open_rate']:.2%}")
        c3.info(f"Segment B: {b['name']} ({b['count']} items)")
        c3.metric("Open Rate", f"{b['open_rate']:.2%}")
        c3.metric("Click Rate", f"{b['click_rate']:.2%}")
        c3.metric("CTOR", f"{b['click_to_open_rate']:.2%}")


def highlight_failures(flags: pd.Series):
    def _style(row: pd.Series):
        color = "background-color: rgba(239, 68, 68, 0.2)" if flags.get(row.name, False) else ""
        return [color] * len(row)

    return _style


# ---------- UI setup ----------
st.set_page_config(page_title="Campaign Performance Auditor", layout="wide")
inject_base_styles()
st.title("Campaign Performance Auditor")
st.caption("Client-side processing only. Uploaded data stays in this session.")

uploaded = st.file_uploader(
    "Upload Campaign Data (.csv, .xlsx)",
    type=["csv", "xlsx", "xls"],
    key=f"uploader_{st.session_state.get('uploader_gen', 0)}",
)
if uploaded is not None and st.session_state.get("upload_id") != uploaded.file_id:
    try:
        st.session_state["data_ctx"] = load_campaign_data(uploaded.name, uploaded.getvalue())
        st.session_state["upload_id"] = uploaded.file_id
    except UploadParseError as exc:
        st.error(f"Error parsing file. Please check the format. ({exc})")

data_ctx = st.session_state.get("data_ctx")
if not data_ctx:
    st.info("Upload a campaign export to begin.")
    st.stop()

tiered: pd.DataFrame = data_ctx["tiered"]
columns = [str(c) for c in tiered.columns]
numeric_cols = [c for c in columns if pd.api.types.is_numeric_dtype(tiered[c])]

# ----- Sidebar: control panel -----
with st.sidebar:
    st.header("Control Panel")
    st.button("Reset", on_click=reset_session)

    st.subheader("1. Global Filters")
    column_filters = render_column_filters(columns)

    st.divider()
    st.subheader("2. Benchmark Settings")
    audit = render_audit_settings(numeric_cols)

    st.divider()
    st.subheader("3. Compare Segments")
    comparison = render_comparison_settings(columns)

    st.divider()
    with st.expander("Advanced settings", expanded=False):
        cutoffs_text = st.text_input("Volume tier cutoffs", value=format_cutoff_list(DEFAULT_CUTOFFS))
        row_limit = st.slider("Rows to display", min_value=10, max_value=500, value=50, step=10)

filters = normalize_filters(
    {
        "columns": column_filters,
        "audit": audit,
        "comparison": comparison,
        "volume_cutoffs": cutoffs_text,
        "row_limit": row_limit,
    }
)
ctx = prepare_context(filters, data_ctx)
filtered: pd.DataFrame = ctx["filtered"]
flags: pd.Series = ctx["audit_flags"]

if filtered.empty:
    st.warning("No data matches your filters.")
    st.stop()

render_comparison(comparison_metrics(filtered, filters.comparison))

metrics = summary_metrics(filtered)
metric_cols = st.columns(max(len(metrics), 1))
for col, m in zip(metric_cols, metrics):
    col.metric(m.label, m.display)

with card("Campaign Data", f"{len(filtered)} rows"):
    shown = filtered.head(filters.row_limit)
    display = format_percent_columns(shown)
    if filters.audit.enabled:
        st.dataframe(display.style.apply(highlight_failures(flags), axis=1), use_container_width=True)
    else:
        st.dataframe(display, use_container_width=True)
    if len(filtered) > filters.row_limit:
        st.caption(f"Showing first {filters.row_limit} rows of {len(filtered)}")
    st.download_button(
        "Export CSV",
        data=filtered.to_csv(index=False).encode("utf-8"),
        file_name="campaigns.csv",
        mime="text/csv",
    )

chart = volume_group_chart(filtered, order=volume_group_labels(filters.volume_cutoffs))
if chart is not None:
    with card("Volume Groups"):
        st.altair_chart(chart, use_container_width=True)

with st.expander("Data Quality", expanded=False):
    dq = compute_debug(filters, ctx)
    st.json({"row_counts": dq["row_counts"], "cleaning_checks": dq["cleaning_checks"], "volume_column": dq["volume_column"]})
    st.dataframe(pd.DataFrame(list(dq["header_map"].items()), columns=["Original", "Normalized"]), hide_index=True)
