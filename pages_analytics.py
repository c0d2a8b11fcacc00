"""
Analytics page - status, priority and due-date breakdowns of the current tasks.
"""

import plotly.express as px
import streamlit as st

from models import COMPLETED
from pages_tasks import CHART_COLORS, PRIORITY_COLORS, _render_error, render_status_chart
from views import due_outlook, priority_breakdown, stats, stats_frame

OUTLOOK_COLORS = ["#EF4444", "#F97316", "#EAB308", "#22C55E", "#9CA3AF"]


def render_analytics_page(engine, dark=False):
    st.markdown("## 📊 Analytics")
    _render_error(engine)

    board = engine.board
    total = board.total
    done = board.count_of(COMPLETED)
    outlook = due_outlook(board)

    col_m1, col_m2, col_m3 = st.columns(3)
    with col_m1:
        st.metric("Total Tasks", total)
    with col_m2:
        st.metric("Completed", f"{done / total * 100:.0f}%" if total else "—")
    with col_m3:
        st.metric("Overdue", outlook[0].count)

    tab_status, tab_priority, tab_due = st.tabs([
        "📌 By Status", "🚦 By Priority", "📅 Due Dates"
    ])

    with tab_status:
        render_status_chart(stats(board, workflow=engine.workflow),
                            chart_key=f"analytics_status_{engine.mapper.generation}")

    with tab_priority:
        _render_bar(priority_breakdown(board), list(PRIORITY_COLORS.values()),
                    f"analytics_priority_{engine.mapper.generation}", dark)

    with tab_due:
        _render_bar(outlook, OUTLOOK_COLORS,
                    f"analytics_due_{engine.mapper.generation}", dark)
        st.caption("Open tasks only; completed tasks are left out.")


def _render_bar(entries, colors, chart_key, dark):
    df = stats_frame(entries)
    if df['count'].sum() == 0:
        _empty_state("No data yet")
        return

    fig_bar = px.bar(
        df, x='label', y='count',
        color='label',
        color_discrete_sequence=colors or CHART_COLORS,
        text=df.apply(lambda r: f"{r['count']} ({r['pct']}%)", axis=1)
    )
    fig_bar.update_traces(textposition='outside')
    fig_bar.update_layout(
        xaxis_title="", yaxis_title="Tasks",
        showlegend=False,
        margin=dict(t=10, b=10),
        height=350,
        font=dict(color="#E5E7EB" if dark else "#374151"),
        paper_bgcolor='rgba(0,0,0,0)',
        plot_bgcolor='rgba(0,0,0,0)'
    )
    st.plotly_chart(fig_bar, use_container_width=True, key=chart_key)


def _empty_state(message: str):
    st.markdown(
        f"""<div style='text-align:center; padding:3rem; color:#9CA3AF;'>
            <p style='font-size:3rem;'>📊</p>
            <p>{message}</p>
            <p style='font-size:0.85rem;'>Create a few tasks to see them here.</p>
        </div>""",
        unsafe_allow_html=True
    )
