"""
Tasks page - the dashboard: task list by status, search, sort, and the status chart.
"""

import logging
from datetime import date

import plotly.express as px
import streamlit as st

from database import DocumentStore
from due_dates import EXPIRED, parse_due_date, remaining
from engine import TaskEngine
from models import (
    CATEGORIES, COMPLETED, IN_PROGRESS, PENDING, PRIORITIES, STATUS_LABELS,
    TaskDraft,
)
from views import stats_frame, transition_visible

logger = logging.getLogger(__name__)

PRIORITY_COLORS = {'high': "#EF4444", 'medium': "#EAB308", 'low': "#22C55E"}
CHART_COLORS = ['#8B5CF6', '#4F46E5', '#3730A3']
SORT_LABELS = {"asc": "Due date ↑", "desc": "Due date ↓"}


def get_engine(settings, identity) -> TaskEngine:
    """One engine per signed-in user, kept in the session across reruns."""
    engine = st.session_state.get('engine')
    if engine is not None and st.session_state.get('engine_owner') == identity.uid:
        return engine

    store = DocumentStore.from_settings(settings, identity.uid)
    engine = TaskEngine(store, workflow=settings.workflow)
    # Prepares the store too; a failure lands in last_error and Refresh retries it.
    engine.reload()
    st.session_state['engine'] = engine
    st.session_state['engine_owner'] = identity.uid
    logger.info("Engine created owner=%s workflow=%s", identity.uid, settings.workflow)
    return engine


def _statuses(workflow):
    if workflow == "two_state":
        return [PENDING, COMPLETED]
    return [PENDING, IN_PROGRESS, COMPLETED]


def _next_label(task, workflow):
    if workflow == "two_state" or task.status == COMPLETED:
        return "↩️" if task.status == COMPLETED else "✅"
    return "▶️" if task.status == PENDING else "✅"


def _due_value(task):
    try:
        return parse_due_date(task.due_date)
    except ValueError:
        return None


def _priority_change_cb(engine, handle, widget_key):
    """Callback executed when a priority dropdown changes."""
    engine.set_priority(handle, st.session_state[widget_key])


# Helper to request confirmation before deleting a task
def request_delete(handle: str, name: str = None):
    st.session_state['confirm_delete'] = {'handle': handle, 'name': name}
    st.rerun()


def _render_error(engine):
    err = engine.last_error
    if err is None:
        return
    col_msg, col_close = st.columns([0.9, 0.1])
    with col_msg:
        st.error(f"{err.kind}: {err.message}")
    with col_close:
        if st.button("✖", key="dismiss_error", help="Dismiss", type="tertiary"):
            engine.clear_error()
            st.rerun()


def _render_confirm_delete(engine):
    cd = st.session_state.get('confirm_delete')
    if not cd:
        return
    with st.container():
        st.markdown(f"### Confirm delete: {cd.get('name') or ''}")
        st.markdown("This action cannot be undone.")
        col_yes, col_no = st.columns([1, 1])
        with col_yes:
            if st.button("Yes, delete", key="__confirm_delete_yes__", type="primary"):
                try:
                    if engine.delete(cd['handle']):
                        st.toast("Task deleted", icon="🗑️")
                finally:
                    st.session_state.pop('confirm_delete', None)
                    st.rerun()
        with col_no:
            if st.button("Cancel", key="__confirm_delete_cancel__"):
                st.session_state.pop('confirm_delete', None)
                st.rerun()


@st.fragment
def _render_add_task_form(engine):
    """Fragment for the New Task form."""
    if 'add_task_open' not in st.session_state:
        st.session_state['add_task_open'] = False
    _at_open = st.session_state['add_task_open']

    if st.button(
        "▼ ➕ New Task" if _at_open else "➕ New Task",
        key="btn_toggle_add_task",
        use_container_width=True,
        type="secondary"
    ):
        st.session_state['add_task_open'] = not _at_open
        st.rerun()  # Fragment rerun

    if st.session_state['add_task_open']:
        with st.form("new_task_form", clear_on_submit=True):
            task_title = st.text_input("Task Title", placeholder="What do you need to do?")
            task_desc = st.text_area("Description", placeholder="Details...", height=80)
            col_due, col_prio, col_cat = st.columns(3)
            with col_due:
                task_due = st.date_input("Due date", value=None, min_value=date(2000, 1, 1))
            with col_prio:
                task_prio = st.selectbox("Priority", PRIORITIES, index=PRIORITIES.index("medium"),
                                         format_func=lambda p: f"{p.capitalize()} Priority")
            with col_cat:
                task_cat = st.selectbox("Category", [None, *CATEGORIES],
                                        format_func=lambda c: "None" if c is None else c.capitalize())

            if st.form_submit_button("Create Task", use_container_width=True, type="primary"):
                if task_title.strip():
                    draft = TaskDraft(
                        title=task_title, description=task_desc,
                        due_date=task_due.isoformat() if task_due else None,
                        priority=task_prio, category=task_cat,
                    )
                    if engine.create(draft):
                        st.session_state['add_task_open'] = False  # auto-close
                    st.rerun()  # FULL App rerun: list and chart both change
                else:
                    st.warning("Enter a task title.")


def _render_task_item(task, engine, settings, text_col, muted_col, card_bg, done_bg):
    is_completed = task.status == COMPLETED
    label = remaining(task.due_date)
    due_color = "#EF4444" if label == EXPIRED and not is_completed else muted_col
    bg = done_bg if is_completed else card_bg

    with st.container():
        col_main, col_actions = st.columns([6, 3])

        with col_main:
            title_style = "text-decoration: line-through; color: #9CA3AF;" if is_completed else f"color:{text_col};"
            category = f" <small style='color:{muted_col};'>({task.category})</small>" if task.category else ""
            st.markdown(
                f"<div style='border-left:4px solid {PRIORITY_COLORS[task.priority]}; "
                f"background:{bg}; padding:0.4rem 0.8rem; border-radius:8px;'>"
                f"<b style='{title_style}'>#{task.display_id} {task.title}</b>{category}<br>"
                f"<small style='color:{due_color};'>Due: {task.due_date or '—'} · {label}</small>"
                f"</div>",
                unsafe_allow_html=True
            )
            if task.description:
                st.caption(task.description)

        with col_actions:
            col_a1, col_a2, col_a3, col_a4 = st.columns(4)
            with col_a1:
                if transition_visible(task, gate_on_due=settings.gate_transitions_on_due):
                    if st.button(_next_label(task, engine.workflow), key=f"adv_{task.handle}",
                                 help="Next status", type="tertiary"):
                        engine.advance(task.handle)
                        st.rerun()
            with col_a2:
                prio_key = f"prio_{task.handle}_{engine.mapper.generation}"
                st.selectbox(
                    "Priority", PRIORITIES, index=PRIORITIES.index(task.priority),
                    key=prio_key,
                    label_visibility="collapsed",
                    format_func=lambda p: p[0].upper(),
                    on_change=_priority_change_cb,
                    args=(engine, task.handle, prio_key)
                )
            with col_a3:
                if st.button("✏️", key=f"edit_{task.handle}", help="Edit", type="tertiary"):
                    st.session_state[f'editing_task_{task.handle}'] = True
                    st.rerun()
            with col_a4:
                if st.button("🗑️", key=f"del_task_{task.handle}", help="Delete", type="tertiary"):
                    request_delete(task.handle, task.title)

        if st.session_state.get(f'editing_task_{task.handle}', False):
            with st.form(f"edit_form_{task.handle}"):
                new_title = st.text_input("Title", value=task.title)
                new_desc = st.text_area("Description", value=task.description, height=60)
                col_due, col_cat = st.columns(2)
                with col_due:
                    new_due = st.date_input(
                        "Due date",
                        value=_due_value(task),
                        min_value=date(2000, 1, 1)
                    )
                with col_cat:
                    cat_options = [None, *CATEGORIES]
                    new_cat = st.selectbox(
                        "Category", cat_options,
                        index=cat_options.index(task.category) if task.category in CATEGORIES else 0,
                        format_func=lambda c: "None" if c is None else c.capitalize()
                    )
                col_save, col_cancel = st.columns(2)
                with col_save:
                    if st.form_submit_button("Save", type="primary", use_container_width=True):
                        engine.update_fields(task.handle, title=new_title, description=new_desc,
                                             due_date=new_due.isoformat() if new_due else None,
                                             category=new_cat)
                        st.session_state.pop(f'editing_task_{task.handle}', None)
                        st.rerun()
                with col_cancel:
                    if st.form_submit_button("Cancel", use_container_width=True):
                        st.session_state.pop(f'editing_task_{task.handle}', None)
                        st.rerun()

    st.divider()


def render_status_chart(entries, chart_key="status_pie"):
    df = stats_frame(entries)
    if df['count'].sum() == 0:
        st.markdown(
            """<div style='text-align:center; padding:3rem; color:#9CA3AF;'>
                <p style='font-size:3rem;'>📊</p>
                <p>No data yet</p>
            </div>""",
            unsafe_allow_html=True
        )
        return
    fig = px.pie(df, values='count', names='label',
                 color_discrete_sequence=CHART_COLORS, hole=0.4)
    fig.update_traces(
        textposition='inside',
        textinfo='label+value',
        hovertemplate='%{label}<br><b>%{value}</b> tasks<br>%{percent}<extra></extra>'
    )
    fig.update_layout(
        margin=dict(t=10, b=10, l=10, r=10),
        height=350,
        paper_bgcolor='rgba(0,0,0,0)',
        plot_bgcolor='rgba(0,0,0,0)',
        legend=dict(orientation="h", yanchor="bottom", y=-0.2)
    )
    st.plotly_chart(fig, use_container_width=True, key=chart_key)


def render_tasks_page(engine, settings, identity, dark=False):
    _card_bg   = "#1E2130" if dark else "#FFFFFF"
    _done_bg   = "#2E1065" if dark else "#F3E8FF"
    _text_col  = "#E5E7EB" if dark else "#374151"
    _muted_col = "#9CA3AF"

    col_head, col_avatar = st.columns([6, 1])
    with col_head:
        st.markdown("## 📋 My Tasks")
    with col_avatar:
        if identity.avatar_url:
            st.image(identity.avatar_url, width=48)

    _render_error(engine)
    _render_confirm_delete(engine)

    # ─ Filter bar ─
    col_search, col_status, col_sort = st.columns([3, 2, 2])
    with col_search:
        query = st.text_input("Search", placeholder="🔍 Search tasks...",
                              key="task_query", label_visibility="collapsed")
    with col_status:
        statuses = _statuses(engine.workflow)
        status = st.selectbox(
            "Status", statuses, key="task_status_filter", label_visibility="collapsed",
            format_func=lambda s: f"{STATUS_LABELS[s]} ({engine.board.count_of(s)})"
        )
    with col_sort:
        order = st.selectbox("Sort", list(SORT_LABELS), key="task_sort",
                             label_visibility="collapsed", format_func=SORT_LABELS.get)

    _render_add_task_form(engine)

    snap = engine.snapshot(status=status, query=query, order=order)

    col_list, col_stats = st.columns([3, 2])
    with col_list:
        if not snap.view:
            st.markdown(
                """<div style='text-align:center; padding:3rem; color:#9CA3AF;'>
                    <p style='font-size:3rem;'>📝</p>
                    <p>No tasks found. Create one above!</p>
                </div>""",
                unsafe_allow_html=True
            )
        for task in snap.view:
            _render_task_item(task, engine, settings, _text_col, _muted_col, _card_bg, _done_bg)

    with col_stats:
        st.markdown("#### Task Statistics")
        render_status_chart(snap.stats, chart_key=f"status_pie_{snap.generation}")
