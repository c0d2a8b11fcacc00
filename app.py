"""
Task Manager - a personal task dashboard.
Run with: streamlit run app.py
"""

import streamlit as st

from auth import current_identity, logout_user, render_signed_out_page
from config import load_settings
from logging_setup import setup_logging
from pages_analytics import render_analytics_page
from pages_tasks import get_engine, render_tasks_page

# ─── Page Config ──────────────────────────────────────────────
st.set_page_config(
    page_title="Task Manager",
    page_icon="📋",
    layout="wide",
    initial_sidebar_state="expanded"
)

# ─── Settings & Logging ──────────────────────────────────────
settings = load_settings()
setup_logging(log_dir=settings.log_dir, console_level=settings.log_level)

# ─── Theme Initialization ────────────────────────────────────
if 'theme' not in st.session_state:
    st.session_state['theme'] = 'light'

_dark = (st.session_state['theme'] == 'dark')

# Color tokens per theme
if _dark:
    _bg = "#0F1117"; _surface = "#1E2130"; _border = "#2D3150"
    _text = "#E5E7EB"; _muted = "#9CA3AF"; _head = "#FFFFFF"
    _sidebar = "#151722"
else:
    _bg = "#F5F7FA"; _surface = "#FFFFFF"; _border = "#E5E7EB"
    _text = "#374151"; _muted = "#6B7280"; _head = "#1E1E2E"
    _sidebar = "#F8F9FA"

# ─── Custom Styling ──────────────────────────────────────────
st.markdown(f"""
<style>
    .stApp {{
        font-family: 'Segoe UI', system-ui, -apple-system, sans-serif;
        background-color: {_bg} !important;
        transition: background-color 0.3s ease, color 0.3s ease;
    }}
    .main .block-container {{ background-color: {_bg} !important; padding-top:1.5rem; }}
    h1,h2,h3,h4,h5,h6 {{ color: {_head} !important; }}
    .stMarkdown p, .stMarkdown span {{ color: {_text}; }}

    /* Hide Streamlit branding */
    #MainMenu {{visibility: hidden;}}
    footer {{visibility: hidden;}}

    section[data-testid="stSidebar"] {{
        background-color: {_sidebar} !important;
        border-right: 1px solid {_border} !important;
    }}
    [data-testid="stSidebar"] * {{ color: {_text} !important; }}
    [data-testid="stForm"] {{
        background-color: {_surface} !important;
        border: 1px solid {_border} !important;
        border-radius: 12px;
    }}
    @media (max-width: 768px) {{
        [data-testid="stMetricValue"] {{ font-size: 1.2rem !important; }}
    }}
</style>
""", unsafe_allow_html=True)

# ─── Identity Gate ────────────────────────────────────────────
identity = current_identity()
if identity is None:
    render_signed_out_page(_dark)
    st.stop()

engine = get_engine(settings, identity)

# ─── Sidebar ─────────────────────────────────────────────────
with st.sidebar:
    st.markdown(
        f"""<div style='padding:0.5rem 0; margin-bottom:0.75rem;'>
            <div style='font-size:1.3rem; font-weight:700; color:{_head};'>
                📋 Task Manager
            </div>
            <div style='font-size:0.85rem; color:{_muted};'>
                Welcome, {identity.display_name}
            </div>
        </div>""",
        unsafe_allow_html=True
    )

    # ── Dark / Light toggle
    _toggle_label = "☀️ Light Mode" if _dark else "🌙 Dark Mode"
    if st.button(_toggle_label, use_container_width=True, type="secondary", key="theme_toggle"):
        st.session_state['theme'] = 'light' if _dark else 'dark'
        st.rerun()

    st.markdown("---")

    nav_options = {
        "📋 Tasks": "tasks",
        "📊 Analytics": "analytics"
    }

    if 'current_page' not in st.session_state:
        st.session_state['current_page'] = 'tasks'

    for label, page_key in nav_options.items():
        btn_type = "primary" if st.session_state.get('current_page', 'tasks') == page_key else "secondary"
        if st.button(label, key=f"nav_{page_key}", use_container_width=True, type=btn_type):
            st.session_state['current_page'] = page_key
            st.rerun()

    st.write("")


# ─── Page Router ──────────────────────────────────────────────
current_page = st.session_state.get('current_page', 'tasks')

if current_page == 'tasks':
    render_tasks_page(engine, settings, identity, dark=_dark)
elif current_page == 'analytics':
    render_analytics_page(engine, dark=_dark)

# ─── Sidebar Footer (Refresh / Logout) ───────────────────────
with st.sidebar:
    st.markdown("<div style='margin-top: 2rem;'></div>", unsafe_allow_html=True)
    st.markdown("---")

    col_refresh, col_logout = st.sidebar.columns(2)
    with col_refresh:
        if st.button("🔄 Refresh", use_container_width=True, type="secondary", help="Reload tasks"):
            engine.reload()
            st.rerun()
    with col_logout:
        if st.button("🚪 Logout", use_container_width=True, type="secondary"):
            logout_user()
            st.rerun()
