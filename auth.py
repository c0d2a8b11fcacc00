"""
Session identity for the dashboard.
Sign-in itself happens elsewhere; this module only reads the identity the
sign-in flow left behind and hands it to the pages as plain data.
"""

from dataclasses import dataclass
from typing import Optional

import streamlit as st

SESSION_KEY = 'user_info'


@dataclass(frozen=True)
class SessionIdentity:
    uid: str
    display_name: str
    email: str = ""
    avatar_url: str = ""


def identity_from_user_info(data) -> Optional[SessionIdentity]:
    """Build an identity from a signed-in user record, or None if it is unusable.

    Accepts both snake_case keys and the camelCase ones identity providers
    usually return (displayName, photoURL).
    """
    if not data or not hasattr(data, 'get'):
        return None
    uid = data.get('uid') or data.get('id')
    if not uid:
        return None
    email = data.get('email') or ""
    display_name = (data.get('display_name') or data.get('displayName')
                    or (email.split('@')[0] if email else str(uid)))
    return SessionIdentity(
        uid=str(uid),
        display_name=display_name,
        email=email,
        avatar_url=data.get('avatar_url') or data.get('photoURL') or "",
    )


def current_identity() -> Optional[SessionIdentity]:
    """Identity from the session, falling back to a [session] block in secrets."""
    identity = identity_from_user_info(st.session_state.get(SESSION_KEY))
    if identity:
        return identity
    try:
        if "session" in st.secrets:
            identity = identity_from_user_info(dict(st.secrets["session"]))
            if identity:
                st.session_state[SESSION_KEY] = {
                    'uid': identity.uid, 'display_name': identity.display_name,
                    'email': identity.email, 'avatar_url': identity.avatar_url,
                }
            return identity
    except Exception:
        # No secrets.toml configured.
        pass
    return None


def logout_user():
    """Drop the identity and everything built for it."""
    for key in [SESSION_KEY, 'engine', 'engine_owner']:
        st.session_state.pop(key, None)


def render_signed_out_page(dark: bool = False):
    """Shown when no identity is available. The dashboard does not render without one."""
    text_color = "#FFFFFF" if dark else "#1E1E2E"
    subtitle_color = "#9CA3AF" if dark else "#6B7280"

    col1, col2, col3 = st.columns([1, 2, 1])
    with col2:
        st.markdown(
            f"<div style='text-align:center; font-size:2.5rem; font-weight:700; "
            f"color:{text_color}; margin-bottom:0.5rem;'>📋 Task Manager</div>",
            unsafe_allow_html=True
        )
        st.markdown(
            f"<div style='text-align:center; color:{subtitle_color}; margin-bottom:2rem;'>"
            f"You are not signed in. Sign in to see your tasks.</div>",
            unsafe_allow_html=True
        )
