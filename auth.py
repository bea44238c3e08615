"""
Authentication module for the Bet Ledger Streamlit dashboard.

Accounts live in the app_users table. Passwords are stored as argon2id hashes.
"""

from typing import Optional

import streamlit as st
from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError

from betledger import db
from betledger.config import logger
from betledger.state import DashboardState

MIN_PASSWORD_LENGTH = 8

ph = PasswordHasher()


def hash_password(password: str) -> str:
    """Hash a password for storage.

    Examples:
        >>> stored = hash_password("correct horse")
        >>> verify_password("correct horse", stored)
        True
    """
    return ph.hash(password)


def verify_password(password: str, stored: str) -> bool:
    """Check a password against a stored hash. Malformed hashes never match."""
    if not isinstance(stored, str):
        return False
    try:
        return ph.verify(stored, password)
    except (VerificationError, InvalidHashError):
        return False


def authenticate(email: str, password: str) -> Optional[dict]:
    """Return the user for valid credentials, otherwise None.

    The returned dict never contains the password hash.
    """
    if not email or not password:
        return None

    user = db.get_user_by_email(email)
    if user is None or not verify_password(password, user.get("password_hash", "")):
        logger.info(f"Failed login for {email.strip().lower()}")
        return None

    return {key: value for key, value in user.items() if key != "password_hash"}


def register(email: str, password: str, display_name: Optional[str] = None) -> dict:
    """Create an account.

    Raises:
        ValueError: If the email is malformed, the password is too short or
            the email is already registered
    """
    email = (email or "").strip().lower()
    if "@" not in email or email.startswith("@") or email.endswith("@"):
        raise ValueError("Enter a valid email address")
    if len(password or "") < MIN_PASSWORD_LENGTH:
        raise ValueError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")

    user = db.create_user(email, hash_password(password), display_name=(display_name or "").strip() or None)
    logger.info(f"Registered account {email}")
    return {key: value for key, value in user.items() if key != "password_hash"}


def check_login(state: DashboardState) -> bool:
    """Returns `True` if a user is signed in, otherwise shows the login form.

    Args:
        state: Session state that receives the signed-in user

    Examples:
        >>> # In dashboard.py
        >>> if not check_login(state):
        >>>     st.stop()
    """
    if state.is_authenticated:
        return True

    st.markdown("### 🔐 Bet Ledger - Sign in")
    login_tab, register_tab = st.tabs(["Sign in", "Create account"])

    with login_tab:
        with st.form("login_form"):
            email = st.text_input("Email")
            password = st.text_input("Password", type="password")
            submitted = st.form_submit_button("Sign in", use_container_width=True)

        if submitted:
            user = authenticate(email, password)
            if user:
                state.sign_in(user)
                st.rerun()
            else:
                st.error("😕 Email or password incorrect. Please try again.")

    with register_tab:
        with st.form("register_form"):
            display_name = st.text_input("Display name (optional)")
            new_email = st.text_input("Email", key="register_email")
            new_password = st.text_input("Password", type="password", key="register_password")
            created = st.form_submit_button("Create account", use_container_width=True)

        if created:
            try:
                user = register(new_email, new_password, display_name)
            except ValueError as e:
                st.error(str(e))
            else:
                state.sign_in(user)
                state.push("success", "Account created. Welcome!")
                st.rerun()

    return False


def add_logout_button(state: DashboardState):
    """Adds a logout button to the sidebar."""
    with st.sidebar:
        st.markdown("---")
        if state.user:
            st.caption(f"Signed in as {state.user.get('display_name') or state.user.get('email')}")
        if st.button("🚪 Logout", use_container_width=True):
            state.sign_out()
            st.rerun()
