import logging
from contextlib import contextmanager
from typing import Any, Dict, Optional

import altair as alt
import pandas as pd
import streamlit as st

from core.auth import SIGNUP_ROLES, AuthSession, sign_in, sign_out, sign_up
from core.backend import SupabaseClient
from core.config import configure_logging, load_settings
from core.data import (
    MATCH_STATUS_LABELS,
    MATCH_STATUSES,
    create_match,
    create_product,
    create_request,
    format_currency_2,
    load_admin_data,
    load_buyer_data,
    load_seller_data,
    plain_number,
    prepare_admin_context,
    update_match_status,
)
from core.errors import MarketplaceError
from core.metrics_admin import category_chart, compute_admin_dashboard
from core.routing import LOGIN_PATH, ROOT_PATH, resolve_route, role_label

logger = logging.getLogger(__name__)


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
        .card-header {display: flex;justify-content: space-between;align-items: center;margin-bottom: 8px;}
        .card-title {font-weight: 600;font-size: 1.0rem;color: #111827;}
        .card-actions {font-size: 0.9rem;color: #2563eb;}
        .chip {background: #dcfce7;border-radius: 14px;padding: 2px 10px;font-size: 0.8rem;color: #166534;font-weight: 600;}
        .fee {font-weight: 700;color: #2563eb;}
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


def render_page_header(title: str, breadcrumb: str, export_df: Optional[pd.DataFrame] = None, export_name: str = "export.csv"):
    inject_base_styles()
    c1, c2 = st.columns([8, 2])
    with c1:
        st.markdown(
            f"<div class='app-top-bar'><div class='breadcrumb'>{breadcrumb}</div><div class='page-title'>{title}</div></div>",
            unsafe_allow_html=True,
        )
    with c2:
        btn_cols = st.columns(2)
        if btn_cols[0].button("Refresh"):
            st.rerun()
        if export_df is not None and not export_df.empty:
            btn_cols[1].download_button(
                "Export CSV",
                data=export_df.to_csv(index=False).encode("utf-8"),
                file_name=export_name,
                mime="text/csv",
            )


def status_chip(status: object) -> str:
    label = MATCH_STATUS_LABELS.get(str(status), str(status) if pd.notna(status) else "")
    return f"<span class='chip'>{label}</span>"


def text(value: object) -> str:
    if value is None or (not isinstance(value, (list, dict)) and pd.isna(value)):
        return ""
    return str(value)


# ---------- Session store ----------
def get_session() -> Optional[AuthSession]:
    return st.session_state.get("auth")


def set_session(session: Optional[AuthSession]):
    st.session_state["auth"] = session


def navigate(path: str):
    st.session_state["path"] = path
    st.rerun()


def user_client(client: SupabaseClient) -> SupabaseClient:
    session = get_session()
    return client.with_token(session.access_token if session else None)


# ---------- Navbar ----------
def render_navbar(client: SupabaseClient):
    session = get_session()
    if session is None or not session.is_authenticated:
        return
    with st.sidebar:
        st.markdown("### Marketplace")
        st.caption(role_label(session.role))
        st.write(session.email or "")
        if st.button("Sign Out"):
            sign_out(client, session)
            set_session(None)
            navigate(LOGIN_PATH)


# ---------- Pages ----------
def render_login_page(client: SupabaseClient):
    inject_base_styles()
    mode = st.radio("Account", ["Sign in", "Sign up"], horizontal=True, label_visibility="collapsed")
    is_sign_up = mode == "Sign up"
    st.subheader("Create your account" if is_sign_up else "Sign in to your account")

    with st.form("auth_form"):
        email = st.text_input("Email address")
        password = st.text_input("Password", type="password")
        role = "buyer"
        if is_sign_up:
            role = st.selectbox("Role", options=list(SIGNUP_ROLES), format_func=role_label)
        submitted = st.form_submit_button("Sign up" if is_sign_up else "Sign in")

    if not submitted:
        return
    try:
        session = sign_up(client, email, password, role) if is_sign_up else sign_in(client, email, password)
    except MarketplaceError as exc:
        st.error(str(exc))
        return
    if not session.is_authenticated:
        st.info("Account created. Confirm your e-mail address, then sign in.")
        return
    set_session(session)
    navigate(f"/{session.role}")


def render_listing_form(kind: str) -> Optional[Dict[str, Any]]:
    amount_label = "Price" if kind == "product" else "Budget"
    with st.form(f"{kind}_form", clear_on_submit=True):
        cols = st.columns(2)
        title = cols[0].text_input("Title")
        amount = cols[1].number_input(amount_label, min_value=0.0, step=0.01, format="%.2f")
        quantity = cols[0].number_input("Quantity", min_value=1, step=1)
        unit = cols[1].text_input("Unit")
        category = cols[0].text_input("Category")
        delivery_date = cols[1].date_input("Delivery date") if kind == "request" else None
        description = st.text_area("Description", height=90)
        specifications = st.text_area("Specifications", height=90)
        submitted = st.form_submit_button("Add product" if kind == "product" else "Add request")
    if not submitted:
        return None
    raw = {
        "title": title,
        "description": description,
        "quantity": quantity,
        "unit": unit,
        "category": category,
        "specifications": specifications,
    }
    if kind == "product":
        raw["price"] = amount
    else:
        raw["budget"] = amount
        raw["delivery_date"] = delivery_date
    return raw


def render_listing_cards(df: pd.DataFrame, amount_col: str, amount_label: str, empty_message: str):
    if df.empty:
        st.info(empty_message)
        return
    cols = st.columns(3)
    for i, row in enumerate(df.to_dict(orient="records")):
        with cols[i % 3]:
            with st.container(border=True):
                st.markdown(f"**{text(row.get('title'))}**")
                st.markdown(f"{amount_label}: {format_currency_2(row.get(amount_col))}")
                st.markdown(f"Quantity: {plain_number(row.get('quantity'))} {text(row.get('unit'))}")
                st.markdown(f"Category: {text(row.get('category'))}")
                if text(row.get("delivery_date")):
                    st.markdown(f"Delivery date: {text(row.get('delivery_date'))}")
                st.caption(text(row.get("description")))
                if text(row.get("specifications")):
                    st.markdown("Specifications:")
                    st.caption(text(row.get("specifications")))
                st.markdown(status_chip(row.get("status")), unsafe_allow_html=True)


def render_seller_page(client: SupabaseClient):
    session = get_session()
    render_page_header("Seller", "Home / Seller")
    authed = user_client(client)

    with card("Add product"):
        raw = render_listing_form("product")
        if raw is not None:
            try:
                create_product(authed, raw, session.user_id)
                st.success("Product added.")
            except MarketplaceError as exc:
                st.error(str(exc))

    try:
        ctx = load_seller_data(authed, session.user_id)
    except MarketplaceError as exc:
        logger.exception("seller data load failed")
        st.error(str(exc))
        return

    with card("Your products"):
        render_listing_cards(ctx["products"], "price", "Price", "No products yet.")

    with card("Matches arranged by the admin"):
        matches: pd.DataFrame = ctx["matches"]
        if matches.empty:
            st.info("No matches yet.")
        for row in matches.to_dict(orient="records"):
            with st.container(border=True):
                left, right = st.columns(2)
                left.markdown("**Your product**")
                left.write(text(row.get("product_title")))
                left.caption(f"Price: ${plain_number(row.get('product_price'))}")
                left.caption(f"Quantity: {plain_number(row.get('product_quantity'))} {text(row.get('product_unit'))}")
                right.markdown("**Buyer request**")
                right.write(text(row.get("request_title")))
                right.caption(f"Budget: ${plain_number(row.get('request_budget'))}")
                right.caption(f"Buyer: {text(row.get('buyer_email'))}")
                st.markdown(
                    f"<span class='fee'>Fee: ${plain_number(row.get('fee'))}</span> {status_chip(row.get('status'))}",
                    unsafe_allow_html=True,
                )


def render_buyer_page(client: SupabaseClient):
    session = get_session()
    render_page_header("Buyer", "Home / Buyer")
    authed = user_client(client)

    with card("Purchase request"):
        raw = render_listing_form("request")
        if raw is not None:
            try:
                create_request(authed, raw, session.user_id)
                st.success("Request added.")
            except MarketplaceError as exc:
                st.error(str(exc))

    try:
        ctx = load_buyer_data(authed, session.user_id)
    except MarketplaceError as exc:
        logger.exception("buyer data load failed")
        st.error(str(exc))
        return

    with card("Your requests"):
        render_listing_cards(ctx["requests"], "budget", "Budget", "No requests yet.")

    with card("Matches arranged by the admin"):
        matches: pd.DataFrame = ctx["matches"]
        if matches.empty:
            st.info("No matches yet.")
        for row in matches.to_dict(orient="records"):
            with st.container(border=True):
                left, right = st.columns(2)
                left.markdown("**Your request**")
                left.write(text(row.get("request_title")))
                left.caption(f"Budget: ${plain_number(row.get('request_budget'))}")
                right.markdown("**Offered product**")
                right.write(text(row.get("product_title")))
                right.caption(f"Price: ${plain_number(row.get('product_price'))}")
                right.caption(f"Seller: {text(row.get('seller_email'))}")
                st.markdown(
                    f"<span class='fee'>Fee: ${plain_number(row.get('fee'))}</span> {status_chip(row.get('status'))}",
                    unsafe_allow_html=True,
                )


def change_match_status(client: SupabaseClient, match_id: str):
    try:
        update_match_status(client, match_id, st.session_state[f"status_{match_id}"])
    except MarketplaceError as exc:
        logger.warning("status update for match %s failed: %s", match_id, exc)
        st.session_state["status_error"] = str(exc)


def render_admin_page(client: SupabaseClient):
    authed = user_client(client)
    try:
        data_ctx = load_admin_data(authed)
    except MarketplaceError as exc:
        logger.exception("admin data load failed")
        render_page_header("Admin", "Home / Admin")
        st.error(str(exc))
        return

    categories = prepare_admin_context(None, data_ctx)["categories"]
    with st.sidebar:
        st.markdown("---")
        st.markdown("### Filters")
        search_term = st.text_input("Search", "")
        category = st.selectbox("Category", [""] + categories, format_func=lambda c: c or "All categories")
        status = st.selectbox(
            "Status",
            [""] + list(MATCH_STATUSES),
            format_func=lambda s: MATCH_STATUS_LABELS.get(s, "All statuses"),
        )
        start_date = st.date_input("From", value=None)
        end_date = st.date_input("To", value=None)

    filters = {
        "search_term": search_term,
        "category": category,
        "status": status,
        "start_date": start_date,
        "end_date": end_date,
    }
    ctx = prepare_admin_context(filters, data_ctx)
    payload = compute_admin_dashboard(ctx["filters"], ctx)
    stats = payload["stats"]

    render_page_header("Admin", "Home / Admin", export_df=ctx["filtered_matches"], export_name="matches.csv")
    with card("KPI Tiles"):
        cols = st.columns(4)
        cols[0].metric("Total matches", f"{stats['total_matches']}")
        cols[1].metric("Total revenue", f"${stats['total_revenue']:,.2f}")
        cols[2].metric("Average fee", f"${stats['average_fee']:,.2f}")
        cols[3].metric(
            "Match rate",
            f"{stats['match_rate']:.1f}%",
            help="Matches per active product.",
        )

    chart = category_chart(stats["category_stats"])
    if chart is not None:
        with card("Active products by category"):
            st.altair_chart(chart.properties(height=240), use_container_width=True)

    with card("Create match"):
        product_labels = {o["id"]: o["label"] for o in payload["product_options"]}
        request_labels = {o["id"]: o["label"] for o in payload["request_options"]}
        with st.form("match_form", clear_on_submit=True):
            cols = st.columns(3)
            product_id = cols[0].selectbox("Product", [""] + list(product_labels), format_func=lambda k: product_labels.get(k, "Select a product..."))
            request_id = cols[1].selectbox("Request", [""] + list(request_labels), format_func=lambda k: request_labels.get(k, "Select a request..."))
            fee = cols[2].number_input("Fee", min_value=0.0, step=0.01, format="%.2f")
            submitted = st.form_submit_button("Create match")
        if submitted:
            try:
                create_match(authed, {"product_id": product_id, "request_id": request_id, "fee": fee})
                st.rerun()
            except MarketplaceError as exc:
                st.error(str(exc))

    with card("Matches"):
        status_error = st.session_state.pop("status_error", None)
        if status_error:
            st.error(status_error)
        counts = payload["status_counts"]
        st.caption(" | ".join(f"{MATCH_STATUS_LABELS[s]}: {counts.get(s, 0)}" for s in MATCH_STATUSES))
        if not payload["matches"]:
            st.info("No matches for the selected filters.")
        for row in payload["matches"]:
            with st.container(border=True):
                cols = st.columns(3)
                cols[0].markdown("**Product**")
                cols[0].write(text(row.get("product_title")))
                cols[0].caption(f"Price: ${plain_number(row.get('product_price'))}")
                cols[0].caption(f"Quantity: {plain_number(row.get('product_quantity'))} {text(row.get('product_unit'))}")
                cols[0].caption(f"Seller: {text(row.get('seller_email'))}")
                cols[1].markdown("**Request**")
                cols[1].write(text(row.get("request_title")))
                cols[1].caption(f"Budget: ${plain_number(row.get('request_budget'))}")
                cols[1].caption(f"Quantity: {plain_number(row.get('request_quantity'))} {text(row.get('request_unit'))}")
                cols[1].caption(f"Buyer: {text(row.get('buyer_email'))}")
                cols[2].markdown("**Match**")
                cols[2].caption(f"Date: {text(row.get('created_date'))}")
                cols[2].markdown(f"<span class='fee'>Fee: ${plain_number(row.get('fee'))}</span>", unsafe_allow_html=True)
                match_id = text(row.get("id"))
                current = text(row.get("status"))
                # The selectbox always shows the stored status, so a failed update snaps back.
                st.session_state[f"status_{match_id}"] = current if current in MATCH_STATUSES else MATCH_STATUSES[0]
                cols[2].selectbox(
                    "Status",
                    list(MATCH_STATUSES),
                    format_func=lambda s: MATCH_STATUS_LABELS[s],
                    key=f"status_{match_id}",
                    on_change=change_match_status,
                    args=(authed, match_id),
                )


# ---------- UI setup ----------
st.set_page_config(page_title="Marketplace", layout="wide")
alt.data_transformers.disable_max_rows()

try:
    settings = load_settings()
except ValueError as exc:
    st.error(f"{exc}. Copy .env.example to .env and fill in the backend credentials.")
    st.stop()

configure_logging(settings.log_level)
inject_base_styles()
backend = SupabaseClient.from_settings(settings)

requested = st.session_state.get("path", ROOT_PATH)
current_page = resolve_route(requested, get_session())
st.session_state["path"] = current_page

render_navbar(backend)
if current_page == LOGIN_PATH:
    render_login_page(backend)
elif current_page == "/seller":
    render_seller_page(backend)
elif current_page == "/buyer":
    render_buyer_page(backend)
else:
    render_admin_page(backend)
