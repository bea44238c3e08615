import streamlit as st
import pandas as pd
from datetime import date, datetime, time, timezone
from betledger import db, metrics
from betledger.config import (
    BREAKDOWN_LABELS,
    CURRENCY_SYMBOLS,
    DEFAULT_CURRENCY,
    GROUPING_LABELS,
    STATUS_LABELS,
    logger,
)
from betledger.import_client import ImportClientError, format_import_errors, upload_csv
from betledger.models import BetStatus, BetType, PeriodGrouping
from betledger.state import DashboardState
from betledger.type_safety import normalize_timestamp, parse_finite_number, validate_odds, validate_stake
from betledger.validation import parse_tags
from auth import check_login, add_logout_button

STATE_KEY = "ledger_state"


def get_state() -> DashboardState:
    """Return this session's DashboardState, creating it on first use."""
    if STATE_KEY not in st.session_state:
        st.session_state[STATE_KEY] = DashboardState()
    return st.session_state[STATE_KEY]


def format_currency(amount, currency=DEFAULT_CURRENCY, signed=False):
    """Format an amount with the currency symbol.

    Unknown currency codes are written after the amount.

    Examples:
        >>> format_currency(1234.5, "EUR")
        '€1,234.50'
        >>> format_currency(-12, "USD", signed=True)
        '-$12.00'
        >>> format_currency(3, "CHF")
        '3.00 CHF'
    """
    value = float(amount or 0.0)
    sign = ""
    if value < 0:
        sign = "-"
    elif signed and value > 0:
        sign = "+"

    symbol = CURRENCY_SYMBOLS.get((currency or "").upper())
    if symbol:
        return f"{sign}{symbol}{abs(value):,.2f}"
    return f"{sign}{abs(value):,.2f} {currency}"


def style_row_by_status(row):
    """Return background and text color for a history row based on its status.

    Color Scheme:
        - Light green (#90EE90): won
        - Light red (#FFCCCB): lost
        - Light yellow (#FFF3B0): pending
        - No styling for anything else

    Examples:
        >>> row = pd.Series({"Status": "Won", "Stake": "€10.00"})
        >>> style_row_by_status(row)[0]
        'background-color: #90EE90; color: black'
    """
    status = row.get("Status", "")
    if status == STATUS_LABELS["won"]:
        return ["background-color: #90EE90; color: black"] * len(row)
    elif status == STATUS_LABELS["lost"]:
        return ["background-color: #FFCCCB; color: black"] * len(row)
    elif status == STATUS_LABELS["pending"]:
        return ["background-color: #FFF3B0; color: black"] * len(row)
    else:
        return [""] * len(row)


def build_filters(bankroll_id, status=None, date_range=None, search="", tags=None):
    """Translate sidebar widget values into a db.fetch_bets filter dict.

    Dates are inclusive: the end date covers the whole day (UTC).

    Examples:
        >>> build_filters("b1", status="won", date_range=(date(2024, 1, 1), date(2024, 1, 31)))
        {'bankroll_id': 'b1', 'status': 'won', 'date_from': '2024-01-01T00:00:00.000Z', 'date_to': '2024-01-31T23:59:59.999Z'}
    """
    filters = {"bankroll_id": bankroll_id}
    if status:
        filters["status"] = status

    if date_range:
        if isinstance(date_range, date):
            date_range = (date_range, date_range)
        if len(date_range) >= 1 and date_range[0]:
            start = datetime.combine(date_range[0], time.min, tzinfo=timezone.utc)
            filters["date_from"] = normalize_timestamp(start)
        if len(date_range) == 2 and date_range[1]:
            end = datetime.combine(date_range[1], time(23, 59, 59, 999000), tzinfo=timezone.utc)
            filters["date_to"] = normalize_timestamp(end)

    if search and search.strip():
        filters["search"] = search.strip()
    if tags:
        filters["tags"] = list(tags)
    return filters


def bets_to_frame(bets, currency=DEFAULT_CURRENCY, bookmaker_names=None):
    """Build the history table shown in the History tab.

    Returns:
        DataFrame with one display row per bet (empty frame for no bets)
    """
    bookmaker_names = bookmaker_names or {}
    rows = []
    for bet in bets:
        result_amount = bet.get("result_amount")
        rows.append({
            "Placed": (bet.get("placed_at") or "")[:16].replace("T", " "),
            "Status": STATUS_LABELS.get(bet.get("status"), bet.get("status")),
            "Type": (bet.get("bet_type") or "").capitalize(),
            "Stake": format_currency(bet.get("stake"), currency),
            "Odds": f"{bet.get('odds', 0):.2f}",
            "Result": format_currency(result_amount, currency, signed=True) if result_amount is not None else "-",
            "Bookmaker": bookmaker_names.get(bet.get("bookmaker_id"), ""),
            "Tags": ", ".join(bet.get("tags") or []),
            "Notes": bet.get("notes") or "",
        })
    return pd.DataFrame(rows)


def render_notifications(state):
    for kind, message in state.drain_notifications():
        if kind == "success":
            st.success(message)
        elif kind == "error":
            st.error(message)
        else:
            st.info(message)


def render_bankroll_gate(state):
    """Show the bankroll selector, or the first-bankroll form when none exist.

    Returns:
        The active bankroll dict, or None when the user still has to create one
    """
    user_id = state.user["id"] if state.user else None
    bankrolls = db.fetch_bankrolls(user_id=user_id)
    active = state.resolve_active_bankroll(bankrolls)

    if active is None:
        st.subheader("Create your first bankroll")
        st.caption("Bets are always recorded against a bankroll.")
        with st.form("first_bankroll_form"):
            name = st.text_input("Name", placeholder="e.g. Main bankroll")
            currency = st.selectbox("Currency", list(CURRENCY_SYMBOLS.keys()))
            balance = st.number_input("Starting balance", min_value=0.0, value=0.0, step=10.0)
            unit = st.number_input("Target stake unit", min_value=0.0, value=0.0, step=1.0)
            submitted = st.form_submit_button("Create bankroll", type="primary")

        if submitted:
            try:
                bankroll = db.create_bankroll(name, currency, balance, unit, user_id=user_id)
            except ValueError as e:
                st.error(str(e))
            else:
                state.select_bankroll(bankroll["id"])
                state.push("success", f"Bankroll '{bankroll['name']}' created")
                st.rerun()
        return None

    names = {bankroll["id"]: bankroll["name"] for bankroll in bankrolls}
    ids = list(names.keys())
    selected = st.sidebar.selectbox(
        "Bankroll",
        options=ids,
        index=ids.index(active["id"]),
        format_func=lambda bankroll_id: names[bankroll_id],
    )
    if selected != active["id"]:
        state.select_bankroll(selected)
        active = next(bankroll for bankroll in bankrolls if bankroll["id"] == selected)

    return active


def render_overview(bets, currency, grouping, dimension, bookmaker_names):
    summary = metrics.summarize_bets(bets)

    metric_col1, metric_col2, metric_col3, metric_col4 = st.columns(4)
    with metric_col1:
        st.metric("Total Staked", format_currency(summary["total_staked"], currency))
    with metric_col2:
        st.metric(
            "Profit",
            format_currency(summary["profit"], currency, signed=True),
            delta=f"{summary['roi']:+.1f}% ROI" if summary["total_staked"] > 0 else None,
        )
    with metric_col3:
        st.metric("Bets", summary["total_bets"])
    with metric_col4:
        st.metric("Pending", summary["pending"])

    if summary["last_update"]:
        st.caption(f"Last update: {summary['last_update'][:16].replace('T', ' ')} UTC")

    st.markdown("---")
    st.markdown("### Insights")
    icons = {"positive": "✅", "warning": "⚠️", "info": "ℹ️"}
    for insight in metrics.generate_insights(bets):
        st.write(f"{icons.get(insight['tone'], '')} {insight['message']}")

    st.markdown("---")
    st.markdown("### Equity Curve")
    curve = metrics.calculate_equity_curve(bets)
    if len(curve) > 1:
        chart_data = pd.DataFrame(curve)
        chart_data["date"] = pd.to_datetime(chart_data["date"], utc=True, errors="coerce")
        st.line_chart(chart_data.set_index("date")[["profit"]])
    else:
        st.info("Record at least two bets to see your equity curve!")

    st.markdown("---")
    st.markdown(f"### Last {GROUPING_LABELS[grouping]}")
    periods = metrics.summarize_by_period(bets, grouping)
    if periods:
        st.dataframe(
            pd.DataFrame([
                {
                    "Period": period["label"],
                    "Bets": period["count"],
                    "Profit": format_currency(period["profit"], currency, signed=True),
                    "ROI": f"{period['roi']:+.1f}%",
                }
                for period in periods
            ]),
            hide_index=True,
            width="stretch",
        )
    else:
        st.caption("No bets in this range.")

    st.markdown("---")
    st.markdown(f"### Performance by {BREAKDOWN_LABELS[dimension]}")
    breakdown = metrics.build_breakdown(bets, dimension)
    if breakdown:
        st.dataframe(
            pd.DataFrame([
                {
                    BREAKDOWN_LABELS[dimension]: bookmaker_names.get(entry["key"], entry["label"])
                    if dimension == "bookmaker_id" else entry["label"],
                    "Bets": entry["count"],
                    "Staked": format_currency(entry["stake"], currency),
                    "Profit": format_currency(entry["profit"], currency, signed=True),
                    "Win Rate": f"{entry['win_rate']:.1f}%",
                }
                for entry in breakdown
            ]),
            hide_index=True,
            width="stretch",
        )
    else:
        st.caption("Nothing to break down yet.")


def render_register(state, bankroll, bookmakers):
    st.subheader("Register Bet")

    bookmaker_options = {"": "-"}
    bookmaker_options.update({bookmaker["id"]: bookmaker["name"] for bookmaker in bookmakers})

    with st.form("create_bet_form", clear_on_submit=True):
        form_cols = st.columns(2)
        with form_cols[0]:
            stake = st.number_input("Stake", min_value=0.0, value=10.0, step=1.0)
            odds = st.number_input("Decimal odds", min_value=0.0, value=2.0, step=0.01)
            placed_day = st.date_input("Placed on", value=date.today())
            placed_time = st.time_input("At", value=time(12, 0))
        with form_cols[1]:
            status = st.selectbox(
                "Status",
                [status.value for status in BetStatus],
                format_func=lambda value: STATUS_LABELS[value],
            )
            bet_type = st.selectbox("Type", [bet_type.value for bet_type in BetType], format_func=str.capitalize)
            bookmaker_id = st.selectbox(
                "Bookmaker",
                list(bookmaker_options.keys()),
                format_func=lambda key: bookmaker_options[key],
            )
            result_amount = st.text_input("Result amount (optional)", placeholder="e.g. 9.50 or -10")

        tags = st.text_input("Tags", placeholder="value | live | tennis")
        notes = st.text_input("Note (optional)", placeholder="e.g. Early line")

        submitted = st.form_submit_button("Log Bet", width="stretch", type="primary")

        if submitted:
            try:
                payload = {
                    "bankroll_id": bankroll["id"],
                    "user_id": state.user["id"] if state.user else None,
                    "stake": validate_stake(stake),
                    "odds": validate_odds(odds),
                    "placed_at": normalize_timestamp(
                        datetime.combine(placed_day, placed_time, tzinfo=timezone.utc)
                    ),
                    "status": status,
                    "bet_type": bet_type,
                    "implied_probability": 1 / odds,
                    "bookmaker_id": bookmaker_id or None,
                    "notes": notes.strip() or None,
                    "tags": parse_tags(tags),
                }
                if result_amount.strip():
                    amount = parse_finite_number(result_amount)
                    if amount is None:
                        raise ValueError(f"Result amount must be a number, got {result_amount}")
                    payload["result_amount"] = amount
            except ValueError as e:
                st.error(str(e))
            else:
                try:
                    db.create_bet(payload)
                except db.StorageError as e:
                    st.error(f"Could not save bet: {e.message}")
                else:
                    state.push("success", "Bet recorded!")
                    st.rerun()

    st.markdown("---")
    st.markdown("### Import from CSV")
    st.caption(
        "Required columns: bankroll_id, stake, odds, placed_at. "
        "Optional: status, wager_type, probability, result_amount, notes, "
        "bookmaker_id, event_id, market_id, user_id, id, tags."
    )
    uploaded = st.file_uploader("CSV file", type=["csv"])
    if uploaded is not None and st.button("Import", type="primary"):
        with st.spinner(f"Importing {uploaded.name}..."):
            try:
                result = upload_csv(uploaded.name, uploaded.getvalue())
            except ImportClientError as e:
                st.error(e.message)
                for line in format_import_errors(e.details):
                    st.caption(line)
            else:
                state.push("success", f"Imported {result.get('imported', 0)} bets from {uploaded.name}")
                st.rerun()

    with st.expander("Add bookmaker"):
        with st.form("create_bookmaker_form", clear_on_submit=True):
            name = st.text_input("Name")
            country = st.text_input("Country (optional)")
            if st.form_submit_button("Add"):
                try:
                    db.create_bookmaker(name, country.strip() or None)
                except ValueError as e:
                    st.error(str(e))
                else:
                    state.push("success", f"Bookmaker '{name.strip()}' added")
                    st.rerun()


def render_history(state, bets, currency, bookmaker_names):
    st.subheader("History")

    if not bets:
        st.info("No bets match the current filters.")
        return

    st.dataframe(
        bets_to_frame(bets, currency, bookmaker_names).style.apply(style_row_by_status, axis=1),
        hide_index=True,
        use_container_width=True,
        height=400,
    )

    st.markdown("---")
    st.markdown("### Edit Bet")
    labels = {
        bet["id"]: f"{(bet.get('placed_at') or '')[:10]} | {format_currency(bet['stake'], currency)} @ {bet['odds']:.2f}"
        for bet in bets
    }
    bet_id = st.selectbox("Bet", list(labels.keys()), format_func=lambda key: labels[key])
    bet = next(item for item in bets if item["id"] == bet_id)

    with st.form(f"edit_bet_{bet_id}"):
        statuses = [status.value for status in BetStatus]
        status = st.selectbox(
            "Status",
            statuses,
            index=statuses.index(bet["status"]) if bet["status"] in statuses else 0,
            format_func=lambda value: STATUS_LABELS[value],
        )
        result_amount = st.text_input(
            "Result amount",
            value="" if bet.get("result_amount") is None else f"{bet['result_amount']:.2f}",
        )
        tags = st.text_input("Tags", value=" | ".join(bet.get("tags") or []))
        notes = st.text_input("Notes", value=bet.get("notes") or "")
        save_cols = st.columns(2)
        with save_cols[0]:
            saved = st.form_submit_button("Save", type="primary")
        with save_cols[1]:
            deleted = st.form_submit_button("Delete")

    if saved:
        changes = {
            "status": status,
            "tags": parse_tags(tags),
            "notes": notes.strip() or None,
            "result_amount": result_amount.strip() or None,
        }
        if status != BetStatus.PENDING.value and not bet.get("settled_at"):
            changes["settled_at"] = datetime.now(timezone.utc)
        try:
            db.update_bet(bet_id, changes)
        except ValueError as e:
            st.error(str(e))
        else:
            state.push("success", "Bet updated")
            st.rerun()

    if deleted:
        if db.delete_bet(bet_id):
            state.push("info", "Bet deleted")
        else:
            state.push("error", "Bet not found")
        st.rerun()


def main():
    """Main entry point for the Bet Ledger Streamlit dashboard.

    Renders the ledger for the active bankroll with three tabs:
    1. Overview - Summary metrics, insights, equity curve and breakdowns
    2. Register - Manual bet form and CSV import
    3. History - Bet table with edit and delete

    Examples:
        Run from command line:
        >>> streamlit run dashboard.py
    """
    db.initialize_db()

    st.set_page_config(page_title="Bet Ledger", layout="wide")
    state = get_state()

    if not check_login(state):
        st.stop()

    st.title("Bet Ledger")
    render_notifications(state)

    bankroll = render_bankroll_gate(state)
    add_logout_button(state)
    if bankroll is None:
        st.stop()

    currency = bankroll.get("currency") or DEFAULT_CURRENCY
    st.caption(f"{bankroll['name']} | balance {format_currency(bankroll.get('balance'), currency)}")

    # Sidebar Filters
    st.sidebar.header("Filters")
    status_filter = st.sidebar.selectbox(
        "Status",
        [""] + [status.value for status in BetStatus],
        format_func=lambda value: STATUS_LABELS.get(value, "All"),
    )
    date_range = st.sidebar.date_input("Placed between", value=())
    search = st.sidebar.text_input(
        "🔍 Search notes",
        placeholder="e.g. derby, early line...",
        help="Case-insensitive search in bet notes",
    )
    tag_filter = st.sidebar.multiselect("Tags", options=db.fetch_tags())
    grouping = st.sidebar.radio(
        "Group periods by",
        [grouping.value for grouping in PeriodGrouping],
        index=1,
        format_func=str.capitalize,
        horizontal=True,
    )
    dimension = st.sidebar.selectbox(
        "Break down by",
        list(BREAKDOWN_LABELS.keys()),
        format_func=lambda key: BREAKDOWN_LABELS[key],
    )

    filters = build_filters(bankroll["id"], status_filter, date_range, search, tag_filter)
    with st.spinner("Loading bets..."):
        bets = db.fetch_bets(filters)
    logger.debug(f"Loaded {len(bets)} bets for bankroll {bankroll['id']}")

    bookmakers = db.fetch_bookmakers()
    bookmaker_names = {bookmaker["id"]: bookmaker["name"] for bookmaker in bookmakers}

    tab_overview, tab_register, tab_history = st.tabs(["Overview", "Register", "History"])

    with tab_overview:
        render_overview(bets, currency, grouping, dimension, bookmaker_names)

    with tab_register:
        render_register(state, bankroll, bookmakers)

    with tab_history:
        render_history(state, bets, currency, bookmaker_names)


if __name__ == "__main__":
    main()
