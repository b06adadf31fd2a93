"""
Streamlit Frontend for Ledgerbook

This is the dashboard the two bookkeepers use every day to record cash
movements between people, track purchase orders and packages, and
pull reports.

DESIGN PRINCIPLES:
1. Simple, clear interface
2. Explicit confirmation before a balance goes negative
3. Clear error messages next to the form that caused them
4. Visual feedback for all operations
5. No hidden actions

Everything goes through the LedgerBook service:
- Forms build plain records
- LedgerBook validates, applies and schedules the save
- Pages only read summaries back
"""

import json
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional

import pandas as pd
import streamlit as st

from ledgerbook.config import get_settings
from ledgerbook.engine import format_amount, order_status_counts
from ledgerbook.models.ledger import (
    CURRENCY_INFO,
    Currency,
    OrderStatus,
    TransactionType,
    category_label,
)
from ledgerbook.models.reports import ReportFilter
from ledgerbook.orchestrator import LedgerBook, create_app_components
from ledgerbook.services.export import report_rows
from ledgerbook.state import ConfirmationRequiredError, LedgerError


# Page configuration
st.set_page_config(
    page_title="Ledgerbook",
    page_icon="📒",
    layout="wide",
    initial_sidebar_state="expanded",
)

# Custom CSS for better UX
st.markdown("""
<style>
    .stButton>button {
        width: 100%;
        margin-top: 10px;
    }
    .success-box {
        padding: 20px;
        background-color: #d4edda;
        border-radius: 10px;
        border-left: 5px solid #28a745;
        margin: 10px 0;
    }
    .warning-box {
        padding: 20px;
        background-color: #fff3cd;
        border-radius: 10px;
        border-left: 5px solid #ffc107;
        margin: 10px 0;
    }
    .error-box {
        padding: 20px;
        background-color: #f8d7da;
        border-radius: 10px;
        border-left: 5px solid #dc3545;
        margin: 10px 0;
    }
    .big-number {
        font-size: 2.5em;
        font-weight: bold;
        color: #2c3e50;
    }
    .negative {
        color: #dc3545;
    }
</style>
""", unsafe_allow_html=True)


PAGES = [
    "📊 Dashboard",
    "➕ Record",
    "📦 Orders",
    "🚚 Deliveries",
    "📋 Reports",
    "💾 Backup",
    "⚙️ Settings",
]


# Filled from the saver's timer thread, which has no session of its own.
SAVE_ERRORS: list[str] = []


def _show_save_error(key, error):
    SAVE_ERRORS.append(f"Could not save {key.value}: {error}")


@st.cache_resource
def get_components() -> LedgerBook:
    """Get or create the ledger service (cached)."""
    try:
        return create_app_components(use_storage=True, on_save_error=_show_save_error)
    except Exception as e:
        st.error(f"Failed to open the data folder: {e}")
        return create_app_components(use_storage=False, on_save_error=_show_save_error)


def currency_name(currency: Currency) -> str:
    info = CURRENCY_INFO[currency]
    return f"{info.label} ({info.symbol})"


def to_datetime(day: date) -> datetime:
    """Combine a picked day with the current time of day."""
    return datetime.combine(day, datetime.now(timezone.utc).time().replace(microsecond=0), tzinfo=timezone.utc)


def day_label(value: Optional[datetime]) -> str:
    return value.strftime("%Y-%m-%d") if value else "undated"


def to_decimal(value: float) -> Decimal:
    return Decimal(str(value))


def money_cell(value: Decimal, currency: Currency) -> str:
    amount = format_amount(value, currency)
    if amount.negative:
        return f'<span class="negative">{amount.value}</span>'
    return amount.value


# =============================================================================
# Submitting actions
# =============================================================================

def submit(label: str, action, **kwargs) -> None:
    """
    Run a LedgerBook action and show the outcome.

    A negative balance under the confirm policy parks the action in the
    session until the user confirms or cancels it.
    """
    try:
        action(**kwargs)
    except ConfirmationRequiredError as e:
        st.session_state.pending = {
            "label": label,
            "action": action,
            "kwargs": kwargs,
            "warnings": e.result.warnings,
        }
        st.rerun()
    except LedgerError as e:
        st.markdown(f"""
        <div class="error-box">
            <h4>❌ {label} failed</h4>
            <p>{e}</p>
        </div>
        """, unsafe_allow_html=True)
        if getattr(e, "result", None) is not None:
            with st.expander("Details"):
                st.text(get_components().validator.get_user_friendly_summary(e.result))
        return
    except ValueError as e:
        st.error(f"{label} failed: {e}")
        return

    st.session_state.flash = f"✅ {label} saved"
    st.rerun()


def render_pending_confirmation():
    """Ask before recording something that overdraws a balance."""
    pending = st.session_state.get("pending")
    if not pending:
        return

    warnings = "".join(f"<li>{w}</li>" for w in pending["warnings"])
    st.markdown(f"""
    <div class="warning-box">
        <h4>⚠️ {pending['label']}: balance will go negative</h4>
        <ul>{warnings}</ul>
        <p><strong>Record it anyway?</strong></p>
    </div>
    """, unsafe_allow_html=True)

    col1, col2 = st.columns(2)
    with col1:
        if st.button("✅ Yes, record it", type="primary"):
            st.session_state.pending = None
            submit(pending["label"], pending["action"], confirmed=True, **pending["kwargs"])
    with col2:
        if st.button("❌ Cancel"):
            st.session_state.pending = None
            st.rerun()


def render_flash():
    message = st.session_state.pop("flash", None)
    if message:
        st.success(message)
    while SAVE_ERRORS:
        st.error(f"💾 {SAVE_ERRORS.pop(0)}. Your change is kept and will be saved with the next one.")


# =============================================================================
# Login
# =============================================================================

def render_login(book: LedgerBook):
    st.title("📒 Ledgerbook")
    with st.form("login"):
        username = st.text_input("Username")
        password = st.text_input("Password", type="password")
        if st.form_submit_button("Log in", type="primary"):
            account = book.login(username, password)
            if account is None:
                st.error("Wrong username or password")
            else:
                st.session_state.account = account
                st.rerun()


def main():
    """Main application entry point."""
    book = get_components()

    account = st.session_state.get("account")
    if account is None:
        render_login(book)
        return
    if book.account != account:
        book.login(account.username, account.password)

    st.sidebar.title("📒 Ledgerbook")
    st.sidebar.markdown(f"Logged in as **{account.username}** ({account.role.value})")
    if st.sidebar.button("Log out"):
        book.logout()
        st.session_state.account = None
        st.rerun()
    st.sidebar.markdown("---")

    page = st.sidebar.radio("Navigate to:", PAGES, index=0)

    if book.pending_saves:
        st.sidebar.caption(f"💾 Saving {', '.join(k.value for k in book.pending_saves)}…")
    if book.skipped_on_load:
        st.sidebar.warning(f"{book.skipped_on_load} stored records could not be read. They are left out of balances and kept in storage as they are.")

    render_flash()
    render_pending_confirmation()

    if page == "📊 Dashboard":
        render_dashboard_page(book)
    elif page == "➕ Record":
        render_record_page(book)
    elif page == "📦 Orders":
        render_orders_page(book)
    elif page == "🚚 Deliveries":
        render_deliveries_page(book)
    elif page == "📋 Reports":
        render_reports_page(book)
    elif page == "💾 Backup":
        render_backup_page(book)
    elif page == "⚙️ Settings":
        render_settings_page(book)


# =============================================================================
# Dashboard
# =============================================================================

def render_dashboard_page(book: LedgerBook):
    st.title("📊 Dashboard")

    col1, col2 = st.columns(2)
    col1.metric("Persons", len(book.state.persons))
    col2.metric("Transactions", len(book.state.transactions))

    totals = book.currency_totals()
    cols = st.columns(len(Currency) + 1)
    for col, currency in zip(cols, Currency):
        with col:
            st.markdown(f"**{currency_name(currency)}**")
            st.markdown(
                f'<div class="big-number">{money_cell(totals[currency], currency)}</div>',
                unsafe_allow_html=True,
            )
    with cols[-1]:
        st.markdown("**Average USD rate**")
        rate = book.average_rate()
        st.markdown(
            f'<div class="big-number">{rate:.3f}</div>' if rate else '<div class="big-number">n/a</div>',
            unsafe_allow_html=True,
        )

    st.markdown("---")
    st.subheader("Balances")
    search = st.text_input("🔍 Find a person", placeholder="Name")

    balances = book.balances()
    persons = [p for p in balances if search.casefold() in p.casefold()]
    if not persons:
        st.info("No person matches your search.")
        return

    table = "".join(
        f"<tr><td>{person}</td>"
        + "".join(f"<td>{money_cell(balances[person][c], c)}</td>" for c in Currency)
        + "</tr>"
        for person in persons
    )
    header = "".join(f"<th>{currency_name(c)}</th>" for c in Currency)
    st.markdown(
        f"<table><tr><th>Person</th>{header}</tr>{table}</table>",
        unsafe_allow_html=True,
    )

    chart = pd.DataFrame(
        {c.value: [float(balances[p][c]) for p in persons] for c in Currency},
        index=persons,
    )
    st.bar_chart(chart)


# =============================================================================
# Recording
# =============================================================================

def render_record_page(book: LedgerBook):
    st.title("➕ Record")
    tabs = st.tabs(["Receive", "Pay", "Transfer", "Convert"])
    persons = list(book.state.persons)

    if not persons:
        st.warning("Add a person in Settings first.")
        return

    with tabs[0]:
        render_money_form(book, TransactionType.RECEIVE, persons)
    with tabs[1]:
        render_money_form(book, TransactionType.PAY, persons)
    with tabs[2]:
        render_transfer_form(book, persons)
    with tabs[3]:
        render_conversion_form(book, persons)


def render_money_form(book: LedgerBook, kind: TransactionType, persons: list[str]):
    with st.form(f"{kind.value}_form", clear_on_submit=True):
        col1, col2 = st.columns(2)
        with col1:
            person = st.selectbox("Person *", persons, key=f"{kind.value}_person")
            amount = st.number_input("Amount *", min_value=0.0, step=1.0, key=f"{kind.value}_amount")
            currency = st.selectbox("Currency *", list(Currency), format_func=currency_name,
                                    key=f"{kind.value}_currency")
        with col2:
            day = st.date_input("Date *", value=date.today(), key=f"{kind.value}_date")
            rate = st.number_input(
                "Rate (optional)", min_value=0.0, step=0.01, key=f"{kind.value}_rate",
                help="Toman per unit, for US dollar and yuan only",
            )
        description = st.text_area("Description", max_chars=500, key=f"{kind.value}_description")

        if st.form_submit_button(f"Record {kind.value}", type="primary"):
            record = {
                "type": kind.value,
                "person": person,
                "amount": to_decimal(amount),
                "currency": currency.value,
                "date": to_datetime(day),
                "description": description,
            }
            if rate and currency.accepts_rate:
                record["rate"] = to_decimal(rate)
            submit(kind.value.title(), book.record, record=record)


def render_transfer_form(book: LedgerBook, persons: list[str]):
    with st.form("transfer_form", clear_on_submit=True):
        col1, col2 = st.columns(2)
        with col1:
            sender = st.selectbox("From *", persons, key="transfer_from")
            amount = st.number_input("Amount *", min_value=0.0, step=1.0, key="transfer_amount")
        with col2:
            receiver = st.selectbox("To *", persons, index=min(1, len(persons) - 1), key="transfer_to")
            currency = st.selectbox("Currency *", list(Currency), format_func=currency_name,
                                    key="transfer_currency")
        day = st.date_input("Date *", value=date.today(), key="transfer_date")
        description = st.text_area("Description", max_chars=500, key="transfer_description")

        if st.form_submit_button("Record transfer", type="primary"):
            submit("Transfer", book.record, record={
                "type": "transfer",
                "from": sender,
                "to": receiver,
                "amount": to_decimal(amount),
                "currency": currency.value,
                "date": to_datetime(day),
                "description": description,
            })


def render_conversion_form(book: LedgerBook, persons: list[str]):
    st.markdown("Dollars paid by one person become yuan received by another.")
    with st.form("conversion_form", clear_on_submit=True):
        col1, col2 = st.columns(2)
        with col1:
            sender = st.selectbox("Pays (USD) *", persons, key="conversion_from")
            amount = st.number_input("USD amount *", min_value=0.0, step=1.0, key="conversion_amount")
        with col2:
            receiver = st.selectbox("Receives (CNY) *", persons, index=min(1, len(persons) - 1),
                                    key="conversion_to")
            rate = st.number_input("Rate (CNY per USD) *", min_value=0.0, step=0.01, key="conversion_rate")
        description = st.text_area("Description", max_chars=500, key="conversion_description")

        if amount and rate:
            st.caption(f"Receiver gets {format_amount(to_decimal(amount) * to_decimal(rate), Currency.CNY).value}")

        if st.form_submit_button("Record conversion", type="primary"):
            submit(
                "Conversion",
                book.record_conversion,
                sender=sender,
                receiver=receiver,
                amount=to_decimal(amount),
                rate=to_decimal(rate),
                description=description,
            )


# =============================================================================
# Orders
# =============================================================================

def render_orders_page(book: LedgerBook):
    st.title("📦 Orders")
    categories = book.state.categories
    owners = list(book.state.persons)
    owner = get_settings().ledger.order_owner
    owner_index = owners.index(owner) if owner in owners else 0

    with st.expander("➕ Add an order line", expanded=False):
        with st.form("buy_form", clear_on_submit=True):
            col1, col2 = st.columns(2)
            with col1:
                order_number = st.text_input("Order number *", max_chars=50)
                person = st.selectbox("Paid by *", owners, key="buy_person", index=owner_index)
                amount = st.number_input("Amount *", min_value=0.0, step=1.0, key="buy_amount")
            with col2:
                currency = st.selectbox(
                    "Currency *", list(Currency), format_func=currency_name,
                    index=list(Currency).index(Currency(get_settings().ledger.default_buy_currency)),
                    key="buy_currency",
                )
                category = st.selectbox(
                    "Category *", [c.key for c in categories],
                    format_func=lambda key: category_label(categories, key),
                )
                status = st.selectbox("Status", list(OrderStatus), format_func=lambda s: s.value.title())
            day = st.date_input("Date *", value=date.today(), key="buy_date")
            description = st.text_area("Description", max_chars=500, key="buy_description")

            if st.form_submit_button("Add line", type="primary"):
                submit("Order line", book.record, record={
                    "type": "buy",
                    "person": person,
                    "amount": to_decimal(amount),
                    "currency": currency.value,
                    "orderNumber": order_number.strip(),
                    "category": category,
                    "status": status.value,
                    "date": to_datetime(day),
                    "description": description,
                })

    orders = book.orders()
    counts = order_status_counts(orders)
    cols = st.columns(len(OrderStatus))
    for col, status in zip(cols, OrderStatus):
        col.metric(status.value.title(), counts[status])

    st.markdown("---")
    if not orders:
        st.info("📋 Orders will appear here once you add a line.")
        return

    for order in orders:
        with st.expander(
            f"{order.order_number} · {order.status.value} · "
            f"{format_amount(order.total_amount, Currency.CNY).value} · {order.line_count} lines"
        ):
            st.dataframe(
                pd.DataFrame([
                    {
                        "Date": day_label(line.date),
                        "Amount": format_amount(line.amount, line.currency).value,
                        "Category": category_label(categories, line.category),
                        "Description": line.description,
                        "Status": line.status.value,
                    }
                    for line in order.transactions
                ]),
                hide_index=True,
                use_container_width=True,
            )
            st.download_button(
                "⬇️ Download order (.xlsx)",
                data=book.export_order_xlsx(order.order_number).getvalue(),
                file_name=f"order-{order.order_number}.xlsx",
                mime="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
                key=f"order_xlsx_{order.order_number}",
            )


# =============================================================================
# Deliveries
# =============================================================================

def render_deliveries_page(book: LedgerBook):
    st.title("🚚 Deliveries")

    with st.expander("➕ Add a package", expanded=False):
        with st.form("delivery_form", clear_on_submit=True):
            col1, col2 = st.columns(2)
            with col1:
                delivery_number = st.text_input("Delivery number *")
                receipt_number = st.text_input("Receipt number *")
                order_number = st.text_input("Order number (optional)")
            with col2:
                box_count = st.number_input("Boxes *", min_value=0, step=1)
                weight = st.number_input("Weight (kg) *", min_value=0.0, step=0.5)
                day = st.date_input("Date *", value=date.today(), key="delivery_date")
            description = st.text_area("Description", max_chars=500, key="delivery_description")

            if st.form_submit_button("Add package", type="primary"):
                record = {
                    "type": "delivery",
                    "deliveryNumber": delivery_number.strip(),
                    "receiptNumber": receipt_number.strip(),
                    "boxCount": int(box_count),
                    "weight": to_decimal(weight),
                    "date": to_datetime(day),
                    "description": description,
                }
                if order_number.strip():
                    record["orderNumber"] = order_number.strip()
                submit("Package", book.record, record=record)

    deliveries = book.deliveries()
    if not deliveries:
        st.info("📋 Packages will appear here once you add one.")
        return

    for delivery in deliveries:
        with st.expander(
            f"{delivery.delivery_number} · {delivery.total_boxes} boxes · {delivery.total_weight} kg"
        ):
            st.dataframe(
                pd.DataFrame([
                    {
                        "Date": day_label(package.date),
                        "Receipt": package.receipt_number,
                        "Boxes": package.box_count,
                        "Weight": float(package.weight),
                        "Order": package.order_number or "",
                        "Description": package.description,
                    }
                    for package in delivery.packages
                ]),
                hide_index=True,
                use_container_width=True,
            )


# =============================================================================
# Reports
# =============================================================================

def render_reports_page(book: LedgerBook):
    st.title("📋 Reports")

    col1, col2, col3, col4 = st.columns(4)
    with col1:
        date_range = st.date_input("Date range", value=[], help="Select start and end day")
    with col2:
        person = st.selectbox(
            "Person", [None] + book.report_persons(),
            format_func=lambda p: "All persons" if p is None else p,
        )
    with col3:
        kind = st.selectbox(
            "Type", [None] + list(TransactionType),
            format_func=lambda t: "All types" if t is None else t.value.title(),
        )
    with col4:
        search = st.text_input("Search", placeholder="Description, order, receipt…")

    start = date_range[0] if len(date_range) > 0 else None
    end = date_range[1] if len(date_range) > 1 else None
    try:
        criteria = ReportFilter(start_date=start, end_date=end, person=person, type=kind,
                                search=search or None)
    except ValueError as e:
        st.error(f"Invalid filter: {e}")
        return

    transactions = book.report(criteria)
    summary = book.report_summary(criteria)

    cols = st.columns(len(Currency))
    for col, currency in zip(cols, Currency):
        col.metric(currency_name(currency), format_amount(summary.totals[currency], currency).value)

    st.dataframe(pd.DataFrame(report_rows(transactions)), hide_index=True, use_container_width=True)
    st.caption(f"{len(transactions)} rows")

    col1, col2 = st.columns(2)
    with col1:
        st.download_button(
            "⬇️ Excel (.xlsx)",
            data=book.export_report_xlsx(criteria).getvalue(),
            file_name=f"report-{date.today().isoformat()}.xlsx",
            mime="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        )
    with col2:
        st.download_button(
            "🖨️ Print view (.html)",
            data=book.export_report_html(criteria),
            file_name=f"report-{date.today().isoformat()}.html",
            mime="text/html",
        )

    if transactions:
        render_edit_section(book, transactions)


def render_edit_section(book: LedgerBook, transactions):
    st.markdown("---")
    st.subheader("✏️ Edit or delete")

    by_id = {str(t.id): t for t in transactions}
    selected = st.selectbox(
        "Transaction",
        list(by_id),
        format_func=lambda i: f"{day_label(by_id[i].date)} · {by_id[i].type} · {by_id[i].description[:40]}",
    )
    transaction = by_id[selected]

    record = transaction.to_record()
    record.pop("id", None)
    edited = st.text_area(
        "Record",
        value=json.dumps(record, ensure_ascii=False, indent=2),
        height=260,
        key=f"edit_{selected}",
    )

    col1, col2 = st.columns(2)
    with col1:
        if st.button("💾 Save changes", type="primary"):
            try:
                new_record = json.loads(edited)
            except json.JSONDecodeError as e:
                st.error(f"Not valid JSON: {e}")
            else:
                submit("Edit", book.edit_transaction, transaction_id=transaction.id, record=new_record)
    with col2:
        account = st.session_state.get("account")
        if st.button("🗑️ Delete", disabled=not (account and account.is_admin)):
            try:
                book.delete_transaction(transaction.id)
            except LedgerError as e:
                st.error(str(e))
            else:
                st.session_state.flash = "🗑️ Transaction deleted"
                st.rerun()


# =============================================================================
# Backup
# =============================================================================

def render_backup_page(book: LedgerBook):
    st.title("💾 Backup")

    st.markdown("### Export")
    st.download_button(
        "⬇️ Download backup (.json)",
        data=book.export_backup_json(),
        file_name=f"ledgerbook-backup-{date.today().isoformat()}.json",
        mime="application/json",
    )

    st.markdown("---")
    st.markdown("### Import")
    st.markdown(
        "Collections in the file **replace** the current ones. "
        "Collections missing from the file are left as they are."
    )
    uploaded = st.file_uploader("Backup file", type=["json"])
    if uploaded and st.button("📥 Import backup", type="primary"):
        try:
            keys = book.import_backup(uploaded.getvalue())
        except LedgerError as e:
            st.markdown(f"""
            <div class="error-box">
                <h4>❌ Import failed</h4>
                <p>{e}</p>
                <p><strong>Nothing was changed.</strong></p>
            </div>
            """, unsafe_allow_html=True)
        else:
            st.session_state.flash = f"✅ Imported {', '.join(k.value for k in keys)}"
            st.rerun()


# =============================================================================
# Settings
# =============================================================================

def render_settings_page(book: LedgerBook):
    st.title("⚙️ Settings")

    st.markdown("### Persons")
    col1, col2 = st.columns(2)
    with col1:
        with st.form("add_person", clear_on_submit=True):
            name = st.text_input("New person")
            if st.form_submit_button("Add person"):
                submit("Person", book.add_person, name=name)
    with col2:
        with st.form("delete_person"):
            name = st.selectbox("Person", list(book.state.persons))
            if st.form_submit_button("Delete person"):
                submit("Person removal", book.delete_person, name=name)

    st.markdown("### Categories")
    categories = book.state.categories
    st.dataframe(
        pd.DataFrame([{"Key": c.key, "Label": c.label} for c in categories]),
        hide_index=True,
    )
    col1, col2, col3 = st.columns(3)
    with col1:
        with st.form("add_category", clear_on_submit=True):
            key = st.text_input("Key")
            label = st.text_input("Label")
            if st.form_submit_button("Add category"):
                submit("Category", book.add_category, key=key, label=label or None)
    with col2:
        with st.form("rename_category"):
            key = st.selectbox("Category", [c.key for c in categories], key="rename_key")
            label = st.text_input("New label")
            if st.form_submit_button("Rename"):
                submit("Category rename", book.rename_category, key=key, label=label)
    with col3:
        with st.form("delete_category"):
            key = st.selectbox("Category", [c.key for c in categories], key="delete_key")
            if st.form_submit_button("Delete category"):
                submit("Category removal", book.delete_category, key=key)

    st.markdown("---")
    st.markdown("### Activity")
    events = book.audit.recent_events[:20]
    if events:
        st.dataframe(
            pd.DataFrame([
                {
                    "Time": e.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
                    "Event": e.event_type.value,
                    "By": e.actor or "",
                    "Description": e.description,
                }
                for e in events
            ]),
            hide_index=True,
            use_container_width=True,
        )
    if st.button("💾 Save now"):
        book.flush()
        st.session_state.flash = "✅ Saved"
        st.rerun()


if __name__ == "__main__":
    main()
