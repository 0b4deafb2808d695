from __future__ import annotations

import logging
import os

import streamlit as st

from logging_config import setup_logging
from pricing_engine import budget_exceeded, format_money
from quote_config import load_config
from quote_export import ExportFormat
from quote_model import BillingCycle, ContactMode, Currency, QuoteFieldError
from quote_views import PREVIEW_ELEMENT_ID, png_data_uri, render_preview_png
from quote_wizard import STEP_LABELS, Operation, WizardController
from service_catalog import SERVICE_CATALOG

logger = logging.getLogger(__name__)

_CONFIG_KEYS = (
    "OPENAI_API_KEY",
    "QUOTE_AI_MODEL",
    "QUOTE_AI_TIMEOUT_S",
    "QUOTE_AI_ENABLED",
    "QUOTE_EXPORT_DIR",
    "QUOTE_LOG_LEVEL",
    "QUOTE_LOG_JSON",
)


def _read_secret_or_env_str(key: str) -> str:
    """
    Read a configuration value from Streamlit Secrets (preferred) or environment variables.

    Returns a stripped string; returns "" when missing.
    """
    val: object = ""
    try:
        # `st.secrets` is Mapping-like; `.get` is supported in Streamlit.
        val = st.secrets.get(key, "")  # type: ignore[attr-defined]
    except Exception:
        val = ""
    if not val:
        val = os.environ.get(key, "")
    if isinstance(val, str):
        return val.strip()
    return str(val).strip() if val is not None else ""


def _sync_env_from_secrets() -> None:
    """
    Mirror Streamlit secrets into environment variables so `load_config()` stays Streamlit-free.
    """
    for key in _CONFIG_KEYS:
        value = _read_secret_or_env_str(key)
        if value:
            os.environ[key] = value


@st.cache_data(show_spinner=False)
def _cached_preview_png(token: tuple, _draft) -> bytes:
    return render_preview_png(_draft)


def _controller() -> WizardController:
    ctl = st.session_state.get("wizard")
    if ctl is None:
        _sync_env_from_secrets()
        config = load_config()
        setup_logging(level=config.log_level, json_lines=config.log_json)
        ctl = WizardController.from_config(config)
        st.session_state["wizard"] = ctl
        logger.info("Wizard session started", extra={"quote_number": ctl.draft.quote_number})
    return ctl


def _widget_key(ctl: WizardController, name: str) -> str:
    # Keys change with the draft so a reset clears every widget.
    return f"{ctl.draft.quote_number}:{name}"


def _text_field(ctl: WizardController, label: str, name: str, *, area: bool = False) -> None:
    current = str(getattr(ctl.draft, name))
    widget = st.text_area if area else st.text_input
    value = widget(label, value=current, key=_widget_key(ctl, name))
    if value != current:
        ctl.set_field(name, value)


def _render_client_step(ctl: WizardController) -> None:
    d = ctl.draft
    st.subheader("Your details")
    c1, c2 = st.columns(2)
    with c1:
        _text_field(ctl, "Business name", "sender_name")
        _text_field(ctl, "Email", "sender_email")
        _text_field(ctl, "Phone", "sender_phone")
    with c2:
        _text_field(ctl, "Address", "sender_address", area=True)
        logo = st.file_uploader("Logo", type=["png", "jpg", "jpeg", "gif", "webp"], key=_widget_key(ctl, "logo"))
        if logo is not None and st.session_state.get("_logo_upload_id") != logo.file_id:
            st.session_state["_logo_upload_id"] = logo.file_id
            try:
                ctl.set_logo(logo.getvalue())
            except QuoteFieldError as e:
                st.error(str(e))
        if d.logo_png_bytes is not None:
            st.image(d.logo_png_bytes, width=96)
            if st.button("Remove logo", key=_widget_key(ctl, "remove_logo")):
                ctl.remove_logo()
                st.rerun()

    st.subheader("Client")
    c1, c2 = st.columns(2)
    with c1:
        _text_field(ctl, "Client name *", "client_name")
        _text_field(ctl, "Client email *", "client_email")
        _text_field(ctl, "Client phone", "client_phone")
        _text_field(ctl, "Website", "client_website")
    with c2:
        _text_field(ctl, "Client address *", "client_address", area=True)
        modes = list(ContactMode)
        mode = st.selectbox(
            "Preferred contact",
            modes,
            index=modes.index(d.preferred_contact_mode),
            format_func=lambda m: m.value,
            key=_widget_key(ctl, "preferred_contact_mode"),
        )
        if mode != d.preferred_contact_mode:
            ctl.set_field("preferred_contact_mode", mode)
            st.rerun()
        if d.preferred_contact_mode == ContactMode.WHATSAPP:
            _text_field(ctl, "WhatsApp number *", "client_whatsapp")
        _text_field(ctl, "Valid until", "expiry_date")


def _render_services_step(ctl: WizardController) -> None:
    d = ctl.draft
    c1, c2 = st.columns(2)
    with c1:
        currencies = list(Currency)
        currency = st.selectbox(
            "Currency",
            currencies,
            index=currencies.index(d.currency),
            format_func=lambda c: c.label,
            key=_widget_key(ctl, "currency"),
        )
        if currency != d.currency:
            ctl.set_field("currency", currency)
    with c2:
        shown = f"{d.client_budget:g}" if d.client_budget else ""
        budget = st.text_input("Client budget", value=shown, key=_widget_key(ctl, "client_budget"))
        if budget != shown:
            ctl.set_field("client_budget", budget)

    st.subheader("Service catalog")
    cols = st.columns(len(SERVICE_CATALOG))
    for col, service in zip(cols, SERVICE_CATALOG):
        with col:
            selected = ctl.is_service_selected(service.id)
            st.markdown(f"**{service.name}**")
            st.caption(service.description)
            st.markdown(format_money(service.price, d.currency))
            label = "Remove" if selected else "Add"
            if st.button(label, key=_widget_key(ctl, f"toggle:{service.id}"), use_container_width=True):
                ctl.toggle_service(service.id)
                st.rerun()

    st.subheader("Custom service")
    with st.form(key=_widget_key(ctl, "custom_form"), clear_on_submit=True):
        description = st.text_area("Describe the work")
        c1, c2 = st.columns(2)
        with c1:
            price = st.text_input("Price")
        with c2:
            cycle = st.selectbox("Billing", list(BillingCycle), format_func=lambda b: b.value.title())
        submitted = st.form_submit_button(
            "Add with AI",
            disabled=ctl.is_running(Operation.ANALYZE_SERVICE),
        )
    if submitted:
        future = ctl.request_custom_service(description, price, cycle)
        if future is None:
            st.warning("A description and a valid price are required.")
        else:
            with st.spinner("Drafting the service package..."):
                future.result()
            ctl.pump_events()
            st.rerun()

    if d.items:
        st.subheader("Selected")
        for item in d.items:
            c1, c2, c3, c4, c5 = st.columns([5, 1, 1, 1, 2])
            with c1:
                st.markdown(f"**{item.description}**  \n{item.quantity} x {format_money(item.unit_price, d.currency)}{item.billing_cycle.suffix}")
            with c2:
                if st.button("-", key=_widget_key(ctl, f"dec:{item.id}")):
                    ctl.update_quantity(item.id, -1)
                    st.rerun()
            with c3:
                if st.button("+", key=_widget_key(ctl, f"inc:{item.id}")):
                    ctl.update_quantity(item.id, 1)
                    st.rerun()
            with c4:
                if st.button("Remove", key=_widget_key(ctl, f"del:{item.id}")):
                    ctl.remove_item(item.id)
                    st.rerun()
            with c5:
                st.markdown(format_money(item.total, d.currency))
        if budget_exceeded(d.items, d.client_budget):
            st.warning("Total is over the client's budget.")


def _render_review_step(ctl: WizardController) -> None:
    d = ctl.draft
    _text_field(ctl, "Notes & terms", "notes", area=True)
    if st.button(
        "Enhance with AI",
        disabled=not d.items or ctl.is_running(Operation.ENHANCE_NOTES),
        key=_widget_key(ctl, "enhance"),
    ):
        future = ctl.request_enhance_notes()
        if future is not None:
            with st.spinner("Polishing notes..."):
                future.result()
            ctl.pump_events()
            st.rerun()
    if ctl.professional_summary:
        st.info(ctl.professional_summary)

    st.metric("Total", format_money(ctl.grand_total, d.currency))

    c1, c2 = st.columns(2)
    for col, fmt, label in ((c1, ExportFormat.PDF, "Export PDF"), (c2, ExportFormat.IMAGE, "Export PNG")):
        with col:
            if st.button(label, disabled=not ctl.can_export(), use_container_width=True, key=_widget_key(ctl, f"export:{fmt.value}")):
                future = ctl.request_export(fmt)
                if future is not None:
                    with st.spinner("Rendering quotation..."):
                        future.result()
                    ctl.pump_events()

    if ctl.last_export is not None:
        st.download_button(
            f"Download {ctl.last_export.filename}",
            data=ctl.last_export.data,
            file_name=ctl.last_export.filename,
            mime=ctl.last_export.format.mime_type,
            use_container_width=True,
        )
    elif ctl.last_export_failed:
        st.error("Could not export the quotation. Check the log for details.")


def _render_navigation(ctl: WizardController) -> None:
    c1, c2, c3 = st.columns([1, 1, 1])
    with c1:
        if st.button("Back", disabled=ctl.step == 1, use_container_width=True):
            ctl.retreat()
            st.rerun()
    with c2:
        if ctl.step < len(STEP_LABELS):
            if st.button("Next", disabled=not ctl.can_advance(), use_container_width=True):
                ctl.advance()
                st.rerun()
    with c3:
        # Two clicks: the first arms the reset, the second confirms it.
        armed = bool(st.session_state.get("_reset_armed"))
        if st.button("Confirm reset" if armed else "Reset", use_container_width=True):
            if armed:
                st.session_state["_reset_armed"] = False
                ctl.reset(confirmed=True)
            else:
                st.session_state["_reset_armed"] = True
            st.rerun()


def _render_preview(ctl: WizardController) -> None:
    d = ctl.draft
    token = (d.quote_number, repr(d))
    uri = png_data_uri(_cached_preview_png(token, d))
    html = (
        f'<div id="{PREVIEW_ELEMENT_ID}">'
        f'<img src="{uri}" alt="Quotation {d.quote_number}" style="max-width: 100%; height: auto;" />'
        "</div>"
    )
    st.markdown(html, unsafe_allow_html=True)


def main() -> None:
    st.set_page_config(page_title="Quotation Wizard", layout="wide")
    st.title("Quotation Wizard")

    ctl = _controller()
    ctl.pump_events()

    st.progress(ctl.step / len(STEP_LABELS), text=f"Step {ctl.step} of {len(STEP_LABELS)}: {ctl.step_label}")

    form_col, preview_col = st.columns([3, 2], gap="large")
    with form_col:
        if ctl.step == 1:
            _render_client_step(ctl)
        elif ctl.step == 2:
            _render_services_step(ctl)
        else:
            _render_review_step(ctl)
        _render_navigation(ctl)
    with preview_col:
        _render_preview(ctl)


if __name__ == "__main__":
    main()
