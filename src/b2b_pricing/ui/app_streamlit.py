"""
Streamlit console for the B2B Pricing Engine.

Features:
- Customer status switcher (guest, b2c, pending, accepted B2B)
- Cart builder with live B2B pricing and free-sample incentive
- Checkout preview: free shipping, pay-on-delivery fee, coupon policy
- Catalog browser with B2B visibility
"""
from decimal import Decimal
from datetime import datetime

import pandas as pd
import streamlit as st

from b2b_pricing.config.settings import get_settings
from b2b_pricing.engine import B2BEngine, Cart, CartLine, CustomerStatus, ShippingRate
from b2b_pricing.engine.display import format_money, render_price_display
from b2b_pricing.policy.shipping_policy import free_shipping_threshold
from b2b_pricing.policy.visibility_policy import is_product_visible, product_table_cart_total


st.set_page_config(
    page_title="B2B Pricing Console",
    layout="wide",
    initial_sidebar_state="expanded"
)


@st.cache_resource
def get_engine():
    """Get cached engine instance."""
    return B2BEngine()


try:
    engine = get_engine()
    settings = get_settings()
except FileNotFoundError as e:
    st.error(f"System Error: {e}")
    st.stop()

currency = settings.currency_symbol

# Carriers offered at checkout in the preview
DEMO_RATES = [
    ShippingRate(rate_id="inpost_locker", label="InPost Paczkomaty", cost=Decimal("14.99")),
    ShippingRate(rate_id="inpost_courier", label="InPost Kurier", cost=Decimal("17.99")),
    ShippingRate(rate_id="dpd", label="Kurier DPD", cost=Decimal("19.99")),
]


# ============================================================================
# SIDEBAR: Customer Context
# ============================================================================
with st.sidebar:
    st.header("👤 Customer Context")

    with st.container(border=True):
        status = st.selectbox(
            "Customer Status",
            options=list(CustomerStatus),
            format_func=lambda s: s.value,
            index=list(CustomerStatus).index(CustomerStatus.B2B_ACCEPTED),
        )
        if status.is_b2b_accepted:
            st.markdown(":blue[**B2B net pricing active**]")
        else:
            st.markdown(":gray[**Catalog pricing**]")

    st.divider()
    st.success(f"🎁 **{len(engine.tiers)} Incentive Tiers**")
    for tier in engine.tiers:
        st.caption(f"{format_money(tier.threshold_netto, currency)} netto → {tier.sample_count} samples")


st.title("B2B Pricing Console")
st.caption(f"Engine Active | {datetime.now().strftime('%Y-%m-%d')}")

tab1, tab2 = st.tabs(["🛒 Cart", "📚 Catalog"])


# ============================================================================
# TAB 1: CART
# ============================================================================
with tab1:
    if 'cart' not in st.session_state:
        st.session_state.cart = {}

    col1, col2 = st.columns([1.6, 1.4], gap="large")

    with col1:
        st.subheader("Add Items")

        with st.container(border=True):
            visible = [p for p in engine.catalog if is_product_visible(p, status)]
            labels = {f"{p.product_id} | {p.name}": p.product_id for p in visible}

            selected_option = st.selectbox("Search Product", options=list(labels), label_visibility="collapsed")
            c1, c2 = st.columns([1, 4])
            with c1:
                quantity = st.number_input("Qty", min_value=1, value=1, step=1)
            with c2:
                st.write("")
                st.write("")
                if st.button("➕ Add to Cart", type="primary") and selected_option:
                    product_id = labels[selected_option]
                    st.session_state.cart[product_id] = st.session_state.cart.get(product_id, 0) + quantity
                    st.rerun()

        if st.session_state.cart:
            st.markdown("### 📝 Line Items")
            cart = Cart(lines=[
                CartLine(product_id=pid, quantity=qty, unit_gross_price=Decimal('0'))
                for pid, qty in st.session_state.cart.items()
            ])
            result = engine.recalculate(cart, status)

            st.dataframe(pd.DataFrame([{
                'Product': line.label or line.product_id,
                'Quantity': line.quantity,
                'Net': float(line.unit_net_price or 0),
                'Gross': float(line.unit_gross_price),
                'Line Gross': float(line.gross_amount),
            } for line in result.cart.lines]), use_container_width=True, hide_index=True)

            if st.button("🗑️ Clear"):
                st.session_state.cart = {}
                st.rerun()

    with col2:
        st.subheader("Summary")

        with st.container(border=True):
            if st.session_state.cart:
                checkout = engine.checkout(cart, status, DEMO_RATES, payment_method="cod")

                m1, m2 = st.columns(2)
                m1.metric("Net", format_money(result.net_subtotal, currency))
                m2.metric("Gross", format_money(result.gross_subtotal, currency))
                st.caption(f"Product table total: {product_table_cart_total(result.cart, status, settings)}")

                if result.tier:
                    st.markdown(f":green[**🎁 {result.tier.label}**]")
                else:
                    st.caption("No free-sample tier reached yet")

                st.divider()
                threshold = free_shipping_threshold(status, settings)
                st.caption(f"Free carrier shipping from {format_money(threshold, currency)} gross")
                for rate in checkout.shipping_rates:
                    st.write(f"{rate.label}: {format_money(rate.cost, currency)}")
                for fee in checkout.fees:
                    st.write(f"{fee.label}: {format_money(fee.amount, currency)}")
                st.caption(f"Coupons {'enabled' if checkout.coupons_enabled else 'disabled'}")

                for warning in result.warnings:
                    st.warning(warning)

                with st.expander("🔍 Resolution Details"):
                    st.text(result.get_trace_text())
            else:
                st.info("🛒 Cart is empty")


# ============================================================================
# TAB 2: CATALOG
# ============================================================================
with tab2:
    search = st.text_input("Search catalog", placeholder="Name or product id")
    rows = []
    for product in engine.catalog.search(search, limit=200):
        if not is_product_visible(product, status):
            continue
        price = engine.resolve_product_price(product.product_id, status)
        display = render_price_display(product, status, currency)
        rows.append({
            'Product': product.product_id,
            'Name': product.name,
            'Kind': product.kind.value,
            'Net': float(price.net),
            'Gross': float(price.gross),
            'Source': price.source,
            'B2B Display': f"{display['netto']} / {display['brutto']}" if display else "",
        })
    st.dataframe(pd.DataFrame(rows), use_container_width=True, hide_index=True)
