"""
Billing Policy - checkout billing fields taken from the B2B business details.

Accepted B2B customers always check out with the business details they
registered with: posted billing values are overwritten by every non-empty
business value, an invoice is always requested, and only the billing
country stays editable. Pending customers get the same values as a prefill
they may change, plus a notice that their application is in review.
"""
import logging
from typing import Iterable, Optional

from ..engine.models import CustomerStatus
from ..services.customer_service import Customer

logger = logging.getLogger(__name__)

# Checkout billing field -> business detail
BILLING_FIELD_MAP = {
    'billing_first_name': 'first_name',
    'billing_last_name': 'last_name',
    'billing_company': 'company',
    'billing_address_1': 'address_1',
    'billing_address_2': 'address_2',
    'billing_country': 'country',
    'billing_state': 'state',
    'billing_city': 'city',
    'billing_postcode': 'postcode',
    'billing_phone': 'phone',
    'billing_email': 'email',
    'billing_faktura': 'invoice',
    'billing_nip': 'nip',
}

INVOICE_FIELD = 'billing_faktura'
ACCEPTED_EDITABLE_FIELDS = ('billing_country',)

PENDING_NOTICE = "Your business application is under review but meanwhile you can order as regular user."


def business_value(customer: Customer, detail: str) -> str:
    """A stored business detail; the billing e-mail is the account e-mail."""
    if detail == 'email':
        return (customer.email or '').strip()
    return (customer.business.get(detail) or '').strip()


def billing_prefill(customer: Optional[Customer]) -> dict[str, str]:
    """Billing fields that have a non-empty business value."""
    if customer is None:
        return {}
    prefill = {}
    for billing_field, detail in BILLING_FIELD_MAP.items():
        value = business_value(customer, detail)
        if value:
            prefill[billing_field] = value
    return prefill


def billing_data_for(
    customer: Optional[Customer],
    customer_status: CustomerStatus,
    posted: Optional[dict] = None
) -> dict[str, str]:
    """
    Billing data the order is placed with.

    Accepted B2B customers: posted values overridden by non-empty business
    values, invoice forced on. Pending customers: business values fill the
    fields left empty. Everyone else: posted data unchanged.
    """
    data = dict(posted or {})

    if customer_status.is_b2b_accepted:
        if customer is None:
            logger.warning("Accepted B2B checkout without a customer record, keeping posted billing")
        data.update(billing_prefill(customer))
        data[INVOICE_FIELD] = '1'
    elif customer_status is CustomerStatus.B2B_PENDING:
        for billing_field, value in billing_prefill(customer).items():
            if not data.get(billing_field):
                data[billing_field] = value
    return data


def editable_billing_fields(fields: Iterable[str], customer_status: CustomerStatus) -> list[str]:
    """Fields of the account address form the customer may edit."""
    fields = list(fields)
    if customer_status.is_b2b_accepted:
        return [f for f in fields if f in ACCEPTED_EDITABLE_FIELDS]
    return fields


def pending_notice(customer_status: CustomerStatus) -> Optional[str]:
    if customer_status is CustomerStatus.B2B_PENDING:
        return PENDING_NOTICE
    return None
