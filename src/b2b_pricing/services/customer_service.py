"""
Customer Service - customer status store and the B2B registration workflow.

Statuses live in customers.csv (customer_id, email, display_name, status,
then the business detail columns).
Submitting the B2B registration form moves a customer to b2b_pending and
tells the administrator; approval moves them to b2b_accepted and tells the
customer. Notifications are fire-and-forget.
"""
import csv
import logging
from pathlib import Path
from typing import Callable, Optional
from dataclasses import dataclass, field

from ..config.settings import get_settings, Settings
from ..engine.models import APPROVE, STATUS_TRANSITIONS, SUBMIT_B2B_APPLICATION, CustomerStatus
from ..exceptions import CustomerNotFoundError, InvalidStatusTransition

logger = logging.getLogger(__name__)

# Business details collected by the B2B registration form
BUSINESS_FIELDS = [
    'first_name', 'last_name', 'company', 'nip', 'address_1', 'address_2',
    'country', 'state', 'city', 'postcode', 'phone', 'invoice',
]


@dataclass
class Customer:
    """A customer record."""
    customer_id: str
    email: str = ""
    display_name: str = ""
    status: CustomerStatus = CustomerStatus.GUEST
    business: dict[str, str] = field(default_factory=dict)

    def to_csv_row(self) -> dict:
        row = {
            'customer_id': self.customer_id,
            'email': self.email or '',
            'display_name': self.display_name or '',
            'status': self.status.value,
        }
        for name in BUSINESS_FIELDS:
            row[name] = self.business.get(name) or ''
        return row

    @classmethod
    def from_csv_row(cls, row: dict) -> 'Customer':
        status_value = (row.get('status') or '').strip()
        try:
            status = CustomerStatus(status_value)
        except ValueError:
            status = CustomerStatus.B2C
        return cls(
            customer_id=(row.get('customer_id') or '').strip(),
            email=row.get('email') or '',
            display_name=row.get('display_name') or '',
            status=status,
            business={name: row[name].strip() for name in BUSINESS_FIELDS if (row.get(name) or '').strip()},
        )


@dataclass
class Notification:
    """An e-mail handed to the delivery backend."""
    recipient: str
    subject: str
    body: str


Notifier = Callable[[Notification], None]


def log_notifier(notification: Notification):
    """Default notifier: log the message instead of sending it."""
    logger.info("Notification to %s: %s", notification.recipient, notification.subject)


class CustomerService:
    """Service for customer statuses and B2B applications."""

    CSV_COLUMNS = ['customer_id', 'email', 'display_name', 'status'] + BUSINESS_FIELDS

    def __init__(
        self,
        customers_csv_path: Path,
        notifier: Optional[Notifier] = None,
        settings: Optional[Settings] = None
    ):
        self.customers_csv_path = customers_csv_path
        self.notifier = notifier or log_notifier
        self.settings = settings or get_settings()

    def list_customers(self) -> list[Customer]:
        customers = []
        if not self.customers_csv_path.exists():
            return customers

        with open(self.customers_csv_path, 'r', encoding='utf-8') as f:
            reader = csv.DictReader(f)
            for row in reader:
                if not row.get('customer_id'):
                    continue
                customers.append(Customer.from_csv_row(row))
        return customers

    def get_customer(self, customer_id: str) -> Optional[Customer]:
        customer_id = str(customer_id).strip()
        for customer in self.list_customers():
            if customer.customer_id == customer_id:
                return customer
        return None

    def get_status(self, customer_id: Optional[str]) -> CustomerStatus:
        """Status of a customer; unknown or anonymous visitors are guests."""
        if not customer_id:
            return CustomerStatus.GUEST
        customer = self.get_customer(customer_id)
        return customer.status if customer else CustomerStatus.GUEST

    def handle_registration(self, customer: Customer, form_id: int) -> Customer:
        """
        Store a newly registered customer.

        Registrations through the B2B form go to b2b_pending and notify the admin;
        other forms create a regular b2c customer.
        """
        if self.get_customer(customer.customer_id):
            raise ValueError(f"Customer '{customer.customer_id}' already exists")

        if form_id == self.settings.b2b_registration_form_id:
            customer.status = CustomerStatus.GUEST.transition(SUBMIT_B2B_APPLICATION)
        else:
            customer.status = CustomerStatus.B2C

        customers = self.list_customers()
        customers.append(customer)
        self._write_customers(customers)

        if customer.status is CustomerStatus.B2B_PENDING:
            self._notify(self._admin_notification(customer))
        return customer

    def approve(self, customer_id: str) -> Customer:
        """Accept a pending B2B application and notify the customer."""
        return self._apply(customer_id, APPROVE)

    def set_status(self, customer_id: str, status: CustomerStatus) -> Customer:
        """
        Administrative status change.

        Only workflow transitions are allowed; a move into b2b_accepted
        notifies the customer.
        """
        customer = self._require(customer_id)
        if customer.status == status:
            return customer
        for (current, event), target in STATUS_TRANSITIONS.items():
            if current == customer.status and target == status:
                return self._apply(customer_id, event)
        raise InvalidStatusTransition(customer.status, f"set_{status.value}")

    def _apply(self, customer_id: str, event: str) -> Customer:
        customers = self.list_customers()
        customer = None
        for candidate in customers:
            if candidate.customer_id == str(customer_id).strip():
                customer = candidate
                break
        if customer is None:
            raise CustomerNotFoundError(customer_id)

        previous = customer.status
        customer.status = previous.transition(event)
        self._write_customers(customers)
        logger.info("Customer %s: %s -> %s", customer.customer_id, previous.value, customer.status.value)

        if customer.status.is_b2b_accepted and not previous.is_b2b_accepted:
            self._notify(self._approval_notification(customer))
        return customer

    def _require(self, customer_id: str) -> Customer:
        customer = self.get_customer(customer_id)
        if customer is None:
            raise CustomerNotFoundError(customer_id)
        return customer

    def _admin_notification(self, customer: Customer) -> Notification:
        return Notification(
            recipient=self.settings.admin_email,
            subject="New B2B Account Request",
            body=(
                f"A new B2B account request has been submitted by "
                f"{customer.display_name} ({customer.email}).\n\n"
                f"Customer id: {customer.customer_id}"
            ),
        )

    def _approval_notification(self, customer: Customer) -> Notification:
        return Notification(
            recipient=customer.email,
            subject="Your B2B Account Has Been Approved",
            body=(
                f"Your B2B account ({customer.display_name or customer.customer_id}) has been approved. "
                "You now see wholesale net prices and free sample bundles in the shop."
            ),
        )

    def _notify(self, notification: Notification):
        try:
            self.notifier(notification)
        except Exception:
            logger.exception("Failed to deliver notification to %s", notification.recipient)

    def _write_customers(self, customers: list[Customer]):
        self.customers_csv_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.customers_csv_path, 'w', encoding='utf-8', newline='') as f:
            writer = csv.DictWriter(f, fieldnames=self.CSV_COLUMNS)
            writer.writeheader()
            for customer in customers:
                writer.writerow(customer.to_csv_row())
