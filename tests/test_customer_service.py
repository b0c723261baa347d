import pytest

from b2b_pricing.engine.models import APPROVE, SUBMIT_B2B_APPLICATION, CustomerStatus
from b2b_pricing.exceptions import CustomerNotFoundError, InvalidStatusTransition
from b2b_pricing.services.customer_service import Customer, CustomerService


@pytest.fixture
def outbox():
    return []


@pytest.fixture
def service(settings, outbox):
    return CustomerService(settings.customers_csv, notifier=outbox.append, settings=settings)


def register_b2b(service, customer_id="10"):
    customer = Customer(customer_id=customer_id, email=f"salon{customer_id}@example.com", display_name="Salon Urody")
    return service.handle_registration(customer, form_id=1)


def test_status_transitions_table():
    assert CustomerStatus.GUEST.transition(SUBMIT_B2B_APPLICATION) is CustomerStatus.B2B_PENDING
    assert CustomerStatus.B2B_PENDING.transition(APPROVE) is CustomerStatus.B2B_ACCEPTED

    with pytest.raises(InvalidStatusTransition):
        CustomerStatus.B2C.transition(APPROVE)
    with pytest.raises(InvalidStatusTransition):
        CustomerStatus.B2B_ACCEPTED.transition(SUBMIT_B2B_APPLICATION)


def test_b2b_registration_goes_pending_and_notifies_admin(service, outbox, settings):
    customer = register_b2b(service)

    assert customer.status is CustomerStatus.B2B_PENDING
    assert service.get_status("10") is CustomerStatus.B2B_PENDING
    assert len(outbox) == 1
    assert outbox[0].recipient == settings.admin_email
    assert outbox[0].subject == "New B2B Account Request"
    assert "salon10@example.com" in outbox[0].body


def test_other_form_creates_b2c_customer(service, outbox):
    customer = service.handle_registration(Customer(customer_id="11", email="anna@example.com"), form_id=2)

    assert customer.status is CustomerStatus.B2C
    assert outbox == []


def test_duplicate_registration_rejected(service):
    register_b2b(service)

    with pytest.raises(ValueError):
        register_b2b(service)


def test_approve_notifies_customer(service, outbox):
    register_b2b(service)
    outbox.clear()

    customer = service.approve("10")

    assert customer.status is CustomerStatus.B2B_ACCEPTED
    assert service.get_status("10") is CustomerStatus.B2B_ACCEPTED
    assert [n.subject for n in outbox] == ["Your B2B Account Has Been Approved"]
    assert outbox[0].recipient == "salon10@example.com"


def test_approve_twice_rejected(service):
    register_b2b(service)
    service.approve("10")

    with pytest.raises(InvalidStatusTransition):
        service.approve("10")


def test_approve_unknown_customer(service):
    with pytest.raises(CustomerNotFoundError):
        service.approve("404")


def test_set_status_follows_workflow(service, outbox):
    register_b2b(service)

    customer = service.set_status("10", CustomerStatus.B2B_ACCEPTED)

    assert customer.status is CustomerStatus.B2B_ACCEPTED
    assert outbox[-1].subject == "Your B2B Account Has Been Approved"


def test_set_status_rejects_skipped_steps(service):
    service.handle_registration(Customer(customer_id="11", email="anna@example.com"), form_id=2)

    with pytest.raises(InvalidStatusTransition):
        service.set_status("11", CustomerStatus.B2B_ACCEPTED)
    assert service.get_status("11") is CustomerStatus.B2C


def test_set_same_status_is_noop(service, outbox):
    register_b2b(service)
    outbox.clear()

    assert service.set_status("10", CustomerStatus.B2B_PENDING).status is CustomerStatus.B2B_PENDING
    assert outbox == []


def test_failing_notifier_does_not_block_workflow(settings):
    def broken(notification):
        raise ConnectionError("smtp down")

    service = CustomerService(settings.customers_csv, notifier=broken, settings=settings)

    customer = register_b2b(service)

    assert customer.status is CustomerStatus.B2B_PENDING
    assert service.approve("10").status is CustomerStatus.B2B_ACCEPTED


def test_unknown_customers_are_guests(service):
    assert service.get_status(None) is CustomerStatus.GUEST
    assert service.get_status("missing") is CustomerStatus.GUEST


def test_invalid_stored_status_reads_as_b2c(settings):
    settings.customers_csv.write_text(
        "customer_id,email,display_name,status\n"
        "7,x@example.com,X,vip\n",
        encoding="utf-8",
    )
    service = CustomerService(settings.customers_csv, settings=settings)

    assert service.get_status("7") is CustomerStatus.B2C


def test_business_details_are_stored(service):
    customer = Customer(
        customer_id="11",
        email="gabinet@example.com",
        business={'company': 'Gabinet Lux', 'nip': '1234563218', 'city': 'Łódź'},
    )
    service.handle_registration(customer, form_id=1)

    stored = service.get_customer("11")
    assert stored.business == {'company': 'Gabinet Lux', 'nip': '1234563218', 'city': 'Łódź'}

    service.approve("11")
    assert service.get_customer("11").business['company'] == 'Gabinet Lux'
