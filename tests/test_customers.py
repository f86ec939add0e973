from __future__ import annotations

import pytest

from pos_inventory.database.repositories import CustomersRepo
from pos_inventory.errors import DuplicateKeyError, NotFoundError, ValidationError


@pytest.fixture
def customers(conn):
    return CustomersRepo(conn)


def test_create_and_lookup(customers):
    cid = customers.create("Rahim", " 01711000000 ", "Dhaka")
    c = customers.get(cid)
    assert c.as_dict() == {"id": cid, "name": "Rahim", "phone": "01711000000", "address": "Dhaka"}
    assert customers.get_by_phone("01711000000").id == cid
    assert customers.get_by_phone("  ") is None
    assert customers.get(999) is None


def test_create_with_known_phone_refreshes_only_given_fields(customers):
    cid = customers.create("Rahim", "0171", "Dhaka")
    again = customers.create(None, "0171", "Chattogram")
    assert again == cid
    c = customers.get(cid)
    assert c.name == "Rahim"
    assert c.address == "Chattogram"


def test_create_needs_name_or_phone(customers):
    with pytest.raises(ValidationError):
        customers.create("  ", None, "somewhere")


def test_customer_without_phone(customers):
    a = customers.create("Counter guest", None)
    b = customers.create("Counter guest", None)
    assert a != b
    assert customers.get(a).phone is None


def test_search(customers):
    customers.create("Rahim", "0171", "Mirpur")
    customers.create("Karim", "0181", "Uttara")
    assert [c.name for c in customers.search("Mirpur")] == ["Rahim"]
    assert [c.name for c in customers.search("018")] == ["Karim"]
    assert [c.name for c in customers.search()] == ["Karim", "Rahim"]


def test_update(customers):
    a = customers.create("Rahim", "0171")
    customers.create("Karim", "0181")
    customers.update(a, "Rahim U.", "0172", "Banani")
    assert customers.get(a).phone == "0172"
    with pytest.raises(DuplicateKeyError):
        customers.update(a, "Rahim U.", "0181", None)
    with pytest.raises(NotFoundError):
        customers.update(999, "x", "0", None)
