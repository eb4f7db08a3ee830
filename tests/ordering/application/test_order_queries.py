"""Application tests for order listing, lookup, tracking and reorder."""

import pytest
from ordering.actor import Actor
from ordering.catalogue.management import ArchiveProduct
from ordering.errors import ItemUnavailable, OrderNotFound, Unauthorized
from ordering.order.cancellation import cancel_order
from ordering.order.queries import get_order, list_all_orders, list_orders, reorder, track_order
from protean import current_domain


class TestListOrders:
    def test_own_orders_only(self, place_order):
        place_order()
        place_order(actor=Actor(customer_id="cust-002"))
        page = list_orders(Actor(customer_id="cust-001"))
        assert page.total == 1

    def test_pagination(self, place_order, customer):
        for _ in range(3):
            place_order(quantity=1)
        page = list_orders(customer, page=2, limit=2)
        assert len(page.items) == 1
        assert page.total_pages == 2
        assert page.has_prev and not page.has_next

    def test_status_filter(self, place_order, customer):
        order, _ = place_order()
        place_order()
        cancel_order(order.id, customer)
        assert list_orders(customer, status="cancelled").total == 1

    def test_admin_listing(self, place_order, admin, customer):
        place_order()
        place_order(actor=Actor(customer_id="cust-002"))
        assert list_all_orders(admin).total == 2
        with pytest.raises(Unauthorized):
            list_all_orders(customer)


class TestGetOrder:
    def test_owner_and_admin(self, place_order, customer, admin):
        order, _ = place_order()
        assert get_order(order.id, customer).order_number == order.order_number
        assert get_order(order.id, admin).order_number == order.order_number

    def test_stranger(self, place_order):
        order, _ = place_order()
        with pytest.raises(Unauthorized):
            get_order(order.id, Actor(customer_id="cust-999"))

    def test_missing(self, customer):
        with pytest.raises(OrderNotFound):
            get_order("ord-missing", customer)


class TestTrackOrder:
    def test_by_number(self, place_order):
        order, _ = place_order()
        assert str(track_order(order.order_number).id) == str(order.id)

    def test_unknown_number(self):
        with pytest.raises(OrderNotFound):
            track_order("ORD0000000000")


class TestReorder:
    def test_available_lines(self, place_order, customer):
        order, product = place_order(quantity=2)
        available, unavailable = reorder(order.id, customer)
        assert available == [{"product_id": str(product.id), "quantity": 2, "variant": None}]
        assert unavailable == 0

    def test_nothing_available(self, place_order, customer):
        order, product = place_order()
        current_domain.process(ArchiveProduct(product_id=product.id), asynchronous=False)
        with pytest.raises(ItemUnavailable):
            reorder(order.id, customer)
