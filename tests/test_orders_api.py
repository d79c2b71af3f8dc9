import pytest
from sqlmodel import Session

from storefront.constants.order_status import CANCELLED, DELIVERED, PENDING, PROCESSING, SHIPPED
from storefront.constants.product_status import OUT_OF_STOCK, PUBLISHED
from storefront.errors import InvalidStatusTransition
from storefront.models.order import Order
from storefront.services.order_event_service import change_order_status

from conftest import auth_headers, stock_of


@pytest.fixture
def placed(finalizer, gateway, user, make_product):
    product = make_product(name="Alpha", price="10.00", stock=2)
    payment_session = gateway.add_session(user.id, [(product, 2)])
    order = finalizer.finalize_order(user.id, payment_session.id)
    return order, product


def _set_status(client, admin, order_id, status, **extra):
    return client.put(
        f"/admin/orders/{order_id}/status",
        json={"status": status, **extra},
        headers=auth_headers(admin),
    )


def test_order_history_and_detail(client, user, placed):
    order, product = placed

    history = client.get("/orders", headers=auth_headers(user)).json()
    assert history["total_items"] == 1
    assert history["results"][0]["id"] == order.id
    assert history["results"][0]["item_count"] == 2

    detail = client.get(f"/orders/{order.id}", headers=auth_headers(user))
    assert detail.status_code == 200
    assert detail.json()["items"][0]["product_id"] == product.id


def test_orders_are_private(client, make_user, admin, placed):
    order, _ = placed
    stranger = make_user()

    assert client.get(f"/orders/{order.id}", headers=auth_headers(stranger)).status_code == 404
    assert client.get(f"/orders/{order.id}", headers=auth_headers(admin)).status_code == 200
    assert client.get("/orders", headers=auth_headers(stranger)).json()["total_items"] == 0


def test_check_purchase(client, user, make_user, placed):
    _, product = placed
    buyer_headers = auth_headers(user)

    response = client.get("/orders/check-purchase", params={"productId": product.id}, headers=buyer_headers)
    assert response.json() == {"has_purchased": True}

    stranger = make_user()
    response = client.get("/orders/check-purchase", params={"productId": product.id}, headers=auth_headers(stranger))
    assert response.json() == {"has_purchased": False}


def test_fulfilment_lifecycle(client, admin, placed):
    order, _ = placed

    assert _set_status(client, admin, order.id, PROCESSING).status_code == 200
    response = _set_status(
        client,
        admin,
        order.id,
        SHIPPED,
        carrier="UPS",
        tracking_number="1Z999",
        tracking_url="https://ups.example.com/1Z999",
    )
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == SHIPPED
    assert body["carrier"] == "UPS"
    assert body["tracking_number"] == "1Z999"

    body = _set_status(client, admin, order.id, DELIVERED, note="Left at the door").json()
    assert [event["status"] for event in body["status_history"]] == [PENDING, PROCESSING, SHIPPED, DELIVERED]
    assert body["status_history"][-1]["note"] == "Left at the door"
    assert body["status_history"][-1]["updated_by"] == admin.id


@pytest.mark.parametrize("target", [SHIPPED, DELIVERED])
def test_invalid_transition(client, admin, placed, target):
    order, _ = placed

    response = _set_status(client, admin, order.id, target)

    assert response.status_code == 400
    assert response.json()["error"] == "InvalidStatusTransition"


def test_cancel_restocks(client, engine, admin, placed):
    order, product = placed
    assert stock_of(engine, product.id) == (0, OUT_OF_STOCK)

    response = _set_status(client, admin, order.id, CANCELLED, note="Customer request")

    assert response.status_code == 200
    assert response.json()["status"] == CANCELLED
    assert stock_of(engine, product.id) == (2, PUBLISHED)

    # cancelled is terminal
    assert _set_status(client, admin, order.id, PROCESSING).status_code == 400


def test_racing_cancels_restock_once(engine, admin, placed):
    order, product = placed

    with Session(engine) as first, Session(engine) as second:
        stale = first.get(Order, order.id)
        assert len(stale.items) == 1

        change_order_status(second, second.get(Order, order.id), CANCELLED, admin_id=admin.id)

        # still reads pending, but the other cancel already won
        with pytest.raises(InvalidStatusTransition):
            change_order_status(first, stale, CANCELLED, admin_id=admin.id)

    assert stock_of(engine, product.id) == (2, PUBLISHED)
    with Session(engine) as fresh:
        history = [entry.status for entry in fresh.get(Order, order.id).status_history]
        assert history == [PENDING, CANCELLED]


def test_cancelled_order_no_longer_counts_as_purchase(client, user, admin, placed):
    order, product = placed
    _set_status(client, admin, order.id, CANCELLED)

    response = client.get(
        "/orders/check-purchase",
        params={"productId": product.id},
        headers=auth_headers(user),
    )
    assert response.json() == {"has_purchased": False}


def test_admin_only(client, user, placed):
    order, _ = placed

    assert _set_status(client, user, order.id, PROCESSING).status_code == 403
    assert client.get("/admin/orders", headers=auth_headers(user)).status_code == 403


def test_admin_order_list_filters(client, admin, placed):
    order, _ = placed
    headers = auth_headers(admin)

    assert client.get("/admin/orders", params={"status": PENDING}, headers=headers).json()["total_items"] == 1
    assert client.get("/admin/orders", params={"status": SHIPPED}, headers=headers).json()["total_items"] == 0
    assert client.get("/admin/orders", params={"status": "lost"}, headers=headers).status_code == 400
    assert client.get(f"/admin/orders/{order.id}", headers=headers).json()["id"] == order.id
    assert client.get("/admin/orders/999", headers=headers).status_code == 404
