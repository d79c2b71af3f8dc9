import pytest
from sqlmodel import Session

from storefront.models.product import Product
from storefront.services.review_service import has_purchased, refresh_product_rating

from conftest import auth_headers


@pytest.fixture
def product(make_product):
    return make_product(name="Reviewed", price="8.00", stock=10)


def _review(client, user, product, rating, comment=""):
    return client.post(
        "/reviews",
        json={"product_id": product.id, "rating": rating, "comment": comment},
        headers=auth_headers(user),
    )


def _rating(engine, product_id):
    with Session(engine) as fresh:
        stored = fresh.get(Product, product_id)
        return stored.average_rating, stored.review_count


def test_review_by_buyer_is_verified(client, finalizer, gateway, user, product):
    payment_session = gateway.add_session(user.id, [(product, 1)])
    finalizer.finalize_order(user.id, payment_session.id)

    response = _review(client, user, product, 5, "  Great  ")

    assert response.status_code == 201
    body = response.json()
    assert body["review"]["is_verified_purchase"] is True
    assert body["review"]["comment"] == "Great"
    assert body["stats"] == {"average_rating": 5.0, "review_count": 1}


def test_review_without_purchase(client, user, product):
    response = _review(client, user, product, 3)

    assert response.status_code == 201
    assert response.json()["review"]["is_verified_purchase"] is False


def test_one_review_per_product(client, user, product):
    assert _review(client, user, product, 4).status_code == 201
    assert _review(client, user, product, 2).status_code == 409


def test_average_rating(client, engine, make_user, product):
    first, second, third = make_user(), make_user(), make_user()
    _review(client, first, product, 5)
    _review(client, second, product, 4)
    review_id = _review(client, third, product, 4).json()["review"]["id"]

    assert _rating(engine, product.id) == (4.33, 3)

    response = client.put(f"/reviews/{review_id}", json={"rating": 1}, headers=auth_headers(third))
    assert response.status_code == 200
    assert response.json()["stats"]["average_rating"] == pytest.approx(3.33)

    assert client.delete(f"/reviews/{review_id}", headers=auth_headers(third)).status_code == 200
    assert _rating(engine, product.id) == (4.5, 2)


def test_only_author_edits(client, make_user, product):
    author, other = make_user(), make_user()
    review_id = _review(client, author, product, 5).json()["review"]["id"]

    assert client.put(f"/reviews/{review_id}", json={"rating": 1}, headers=auth_headers(other)).status_code == 404
    assert client.delete(f"/reviews/{review_id}", headers=auth_headers(other)).status_code == 404


def test_list_reviews_by_product(client, make_user, make_product, product):
    other_product = make_product(name="Other")
    _review(client, make_user(), product, 5)
    _review(client, make_user(), other_product, 1)

    response = client.get("/reviews", params={"productId": product.id})

    assert response.json()["total_items"] == 1
    assert response.json()["results"][0]["rating"] == 5


def test_moderation_hides_review(client, engine, admin, make_user, product):
    _review(client, make_user(), product, 5)
    review_id = _review(client, make_user(), product, 1).json()["review"]["id"]

    response = client.put(f"/admin/reviews/{review_id}", json={"is_approved": False}, headers=auth_headers(admin))

    assert response.status_code == 200
    assert response.json()["stats"] == {"average_rating": 5.0, "review_count": 1}
    assert client.get("/reviews", params={"productId": product.id}).json()["total_items"] == 1
    assert client.get("/admin/reviews", params={"approved": False}, headers=auth_headers(admin)).json()["total_items"] == 1


def test_invalid_rating(client, user, product):
    assert _review(client, user, product, 6).status_code == 422
    assert _review(client, user, product, 0).status_code == 422


def test_unknown_product(client, user):
    response = client.post(
        "/reviews",
        json={"product_id": 999, "rating": 4},
        headers=auth_headers(user),
    )

    assert response.status_code == 404


def test_rating_of_product_without_reviews(session, product, user):
    assert refresh_product_rating(session, product.id) == {"average_rating": 0.0, "review_count": 0}
    assert has_purchased(session, user.id, product.id) is False


def test_own_review_lookup(client, user, make_user, product):
    headers = auth_headers(user)
    params = {"productId": product.id}

    assert client.get("/reviews/user-review", params=params, headers=headers).json() == {
        "has_review": False,
        "review": None,
    }

    review_id = _review(client, user, product, 4, "Solid").json()["review"]["id"]
    body = client.get("/reviews/user-review", params=params, headers=headers).json()

    assert body["has_review"] is True
    assert body["review"]["id"] == review_id
    assert body["review"]["rating"] == 4

    other = client.get("/reviews/user-review", params=params, headers=auth_headers(make_user()))
    assert other.json()["has_review"] is False
    assert client.get("/reviews/user-review", params=params).status_code == 401
