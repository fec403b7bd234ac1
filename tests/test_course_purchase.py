from brainxcel import security
from brainxcel.models import Payment, PurchasedCourse, Role
from conftest import add_course, load_user, register, set_user

EMAIL = "student@example.com"


def _pay(client, settings, course_id, order_id="order_1", payment_id="pay_c1", signature=None):
    signature = signature or security.payment_signature(settings.payment_secret, order_id, payment_id)
    return client.post("/payments/verify/payment", json={
        "orderId": order_id, "paymentId": payment_id, "signature": signature,
        "amount": 49900, "currency": "INR", "courseId": course_id,
    })


def test_create_order_uses_course_price(client, gateway, db):
    register(client)
    course = add_course(db, price=1999, currency="USD")
    res = client.post("/payments/order", json={"courseId": course.id})
    assert res.status_code == 200, res.text
    data = res.json()["data"]
    assert data["amount"] == 1999 and data["currency"] == "USD"
    assert gateway.orders == [(data["id"], 1999, "USD")]


def test_order_for_missing_course(client):
    register(client)
    res = client.post("/payments/order", json={"courseId": 404})
    assert res.status_code == 404


def test_course_payment_grants_entitlement(client, settings, db):
    register(client)
    course = add_course(db)
    other = add_course(db, title="Advanced Python")
    assert client.get(f"/courses/{course.id}").status_code == 400

    res = _pay(client, settings, course.id)
    assert res.status_code == 200, res.text
    assert res.json()["data"]["coursePurchase"] is True

    assert client.get(f"/courses/{course.id}").status_code == 200
    assert client.get(f"/courses/{other.id}").status_code == 400
    assert client.get("/users/profile").json()["data"]["coursesPurchased"] == [course.id]


def test_course_payment_is_idempotent(client, settings, db):
    register(client)
    course = add_course(db)
    assert _pay(client, settings, course.id).status_code == 200
    again = _pay(client, settings, course.id)
    assert again.status_code == 400
    assert again.json()["message"] == "Payment already verified"

    user = load_user(db, EMAIL)
    assert db.query(PurchasedCourse).filter(PurchasedCourse.user_id == user.id).count() == 1
    assert db.query(Payment).count() == 1


def test_already_purchased_course_conflicts(client, settings, db):
    register(client)
    course = add_course(db)
    _pay(client, settings, course.id)
    res = _pay(client, settings, course.id, order_id="order_2", payment_id="pay_c2")
    assert res.status_code == 400
    assert res.json()["message"] == "Course already purchased"
    assert client.post("/payments/order", json={"courseId": course.id}).status_code == 400


def test_course_signature_mismatch(client, settings, db):
    register(client)
    course = add_course(db)
    res = _pay(client, settings, course.id, signature="0" * 64)
    assert res.status_code == 400
    assert db.query(Payment).count() == 0
    assert load_user(db, EMAIL).purchased_courses == []


def test_my_courses_and_purchases(client, settings, db):
    register(client)
    course = add_course(db)
    add_course(db, title="Not Bought")
    _pay(client, settings, course.id)

    courses = client.get("/users/my-courses").json()["data"]
    assert [c["id"] for c in courses] == [course.id]
    purchases = client.get("/users/my-purchases").json()["data"]
    assert [p["paymentId"] for p in purchases] == ["pay_c1"]


def test_teacher_sees_every_course(client, db):
    register(client)
    course = add_course(db)
    set_user(db, EMAIL, role=Role.TEACHER)
    assert client.get(f"/courses/{course.id}").status_code == 200


def test_order_gateway_failure_is_upstream_error(client, gateway, db):
    register(client)
    course = add_course(db)
    gateway.fail = True
    res = client.post("/payments/order", json={"courseId": course.id})
    assert res.status_code == 500
    assert res.json()["message"] == "Unable to create order"
    assert gateway.orders == []
    assert db.query(Payment).count() == 0
    assert load_user(db, EMAIL).purchased_courses == []


def test_missing_course_is_not_found_before_entitlement(client):
    register(client)
    res = client.get("/courses/4040")
    assert res.status_code == 404
    assert res.json()["message"] == "Course not found"
