"""Tests HTTP de /api/contacts: sobres de éxito y de error."""


VALID = {"name": "Juan Perez", "email": "Juan@Example.com", "message": "Hola, me interesa conocer más."}


def test_create_contact_success(client):
    response = client.post(
        "/api/contacts",
        json=VALID,
        headers={"User-Agent": "pytest-agent", "X-Forwarded-For": "203.0.113.7, 10.0.0.1"},
    )
    assert response.status_code == 201
    body = response.get_json()
    assert body["success"] is True
    assert body["message"] == "Contact saved successfully"
    assert body["data"]["email"] == "juan@example.com"
    assert set(body["data"]) == {"id", "name", "email", "created_at"}


def test_create_contact_accepts_form_encoded(client):
    response = client.post("/api/contacts", data=VALID)
    assert response.status_code == 201


def test_create_contact_validation_envelope(client):
    response = client.post("/api/contacts", json={"name": "J", "email": "bad", "message": "short"})
    assert response.status_code == 400
    body = response.get_json()
    assert body["error"] == "Validation failed"
    assert [(d["field"], d["rule"]) for d in body["details"]] == [
        ("name", "length"),
        ("email", "format"),
        ("message", "length"),
    ]
    # Nada se persistió
    assert client.get("/api/contacts").get_json()["pagination"]["total"] == 0


def test_create_contact_with_malformed_json(client):
    response = client.post("/api/contacts", data="{not json", content_type="application/json")
    assert response.status_code == 400
    assert {d["rule"] for d in response.get_json()["details"]} == {"required"}


def test_email_round_trip_is_normalized(client):
    created = client.post(
        "/api/contacts",
        json={**VALID, "email": "  Foo@EXAMPLE.com "},
    ).get_json()["data"]

    fetched = client.get(f"/api/contacts/{created['id']}").get_json()
    assert fetched["success"] is True
    assert fetched["data"]["email"] == "foo@example.com"
    assert fetched["data"]["created_at"] == created["created_at"]
    assert fetched["data"]["message"] == VALID["message"]

    listed = client.get("/api/contacts?email=foo@example.com").get_json()
    assert [row["id"] for row in listed["data"]] == [created["id"]]


def test_list_contacts_pagination(client, contact_factory):
    ids = contact_factory(12)
    response = client.get("/api/contacts?page=2&limit=10")
    assert response.status_code == 200
    body = response.get_json()
    assert body["success"] is True
    assert body["pagination"] == {"page": 2, "limit": 10, "total": 12, "totalPages": 2}
    assert [row["id"] for row in body["data"]] == ids[10:]


def test_list_contacts_rejects_bad_query(client):
    response = client.get("/api/contacts?page=abc")
    assert response.status_code == 400
    body = response.get_json()
    assert body["error"] == "Validation failed"
    assert body["details"][0]["field"] == "page"


def test_list_contacts_rejects_oversized_page(client):
    response = client.get("/api/contacts?page=100000000000000000000")
    assert response.status_code == 400
    body = response.get_json()
    assert body["error"] == "Validation failed"
    assert body["details"] == [
        {"field": "page", "rule": "format", "message": "page must be a positive integer"}
    ]


def test_stored_ip_is_the_trusted_proxy_hop(app, client):
    from backend.app.extensions import db
    from backend.app.models import Contact

    created = client.post(
        "/api/contacts",
        json=VALID,
        headers={"X-Forwarded-For": "198.51.100.99, 203.0.113.7"},
    ).get_json()["data"]

    with app.app_context():
        stored_ip = db.session.scalar(
            db.select(Contact.ip_address).where(Contact.id == created["id"])
        )
    # Solo el salto añadido por el proxy de confianza cuenta
    assert stored_ip == "203.0.113.7"


def test_get_contact_not_found(client):
    response = client.get("/api/contacts/424242")
    assert response.status_code == 404
    assert response.get_json() == {"error": "Contact not found"}


def test_non_numeric_id_is_unknown_endpoint(client):
    response = client.get("/api/contacts/abc")
    assert response.status_code == 404
    assert response.get_json() == {"error": "Endpoint not found"}


def test_delete_contact(client, contact_factory):
    (contact_id,) = contact_factory(1, email="gone@example.com")
    response = client.delete(f"/api/contacts/{contact_id}")
    assert response.status_code == 200
    body = response.get_json()
    assert body == {
        "success": True,
        "message": "Contact deleted successfully",
        "data": {"id": contact_id, "email": "gone@example.com"},
    }

    again = client.delete(f"/api/contacts/{contact_id}")
    assert again.status_code == 404
    assert again.get_json() == {"error": "Contact not found"}


def test_delete_requires_api_key_in_production(make_app):
    prod = make_app(APP_ENV="production", ADMIN_API_KEY="s3cret")
    prod_client = prod.test_client()
    created = prod_client.post("/api/contacts", json=VALID).get_json()["data"]

    denied = prod_client.delete(f"/api/contacts/{created['id']}")
    assert denied.status_code == 401
    assert denied.get_json() == {"error": "Unauthorized"}

    wrong = prod_client.delete(f"/api/contacts/{created['id']}", headers={"X-API-Key": "nope"})
    assert wrong.status_code == 401

    allowed = prod_client.delete(f"/api/contacts/{created['id']}", headers={"X-API-Key": "s3cret"})
    assert allowed.status_code == 200


def test_store_error_hides_detail_outside_development(client, gateway, monkeypatch):
    from backend.app.errors import StoreUnavailable

    def boom(*args, **kwargs):
        raise StoreUnavailable("Failed to fetch contact", details="relation does not exist")

    monkeypatch.setattr(gateway, "get_by_id", boom)
    response = client.get("/api/contacts/1")
    assert response.status_code == 500
    assert response.get_json() == {"error": "Failed to fetch contact"}


def test_store_error_shows_detail_in_development(make_app, monkeypatch):
    from backend.app.errors import StoreUnavailable

    dev = make_app(APP_ENV="development")

    def boom(*args, **kwargs):
        raise StoreUnavailable("Failed to fetch contact", details="relation does not exist")

    monkeypatch.setattr(dev.extensions["contact_gateway"], "get_by_id", boom)
    response = dev.test_client().get("/api/contacts/1")
    assert response.status_code == 500
    assert response.get_json() == {
        "error": "Failed to fetch contact",
        "details": "relation does not exist",
    }


def test_unknown_route_and_method(client):
    missing = client.get("/api/nope")
    assert missing.status_code == 404
    assert missing.get_json() == {"error": "Endpoint not found"}

    wrong_method = client.put("/api/contacts")
    assert wrong_method.status_code == 405
    assert wrong_method.get_json() == {"error": "Method not allowed"}


def test_body_over_one_megabyte_rejected(client):
    response = client.post(
        "/api/contacts",
        data="x" * (1024 * 1024 + 1),
        content_type="application/json",
    )
    assert response.status_code == 413
    assert response.get_json() == {"error": "Request body too large"}


def test_security_and_cors_headers(client):
    response = client.get("/api/contacts", headers={"Origin": "http://example.com"})
    assert "default-src 'self'" in response.headers["Content-Security-Policy"]
    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert "Access-Control-Allow-Origin" in response.headers
    assert response.headers["X-Request-ID"]
