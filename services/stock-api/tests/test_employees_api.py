from apa_stock.routers import employees as employees_router

EMPLOYEE = {
    "first": "Ana",
    "last": "Pérez",
    "email": "Ana.Perez@APA.cl",
    "password": "s3cret!",
    "role": "operator",
}


def test_admin_creates_employee(api) -> None:
    api.login_as("admin", "Admin APA")

    response = api.client.post("/employees/", json=EMPLOYEE)

    assert response.status_code == 201, response.text
    body = response.json()
    assert body["name"] == "Ana Pérez"
    assert body["email"] == "ana.perez@apa.cl"
    assert body["role"] == "operator"
    assert body["active"] is True
    assert "password" not in body

    listed = api.client.get("/employees/").json()
    assert [row["email"] for row in listed] == ["ana.perez@apa.cl"]

    audit = api.client.get("/audit/").json()
    assert audit[0]["entity"] == "employee"
    assert audit[0]["action"] == "created"


def test_duplicate_email_is_rejected(api) -> None:
    api.login_as("admin", "Admin APA")
    assert api.client.post("/employees/", json=EMPLOYEE).status_code == 201

    response = api.client.post("/employees/", json={**EMPLOYEE, "email": "ana.perez@apa.cl"})

    assert response.status_code == 409
    assert response.json()["code"] == "employee.email_taken"


def test_employee_payload_validation(api) -> None:
    api.login_as("admin", "Admin APA")

    assert api.client.post("/employees/", json={**EMPLOYEE, "password": "123"}).status_code == 422
    assert api.client.post("/employees/", json={**EMPLOYEE, "email": "sin-arroba"}).status_code == 422
    assert api.client.post("/employees/", json={**EMPLOYEE, "role": "supervisor"}).status_code == 422


def test_only_admin_manages_employees(api) -> None:
    api.login_as("operator", "Olga Operadora")

    assert api.client.post("/employees/", json=EMPLOYEE).status_code == 403
    assert api.client.get("/employees/").status_code == 403
    assert api.client.get("/audit/").status_code == 403


def test_workers_lists_active_names(api) -> None:
    api.login_as("admin", "Admin APA")
    api.client.post("/employees/", json=EMPLOYEE)
    api.client.post(
        "/employees/",
        json={**EMPLOYEE, "first": "Luis", "last": "Soto", "email": "luis@apa.cl", "active": False},
    )
    api.client.post("/employees/", json={**EMPLOYEE, "first": "Berta", "last": "Ríos", "email": "berta@apa.cl"})

    api.login_as("consulta", "Carlos Consulta")
    response = api.client.get("/employees/workers")

    assert response.status_code == 200
    assert response.json() == ["Ana Pérez", "Berta Ríos"]


def test_duplicate_email_caught_at_insert(api, monkeypatch) -> None:
    api.login_as("admin", "Admin APA")
    assert api.client.post("/employees/", json=EMPLOYEE).status_code == 201

    async def lookup_misses(session, email):
        return False

    monkeypatch.setattr(employees_router, "_email_taken", lookup_misses)
    response = api.client.post("/employees/", json={**EMPLOYEE, "first": "Otra"})

    assert response.status_code == 409
    assert response.json()["code"] == "employee.email_taken"
    assert [row["name"] for row in api.client.get("/employees/").json()] == ["Ana Pérez"]
