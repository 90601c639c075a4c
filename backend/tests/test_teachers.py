"""Tests for the teachers router — encrypted names, indexed username."""
from __future__ import annotations

import pytest
from sqlmodel import Session, select

from kitadoc.dependencies import get_encryption_key
from kitadoc.main import app as fastapi_app
from kitadoc.models.teacher import TeacherRow
from kitadoc.services.sealing import SealingEngine

MARIA = {"first_name": "Maria", "last_name": "Schmidt", "username": "maria.schmidt"}


@pytest.fixture(name="teacher_id")
def teacher_id_fixture(client):
    resp = client.post("/api/teachers", json=MARIA)
    assert resp.status_code == 201
    return resp.json()["id"]


def test_create_teacher(client):
    resp = client.post("/api/teachers", json=MARIA)
    assert resp.status_code == 201
    data = resp.json()
    assert data["first_name"] == "Maria"
    assert data["last_name"] == "Schmidt"
    assert data["username"] == "maria.schmidt"
    assert data["created_at"]
    assert "username_hmac" not in data


def test_row_holds_ciphertext(client, session: Session, key: bytes, teacher_id):
    row = session.get(TeacherRow, teacher_id)
    assert row.first_name != "Maria"
    assert row.last_name != "Schmidt"
    assert "schmidt" not in row.username
    assert row.username_hmac == SealingEngine().lookup_token("maria.schmidt", key)
    bytes.fromhex(row.first_name)


def test_same_names_different_ciphertext(client, session: Session):
    first = client.post("/api/teachers", json=MARIA).json()["id"]
    second = client.post("/api/teachers", json={**MARIA, "username": "maria.schmidt2"}).json()["id"]
    assert session.get(TeacherRow, first).first_name != session.get(TeacherRow, second).first_name


def test_create_teacher_duplicate_username(client, teacher_id):
    resp = client.post("/api/teachers", json={**MARIA, "username": "Maria.Schmidt "})
    assert resp.status_code == 409


def test_create_teacher_empty_name(client):
    resp = client.post("/api/teachers", json={**MARIA, "first_name": ""})
    assert resp.status_code == 422


def test_list_teachers(client):
    client.post("/api/teachers", json=MARIA)
    client.post("/api/teachers", json={"first_name": "Jonas", "last_name": "Weber", "username": "jweber"})
    resp = client.get("/api/teachers")
    assert resp.status_code == 200
    assert [t["first_name"] for t in resp.json()] == ["Maria", "Jonas"]


def test_get_teacher(client, teacher_id):
    resp = client.get(f"/api/teachers/{teacher_id}")
    assert resp.status_code == 200
    assert resp.json()["last_name"] == "Schmidt"


def test_get_teacher_not_found(client):
    assert client.get("/api/teachers/9999").status_code == 404


def test_lookup_teacher(client, teacher_id):
    resp = client.get("/api/teachers/lookup", params={"username": " Maria.SCHMIDT "})
    assert resp.status_code == 200
    assert resp.json()["id"] == teacher_id


def test_lookup_teacher_not_found(client, teacher_id):
    assert client.get("/api/teachers/lookup", params={"username": "jonas"}).status_code == 404


# --- Update ---


def test_update_name(client, session: Session, teacher_id):
    before = session.get(TeacherRow, teacher_id).username_hmac
    resp = client.put(f"/api/teachers/{teacher_id}", json={"last_name": "Schmidt-Weber"})
    assert resp.status_code == 200
    data = resp.json()
    assert data["first_name"] == "Maria"
    assert data["last_name"] == "Schmidt-Weber"
    assert data["username"] == "maria.schmidt"

    row = session.get(TeacherRow, teacher_id)
    assert "Weber" not in row.last_name
    assert row.username_hmac == before


def test_update_username_moves_lookup(client, teacher_id):
    resp = client.put(f"/api/teachers/{teacher_id}", json={"username": "maria.weber"})
    assert resp.status_code == 200
    assert client.get("/api/teachers/lookup", params={"username": "maria.schmidt"}).status_code == 404
    found = client.get("/api/teachers/lookup", params={"username": "Maria.Weber"})
    assert found.status_code == 200
    assert found.json()["id"] == teacher_id


def test_update_username_conflict(client, teacher_id):
    client.post("/api/teachers", json={"first_name": "Jonas", "last_name": "Weber", "username": "jweber"})
    resp = client.put(f"/api/teachers/{teacher_id}", json={"username": "JWeber"})
    assert resp.status_code == 409
    assert client.get(f"/api/teachers/{teacher_id}").json()["username"] == "maria.schmidt"


def test_update_null_field_ignored(client, teacher_id):
    resp = client.put(f"/api/teachers/{teacher_id}", json={"first_name": None})
    assert resp.status_code == 200
    assert resp.json()["first_name"] == "Maria"


def test_update_not_found(client):
    assert client.put("/api/teachers/9999", json={"first_name": "X"}).status_code == 404


# --- Delete ---


def test_delete_teacher(client, teacher_id):
    assert client.delete(f"/api/teachers/{teacher_id}").status_code == 204
    assert client.get(f"/api/teachers/{teacher_id}").status_code == 404
    assert client.get("/api/teachers/lookup", params={"username": "maria.schmidt"}).status_code == 404


def test_wrong_key_list_fails(client, teacher_id, other_key):
    fastapi_app.dependency_overrides[get_encryption_key] = lambda: other_key
    resp = client.get("/api/teachers")
    assert resp.status_code == 500
    assert "Maria" not in resp.text


# --- Blank values ---


@pytest.mark.parametrize("field", ["first_name", "last_name", "username"])
def test_create_teacher_blank_field(client, session: Session, field):
    resp = client.post("/api/teachers", json={**MARIA, field: "   "})
    assert resp.status_code == 422
    assert resp.json()["detail"] == f"{field} cannot be empty"
    assert session.exec(select(TeacherRow)).first() is None


def test_create_teacher_strips_values(client):
    resp = client.post(
        "/api/teachers",
        json={"first_name": " Maria ", "last_name": "Schmidt", "username": " maria.schmidt "},
    )
    assert resp.status_code == 201
    assert resp.json()["first_name"] == "Maria"
    assert resp.json()["username"] == "maria.schmidt"


def test_update_teacher_blank_username(client, teacher_id):
    resp = client.put(f"/api/teachers/{teacher_id}", json={"username": "  "})
    assert resp.status_code == 422
    assert client.get(f"/api/teachers/{teacher_id}").json()["username"] == "maria.schmidt"
