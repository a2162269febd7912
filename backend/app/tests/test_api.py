import os

import pytest
import requests

BASE_URL = os.getenv("TEST_API_BASE_URL", "http://127.0.0.1:8000").rstrip("/")
REQUEST_TIMEOUT = 15


def _credentials() -> tuple[str, str]:
    email = str(os.getenv("TEST_API_EMAIL") or os.getenv("ADMIN_EMAIL") or "").strip()
    password = str(os.getenv("TEST_API_PASSWORD") or os.getenv("ADMIN_PASSWORD") or "").strip()
    if not email or not password:
        pytest.skip("Credenciais de teste nao configuradas (TEST_API_EMAIL/TEST_API_PASSWORD).")
    return email, password


def get_token() -> str:
    email, password = _credentials()
    payload = {"email": email, "password": password}

    try:
        response = requests.post(f"{BASE_URL}/auth/login", json=payload, timeout=REQUEST_TIMEOUT)
    except requests.RequestException as exc:
        pytest.skip(f"API indisponivel para testes de integracao: {exc}")

    if response.status_code in {401, 403, 404}:
        pytest.skip(f"Credenciais de integracao sem acesso para testes ({response.status_code}).")

    response.raise_for_status()
    token = response.json().get("access_token")
    if not token:
        pytest.skip("Token nao retornado por /auth/login.")
    return token


def auth_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {get_token()}"}


def has_permission(headers: dict[str, str], permission: str) -> bool:
    response = requests.get(f"{BASE_URL}/auth/me", headers=headers, timeout=REQUEST_TIMEOUT)
    if response.status_code != 200:
        return False
    payload = response.json() or {}
    role = str(payload.get("role") or "").strip().lower()
    permissions = payload.get("permissions") or []
    return role == "admin" or permission in permissions


def test_health():
    try:
        response = requests.get(f"{BASE_URL}/health", timeout=REQUEST_TIMEOUT)
    except requests.RequestException as exc:
        pytest.skip(f"API indisponivel para testes de integracao: {exc}")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_read_machines():
    headers = auth_headers()
    if not has_permission(headers, "machines.view"):
        pytest.skip("Usuario de integracao sem permissao machines.view.")

    response = requests.get(f"{BASE_URL}/machines", headers=headers, timeout=REQUEST_TIMEOUT)
    assert response.status_code == 200
    data = response.json()
    assert data["ok"] is True
    assert isinstance(data["machines"], list)
    for machine in data["machines"]:
        assert machine["serial"]
        assert machine["row"] >= 2


def test_read_summary():
    headers = auth_headers()
    if not has_permission(headers, "machines.view"):
        pytest.skip("Usuario de integracao sem permissao machines.view.")

    response = requests.get(f"{BASE_URL}/machines/summary", params={"days": 7}, headers=headers, timeout=REQUEST_TIMEOUT)
    assert response.status_code == 200
    data = response.json()
    assert len(data["series"]["labels"]) == 7
    assert data["summary"]["total"] >= data["summary"]["available"]


def test_read_history():
    headers = auth_headers()
    if not has_permission(headers, "history.view"):
        pytest.skip("Usuario de integracao sem permissao history.view.")

    response = requests.get(f"{BASE_URL}/movements/history", params={"limit": 5}, headers=headers, timeout=REQUEST_TIMEOUT)
    assert response.status_code == 200
    data = response.json()
    assert len(data["history"]) <= 5


def test_invalid_movement_is_rejected_without_writes():
    headers = auth_headers()
    if not has_permission(headers, "machines.move"):
        pytest.skip("Usuario de integracao sem permissao machines.move.")

    payload = {"action": "ENVIO", "serials": ["SERIAL-INEXISTENTE"], "departureDate": "2024-03-05"}
    response = requests.post(
        f"{BASE_URL}/movements/check-out-in",
        json=payload,
        headers=headers,
        timeout=REQUEST_TIMEOUT,
    )
    assert response.status_code == 422
    assert response.json() == {"ok": False, "msg": "Informe o ID do evento."}
