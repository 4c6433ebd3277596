from fastapi.testclient import TestClient

from utils import app_settings


def test_create_app_registers_every_module(data_dir):
    from main import create_app

    client = TestClient(create_app())
    assert client.get("/api/health").json()["status"] == "ok"
    paths = client.app.openapi()["paths"]
    assert "/api/checklists/forms" in paths
    assert "/api/staff" in paths
    assert "/api/submissions" in paths
    assert client.app.state.registered_modules == {"checklists", "staff", "submissions"}


def test_end_to_end_submit(data_dir):
    from main import create_app

    client = TestClient(create_app())
    client.post("/api/staff", json={"name": "Alice"})
    client.post("/api/staff", json={"name": "Bob"})
    form = {
        "title": "Kit",
        "period": "daily",
        "sections": [
            {
                "title": "Bags",
                "fields": [{"id": "bags", "type": "checklist", "label": "Bags", "options": ["Ox", "Trauma"], "required": True}],
            }
        ],
    }
    assert client.put("/api/checklists/forms/kit", json=form).status_code == 200

    staff = [s["name"] for s in client.get("/api/staff", params={"active": True}).json()]
    failed = client.post("/api/checklists/forms/kit/submit", json={"staff": staff, "answers": {"bags": []}})
    assert failed.status_code == 422
    ok = client.post("/api/checklists/forms/kit/submit", json={"staff": staff, "answers": {"bags": ["Ox"]}})
    assert ok.status_code == 201

    rows = client.get("/api/submissions", params={"form_id": "kit"}).json()["items"]
    assert [r["answers"] for r in rows] == [{"bags": ["Ox"]}]


def test_settings_read_env_and_ini(data_dir, monkeypatch):
    assert app_settings.dev_mode() is False
    assert app_settings.page_size() == app_settings.DEFAULT_PAGE_SIZE
    (data_dir / "app.ini").write_text("[app]\ndev = true\n[submissions]\npage_size = oops\n")
    assert app_settings.dev_mode() is True
    assert app_settings.page_size() == app_settings.DEFAULT_PAGE_SIZE
    monkeypatch.setenv("CHECKLIST_DEV", "1")
    assert app_settings.dev_mode() is True
    assert str(data_dir) in app_settings.database_url()
