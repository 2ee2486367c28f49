import json

from expiry_panel.exceptions import StorageUnavailableError
from expiry_panel.services.store import SETTINGS_KEY

SETTINGS = "/api/v1/settings/"
LOGIN = "/api/v1/auth/login"


def _settings_payload(**overrides):
    payload = {
        "telegram": {"enabled": False, "botToken": "", "chatId": ""},
        "auth": {"enabled": False, "password": ""},
        "globalNotifyDays": 10,
        "siteTitle": "Panel",
        "welcomeMessage": "hi",
    }
    payload.update(overrides)
    return payload


def _login(client, password):
    return client.post(LOGIN, json={"password": password})


def test_open_panel_without_auth(app_client):
    status = app_client.get("/api/v1/auth/status").json()
    assert status == {"enabled": False, "hasExternal": False, "source": "none"}
    assert app_client.get("/api/v1/servers/").status_code == 200
    assert _login(app_client, "anything").status_code == 400


def test_enabling_auth_requires_password(app_client):
    response = app_client.put(SETTINGS, json=_settings_payload(auth={"enabled": True, "password": ""}))
    assert response.status_code == 400


def test_stored_password_protects_the_api(app_client):
    saved = app_client.put(SETTINGS, json=_settings_payload(auth={"enabled": True, "password": "s3cret"}))
    assert saved.status_code == 200

    assert app_client.get("/api/v1/servers/").status_code == 401
    assert _login(app_client, "wrong").status_code == 401

    token = _login(app_client, "s3cret").json()["access_token"]
    headers = {"Authorization": f"Bearer {token}"}
    assert app_client.get("/api/v1/servers/", headers=headers).status_code == 200
    assert app_client.get("/api/v1/servers/", headers={"Authorization": "Bearer junk"}).status_code == 401

    # Changing the password revokes tokens issued for the old one
    changed = app_client.put(
        SETTINGS,
        json=_settings_payload(auth={"enabled": True, "password": "n3w"}),
        headers=headers,
    )
    assert changed.status_code == 200
    assert app_client.get("/api/v1/servers/", headers=headers).status_code == 401


def test_environment_password_wins_and_is_read_only(app_client, resolver):
    resolver.env["PASS"] = "from-env"
    app_client.store._data[SETTINGS_KEY] = json.dumps({"auth": {"enabled": False, "password": "stored"}})

    assert _login(app_client, "stored").status_code == 401
    token = _login(app_client, "from-env").json()["access_token"]
    headers = {"Authorization": f"Bearer {token}"}

    view = app_client.get(SETTINGS, headers=headers).json()
    assert view["auth"]["enabled"] is True
    assert view["auth"]["hasExternal"] is True
    assert view["auth"]["source"] == "environment"
    assert view["auth"]["editable"] is False
    assert view["auth"]["password"] == ""

    # Saving cannot overwrite the stored auth section while it is external
    app_client.put(SETTINGS, json=_settings_payload(auth={"enabled": False, "password": "x"}), headers=headers)
    stored = json.loads(app_client.store._data[SETTINGS_KEY])
    assert stored["auth"]["password"] == "stored"


def test_telegram_needs_both_credentials(app_client):
    response = app_client.put(
        SETTINGS,
        json=_settings_payload(telegram={"enabled": True, "botToken": "123:abc", "chatId": ""}),
    )
    assert response.status_code == 400
    assert "chat id" in response.json()["error"]

    response = app_client.put(
        SETTINGS,
        json=_settings_payload(telegram={"enabled": True, "botToken": "123:abc", "chatId": " 42 "}),
    )
    assert response.status_code == 200
    view = app_client.get(SETTINGS).json()
    assert view["telegram"]["chatId"] == "42"
    assert view["telegram"]["editable"] is True
    assert view["globalNotifyDays"] == 10


def test_removed_external_telegram_config_is_cleaned_up(app_client, resolver):
    resolver.env.update({"TG_TOKEN": "env-token", "TG_ID": "1"})
    app_client.store._data[SETTINGS_KEY] = json.dumps(
        {"telegram": {"enabled": True, "botToken": "stale", "chatId": "9"}}
    )

    external = app_client.get("/api/v1/settings/external").json()
    assert external["telegram"] == {"hasExternal": True, "source": "environment"}
    assert external["cleanup"]["telegramRemoved"] is False

    resolver.env.pop("TG_TOKEN")
    external = app_client.get("/api/v1/settings/external").json()
    assert external["telegram"]["hasExternal"] is False

    view = app_client.get(SETTINGS).json()
    assert view["telegram"] == {
        "enabled": False,
        "botToken": "",
        "chatId": "",
        "hasExternal": False,
        "source": "none",
        "editable": True,
    }


def test_notification_endpoints(app_client, resolver):
    assert app_client.post("/api/v1/notifications/test").status_code == 400

    resolver.env.update({"TG_TOKEN": "t", "TG_ID": "1"})
    assert app_client.post("/api/v1/notifications/test").status_code == 200
    assert len(app_client.notifier.sent) == 1

    app_client.notifier.fail_on = {2}
    response = app_client.post("/api/v1/notifications/test")
    assert response.status_code == 502
    assert "chat not found" in response.json()["error"]

    result = app_client.post("/api/v1/notifications/check").json()
    assert result["checked"] == 0
    assert result["skippedReason"] is None


def test_export_strips_credentials_and_import_replaces_data(app_client):
    app_client.put(
        SETTINGS,
        json=_settings_payload(telegram={"enabled": True, "botToken": "123:abc", "chatId": "42"}),
    )
    app_client.post("/api/v1/servers/", json={"name": "old"})

    exported = app_client.get("/api/v1/data/export").json()
    assert exported["settings"]["telegram"]["botToken"] == ""
    assert [s["name"] for s in exported["servers"]] == ["old"]

    payload = {
        "categories": [{"id": "c1", "name": "Web", "sortOrder": 0}],
        "servers": [
            {"id": "1", "name": "a", "categoryId": "c1", "expireDate": "2030-01-01"},
            {"id": "2", "name": "b", "categoryId": "gone"},
        ],
    }
    imported = app_client.post("/api/v1/data/import", json=payload)
    assert imported.status_code == 200
    assert imported.json()["servers"] == 2

    servers = {s["name"]: s for s in app_client.get("/api/v1/servers/").json()}
    assert set(servers) == {"a", "b"}
    assert servers["b"]["categoryId"] == ""

    duplicate = {"servers": [{"id": "1", "name": "x"}, {"id": "2", "name": "🚀x"}]}
    assert app_client.post("/api/v1/data/import", json=duplicate).status_code == 400


def test_storage_unavailable_is_reported_distinctly(app_client):
    from expiry_panel.dependencies import get_store
    from expiry_panel.main import app

    class BrokenStore:
        async def get(self, key):  # noqa: ANN001
            raise StorageUnavailableError("Key-value store is not configured")

        async def put(self, key, value):  # noqa: ANN001
            raise StorageUnavailableError("Key-value store is not configured")

    app.dependency_overrides[get_store] = lambda: BrokenStore()
    response = app_client.get("/api/v1/servers/")

    assert response.status_code == 503
    assert response.json()["setup_required"] is True
