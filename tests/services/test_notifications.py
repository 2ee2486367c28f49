import pytest

from expiry_panel.exceptions import ValidationRejected
from expiry_panel.models.records import AppSettings, Category, Server, TelegramSettings
from expiry_panel.services.config_resolver import ConfigResolver
from expiry_panel.services.notifications import (
    DEFAULT_BUCKET_NAME,
    find_due_servers,
    group_by_category,
    notify_threshold,
    run_expiry_sweep,
    send_test_message,
)
from expiry_panel.services.repository import CategoryRepository, ServerRepository, SettingsService


def _servers():
    return [
        Server(id="1", name="expired <box>", category_id="web", expire_date="2024-02-20",
               renewal_link="https://example.com/renew?a=1&b=2"),
        Server(id="2", name="soon", category_id="db", expire_date="2024-03-06", notify_days=7),
        Server(id="3", name="far", category_id="web", expire_date="2024-12-01"),
        Server(id="4", name="loose", expire_date="2024-03-10"),
        Server(id="5", name="no date", expire_date="n/a"),
        Server(id="6", name="outside window", category_id="db", expire_date="2024-03-06", notify_days=2),
    ]


def _categories():
    return [
        Category(id="db", name="Databases", sort_order=0),
        Category(id="web", name="Web", sort_order=1),
    ]


async def _seed(store, telegram_enabled=True):
    await ServerRepository(store).save_all(_servers())
    await CategoryRepository(store).save_all(_categories())
    await SettingsService(store).save(AppSettings(
        telegram=TelegramSettings(enabled=telegram_enabled, bot_token="token", chat_id="100"),
        global_notify_days=14,
        site_title="My VPS",
    ))


def test_notify_threshold_prefers_server_value():
    app_settings = AppSettings(global_notify_days=10)
    assert notify_threshold(Server(id="1", name="a", notify_days=3), app_settings) == 3
    assert notify_threshold(Server(id="1", name="a", notify_days=0), app_settings) == 0
    assert notify_threshold(Server(id="1", name="a"), app_settings) == 10


def test_find_due_servers_skips_missing_dates_and_far_expiry(fixed_now):
    due = find_due_servers(_servers(), AppSettings(global_notify_days=14), fixed_now)
    assert sorted(d.server.id for d in due) == ["1", "2", "4"]


def test_group_by_category_keeps_category_order_and_default_last(fixed_now):
    due = find_due_servers(_servers(), AppSettings(global_notify_days=14), fixed_now)
    groups = group_by_category(due, _categories())
    assert [name for name, _ in groups] == ["Databases", "Web", DEFAULT_BUCKET_NAME]


@pytest.mark.asyncio
async def test_sweep_sends_one_message_per_category(memory_store, fixed_now, make_notifier):
    await _seed(memory_store)
    notifier = make_notifier()

    result = await run_expiry_sweep(memory_store, ConfigResolver(), notifier, now=fixed_now)

    assert result.checked == 6
    assert result.due == 3
    assert result.messages_sent == 3
    assert result.messages_failed == 0
    assert all(m["bot_token"] == "token" and m["chat_id"] == "100" for m in notifier.sent)

    web_message = notifier.sent[1]["text"]
    assert "Web" in web_message
    assert "expired &lt;box&gt;" in web_message
    assert "expired 10 day(s) ago" in web_message
    assert 'href="https://example.com/renew?a=1&amp;b=2"' in web_message
    assert "My VPS" in web_message


@pytest.mark.asyncio
async def test_sweep_continues_after_failed_send(memory_store, fixed_now, make_notifier):
    await _seed(memory_store)
    notifier = make_notifier(fail_on={1})

    result = await run_expiry_sweep(memory_store, ConfigResolver(), notifier, now=fixed_now)

    assert result.messages_failed == 1
    assert result.messages_sent == 2
    assert result.errors == ["Databases: Bad Request: chat not found"]


@pytest.mark.asyncio
async def test_sweep_skipped_when_telegram_disabled(memory_store, fixed_now, make_notifier):
    await _seed(memory_store, telegram_enabled=False)
    notifier = make_notifier()

    result = await run_expiry_sweep(memory_store, ConfigResolver(), notifier, now=fixed_now)

    assert result.skipped_reason == "Telegram notifications disabled"
    assert notifier.sent == []


@pytest.mark.asyncio
async def test_external_credentials_force_sweep_on(memory_store, fixed_now, make_notifier):
    await _seed(memory_store, telegram_enabled=False)
    notifier = make_notifier()
    resolver = ConfigResolver(env={"TG_TOKEN": "env-token", "TG_ID": "200"})

    result = await run_expiry_sweep(memory_store, resolver, notifier, now=fixed_now)

    assert result.messages_sent == 3
    assert {m["chat_id"] for m in notifier.sent} == {"200"}
    assert {m["bot_token"] for m in notifier.sent} == {"env-token"}


@pytest.mark.asyncio
async def test_test_message_requires_credentials(memory_store, make_notifier):
    with pytest.raises(ValidationRejected):
        await send_test_message(memory_store, ConfigResolver(), make_notifier())

    notifier = make_notifier()
    await send_test_message(memory_store, ConfigResolver(env={"TG_TOKEN": "t", "TG_ID": "1"}), notifier)
    assert "test notification" in notifier.sent[0]["text"]
