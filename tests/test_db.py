import time

import pytest

import pandabot.config as config
import pandabot.db as db


async def setup_db(tmp_path):
    config.DB_FILE = str(tmp_path / "pandabot.db")
    await db.init_db()


@pytest.mark.asyncio
async def test_short_ids_are_global_and_increasing(tmp_path):
    await setup_db(tmp_path)
    first = await db.add_alert(1, "BTC", 5.0, 100.0)
    second = await db.add_alert(2, "ETH", -5.0, 10.0)
    note = await db.add_note(1, "hello")
    assert (first.short_id, second.short_id) == (1, 2)
    assert note.short_id == 1


@pytest.mark.asyncio
async def test_short_ids_not_reused_after_delete(tmp_path):
    await setup_db(tmp_path)
    note = await db.add_note(1, "first")
    assert await db.delete_note(1, note.short_id)
    again = await db.add_note(1, "second")
    assert again.short_id == 2


@pytest.mark.asyncio
async def test_alert_pause_and_delete(tmp_path):
    await setup_db(tmp_path)
    alert = await db.add_alert(1, "BTC", 5.0, 100.0)
    await db.add_alert(1, "BTC", -5.0, 100.0)
    assert await db.find_active_alert(1, "BTC", 5.0)
    assert not await db.pause_alert(2, alert.short_id)
    assert await db.pause_alert(1, alert.short_id)
    assert await db.find_active_alert(1, "BTC", 5.0) is None
    assert len(await db.list_active_alerts()) == 1
    assert await db.delete_alerts(1, "BTC") == 2
    assert await db.list_user_alerts(1) == []


@pytest.mark.asyncio
async def test_notes_search_and_update(tmp_path):
    await setup_db(tmp_path)
    await db.add_note(1, "Buy MILK tomorrow")
    other = await db.add_note(1, "call the bank")
    await db.add_note(2, "milk for user two")
    found = await db.search_notes(1, "milk")
    assert [n.content for n in found] == ["Buy MILK tomorrow"]
    updated = await db.update_note(1, other.short_id, "call the bank at 9")
    assert updated.content == "call the bank at 9"
    assert await db.update_note(2, other.short_id, "x") is None
    with pytest.raises(ValueError):
        await db.update_note(1, other.short_id, "x" * (config.MAX_NOTE_LENGTH + 1))


@pytest.mark.asyncio
async def test_watchlist_names_unique_per_user(tmp_path):
    await setup_db(tmp_path)
    created = await db.create_watchlist(1, "tech", "stock", ["AAPL", "MSFT"])
    assert created.tickers == ["AAPL", "MSFT"]
    assert await db.create_watchlist(1, "tech", "crypto", ["BTC"]) is None
    assert await db.create_watchlist(2, "tech", "crypto", ["BTC"])
    replaced = await db.create_watchlist(1, "tech", "crypto", ["BTC"], replace=True)
    assert replaced.type == "crypto"
    assert replaced.tickers == ["BTC"]
    assert len(await db.list_watchlists(1)) == 1


@pytest.mark.asyncio
async def test_watchlist_rejects_bad_tickers(tmp_path):
    await setup_db(tmp_path)
    with pytest.raises(ValueError):
        await db.create_watchlist(1, "bad", "crypto", ["BTC", "BTC"])
    with pytest.raises(ValueError):
        await db.create_watchlist(1, "bad", "crypto", ["not valid"])


@pytest.mark.asyncio
async def test_portfolio_roundtrip(tmp_path):
    await setup_db(tmp_path)
    portfolio = await db.create_portfolio(1, "main")
    assert await db.create_portfolio(1, "main") is None
    portfolio.buy("BTC", 1, 100.0)
    await db.save_portfolio(portfolio)
    stored = await db.get_portfolio(1, "main")
    assert stored.items[0].symbol == "BTC"
    assert stored.items[0].avg_price == 100.0
    assert await db.delete_portfolio(1, "main")
    assert await db.get_portfolio(1, "main") is None


@pytest.mark.asyncio
async def test_users_flags_and_recipients(tmp_path):
    await setup_db(tmp_path)
    assert await db.upsert_user(1, "alice")
    assert not await db.upsert_user(1, "alice2")
    await db.upsert_user(2, "bob")
    await db.upsert_user(3, "carol")
    assert await db.set_user_flag(2, "is_banned", True)
    assert await db.set_user_flag(3, "is_blocked", True)
    assert not await db.set_user_flag(99, "is_banned", True)
    with pytest.raises(ValueError):
        await db.set_user_flag(1, "is_admin", True)
    assert await db.broadcast_recipients(time.time() - 60) == [1]
    assert await db.broadcast_recipients(time.time() + 60) == []
    # coming back through /start clears the blocked flag
    await db.upsert_user(3, "carol")
    assert not (await db.get_user(3)).is_blocked


@pytest.mark.asyncio
async def test_touch_user_counts_commands(tmp_path):
    await setup_db(tmp_path)
    await db.upsert_user(1, "alice")
    await db.touch_user(1, command=True)
    await db.touch_user(1)
    user = await db.get_user(1)
    assert user.total_commands == 1
    assert user.username == "alice"


@pytest.mark.asyncio
async def test_finish_reminder_only_once(tmp_path):
    await setup_db(tmp_path)
    reminder = await db.add_reminder(1, "x", time.time() + 60)
    assert await db.finish_reminder(reminder.id, "completed")
    assert not await db.finish_reminder(reminder.id, "cancelled")
    assert (await db.get_reminder(reminder.id)).status == "completed"


@pytest.mark.asyncio
async def test_db_stats(tmp_path):
    await setup_db(tmp_path)
    await db.upsert_user(1, "alice")
    await db.add_alert(1, "BTC", 5.0, 100.0)
    await db.add_note(1, "n")
    stats = await db.get_db_stats()
    assert stats["users"] == 1
    assert stats["active_24h"] == 1
    assert stats["alerts"] == 1
    assert stats["notes"] == 1
    assert stats["reminders"] == 0
    assert stats["size"] > 0
