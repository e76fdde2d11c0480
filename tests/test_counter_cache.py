import logging

import pytest
from sqlalchemy import update

from sugar.errors import ConsistencyWarning, NotFoundError
from sugar.models.forum_model import ForumPost, ForumThread
from sugar.services import threads as svc


async def _sneak_posts(db, thread, author, n):
    """Insert posts behind the counter cache's back."""
    for i in range(n):
        db.add(ForumPost(thread_id=thread.id, author_id=author.id, content_markdown=f"x{i}"))
    await db.commit()


class TestRepair:

    async def test_undercount_is_corrected(self, db, make_user, caplog):
        alice = await make_user("alice")
        thread = await svc.create_thread(db, title="T", author=alice, body="hi")
        await _sneak_posts(db, thread, alice, 2)

        with caplog.at_level(logging.WARNING, logger="sugar.services.threads"):
            delta = await svc.repair_counter_cache(db, thread.id)

        assert delta == 2
        assert thread.post_count == 3 == await svc.count_posts(db, thread.id)
        assert "counter cache error" in caplog.text

    async def test_overcount_is_corrected(self, db, make_user):
        alice = await make_user("alice")
        thread = await svc.create_thread(db, title="T", author=alice, body="hi")
        thread.post_count = 7
        await db.commit()

        assert await svc.repair_counter_cache(db, thread.id) == -6
        assert thread.post_count == 1

    async def test_consistent_thread_untouched(self, db, make_user, caplog):
        alice = await make_user("alice")
        thread = await svc.create_thread(db, title="T", author=alice, body="hi")

        assert await svc.repair_counter_cache(db, thread.id) == 0
        assert not [r for r in caplog.records if r.levelno >= logging.WARNING]

    async def test_missing_thread(self, db):
        with pytest.raises(NotFoundError):
            await svc.repair_counter_cache(db, 404)

    async def test_repair_all(self, db, make_user):
        alice = await make_user("alice")
        good = await svc.create_thread(db, title="good", author=alice, body="hi")
        bad = await svc.create_thread(db, title="bad", author=alice, body="")
        await _sneak_posts(db, bad, alice, 3)

        assert await svc.repair_all(db) == 1
        assert bad.post_count == 3
        assert good.post_count == 1

    async def test_increment_after_recount_is_kept(self, db, make_user, monkeypatch):
        alice = await make_user("alice")
        thread = await svc.create_thread(db, title="T", author=alice, body="hi")
        await _sneak_posts(db, thread, alice, 2)

        recount = svc.count_posts

        async def recount_then_reply_lands(db, thread_id):
            actual = await recount(db, thread_id)
            # another request bumps the cache between the recount and the fix
            await db.execute(
                update(ForumThread)
                .where(ForumThread.id == thread_id)
                .values(post_count=ForumThread.post_count + 1)
                .execution_options(synchronize_session=False)
            )
            await db.commit()
            return actual

        monkeypatch.setattr(svc, "count_posts", recount_then_reply_lands)

        assert await svc.repair_counter_cache(db, thread.id) == 2
        assert thread.post_count == 4


class TestConsistencyWarning:

    def test_delta(self):
        w = ConsistencyWarning(5, cached=4, actual=1)
        assert w.delta == -3
        assert "#5" in str(w)
