"""
Listing tests: sticky-first ordering, trust filtering and total counts.
"""

import random
from datetime import datetime, timedelta, timezone

import pytest

from sugar.models.forum_model import ForumThread
from sugar.services import threads as svc
from sugar.services.pagination import Paginater, count_for, find_paginated
from sugar.services.visibility import can_see_trusted, is_visible, visibility_clause

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


class TestPaginater:

    @pytest.mark.parametrize("page", [0, -3, None])
    def test_page_clamped_to_one(self, page):
        p = Paginater(total_count=10, page=page, per_page=3)
        assert p.page == 1
        assert p.offset == 0

    def test_offset_and_pages(self):
        p = Paginater(total_count=61, page=3, per_page=30)
        assert p.offset == 60
        assert p.limit == 30
        assert p.total_pages == 3
        assert p.has_prev and not p.has_next

    def test_empty_collection(self):
        p = Paginater(total_count=0)
        assert p.total_pages == 0
        assert p.per_page == 30


class TestVisibility:

    def test_predicate(self):
        trusted = ForumThread(title="t", trusted=True)
        public = ForumThread(title="p", trusted=False)
        assert is_visible(public, include_trusted=False)
        assert not is_visible(trusted, include_trusted=False)
        assert is_visible(trusted, include_trusted=True)

    def test_clause(self):
        assert visibility_clause(True) is None
        assert visibility_clause(False) is not None

    async def test_viewer_trust(self, make_user):
        assert can_see_trusted(None) is False
        assert can_see_trusted(await make_user("plain")) is False
        assert can_see_trusted(await make_user("mod", moderator=True)) is True
        assert can_see_trusted(await make_user("trusty", trusted=True)) is True


class TestFindPaginated:

    async def test_sticky_precedes_recent(self, db, make_user):
        alice = await make_user("alice")
        a = await svc.create_thread(db, title="A", author=alice, body="a")
        b = await svc.create_thread(db, title="B", author=alice, body="b")
        a.sticky = True
        a.last_post_at = T0
        b.last_post_at = T0 + timedelta(hours=1)
        await db.commit()

        page = await find_paginated(db)
        assert [t.title for t in page.items] == ["A", "B"]

    async def test_recency_within_sticky_groups(self, db, make_user):
        alice = await make_user("alice")
        titles = ["old", "new", "pinned-old", "pinned-new"]
        threads = {t: await svc.create_thread(db, title=t, author=alice) for t in titles}
        for i, title in enumerate(titles):
            threads[title].last_post_at = T0 + timedelta(minutes=i % 2)
            threads[title].sticky = title.startswith("pinned")
        await db.commit()

        page = await find_paginated(db)
        assert [t.title for t in page.items] == ["pinned-new", "pinned-old", "new", "old"]

    async def test_trusted_hidden_unless_requested(self, db, make_user):
        alice = await make_user("alice")
        await svc.create_thread(db, title="public", author=alice)
        secret = await svc.create_thread(db, title="secret", author=alice)
        secret.trusted = True
        await db.commit()

        hidden = await find_paginated(db, include_trusted=False)
        shown = await find_paginated(db, include_trusted=True)

        assert [t.title for t in hidden.items] == ["public"]
        assert hidden.total_count == 1
        assert {t.title for t in shown.items} == {"public", "secret"}
        assert shown.total_count == 2

        assert await count_for(db, None) == 1
        assert await count_for(db, await make_user("mod", moderator=True)) == 2

    async def test_paging_offsets(self, db, make_user):
        alice = await make_user("alice")
        for i in range(5):
            t = await svc.create_thread(db, title=f"t{i}", author=alice)
            t.last_post_at = T0 + timedelta(minutes=i)
        await db.commit()

        page = await find_paginated(db, page=2, per_page=2)
        assert [t.title for t in page.items] == ["t2", "t1"]
        assert (page.page, page.per_page, page.total_count, page.total_pages) == (2, 2, 5, 3)

        clamped = await find_paginated(db, page=-1, per_page=2)
        assert clamped.page == 1
        assert [t.title for t in clamped.items] == ["t4", "t3"]

    async def test_category_cache_used_when_including_trusted(self, db, make_user, make_category):
        alice = await make_user("alice")
        general = await make_category()
        await svc.create_thread(db, title="x", author=alice, category_id=general.id)

        # a stale cache shows the cache is what answers this query
        general.discussions_count = 42
        await db.commit()
        page = await find_paginated(db, category=general, include_trusted=True)
        assert page.total_count == 42

        general.discussions_count = None
        await db.commit()
        page = await find_paginated(db, category=general, include_trusted=True)
        assert page.total_count == 1

    @pytest.mark.parametrize("seed", [1, 2, 3, 4, 5])
    async def test_category_total_matches_filter(self, db, make_user, make_category, seed):
        rng = random.Random(seed)
        alice = await make_user("alice")
        categories = [await make_category("one"), await make_category("two")]

        created = []
        for i in range(rng.randint(0, 25)):
            category = rng.choice(categories)
            t = await svc.create_thread(db, title=f"t{i}", author=alice, category_id=category.id)
            t.trusted = rng.random() < 0.4
            t.sticky = rng.random() < 0.2
            created.append(t)
        await db.commit()

        for category in categories:
            for include_trusted in (False, True):
                expected = [
                    t for t in created
                    if t.category_id == category.id and (include_trusted or not t.trusted)
                ]
                page = await find_paginated(
                    db, category=category, include_trusted=include_trusted, per_page=100
                )
                assert page.total_count == len(expected)
                assert {t.id for t in page.items} == {t.id for t in expected}
                stickies = [t.sticky for t in page.items]
                assert stickies == sorted(stickies, reverse=True)
