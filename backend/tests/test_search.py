import pytest
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from app.errors import UpstreamQueryError
from app.models.creator import Creator
from app.services.creator_repository import CreatorRepository
from app.services.search import SearchResolver

from conftest import BITCOIN_POOL, creator_record


def ids(matches):
    return [m.creator.id for m in matches]


class FlakyRepository(CreatorRepository):
    """Repository whose queries fail on demand."""

    def __init__(self, session_factory, fail_overlap=False, fail_multi_contain=False,
                 fail_categories=(), fail_fallback=False):
        super().__init__(session_factory)
        self.fail_overlap = fail_overlap
        self.fail_multi_contain = fail_multi_contain
        self.fail_categories = set(fail_categories)
        self.fail_fallback = fail_fallback
        self.calls = []

    async def overlapping(self, categories, limit, bitcoin_only=False):
        self.calls.append(("overlap", tuple(categories)))
        if self.fail_overlap:
            raise SQLAlchemyError("overlap query failed")
        return await super().overlapping(categories, limit, bitcoin_only=bitcoin_only)

    async def containing(self, categories, limit, bitcoin_only=False):
        self.calls.append(("contain", tuple(categories)))
        if len(categories) > 1 and self.fail_multi_contain:
            raise SQLAlchemyError("containment query failed")
        if set(categories) & self.fail_categories:
            raise OperationalError("select", {}, Exception("connection reset"))
        return await super().containing(categories, limit, bitcoin_only=bitcoin_only)

    async def fallback_pool(self, limit, exclude_ids=()):
        self.calls.append(("fallback", limit))
        if self.fail_fallback:
            raise SQLAlchemyError("fallback query failed")
        return await super().fallback_pool(limit, exclude_ids=exclude_ids)


async def test_overlap_ranks_primary_matches_first(seeded):
    matches = await SearchResolver(seeded).resolve(["btc-only", "trading"])

    primary = [m for m in matches if not m.is_fallback]
    assert ids(primary) == ["b", "a", "c"]
    assert ids(matches)[:3] == ["b", "a", "c"]
    # Short result sets are topped up to six from the fallback pool
    assert len(matches) == 6
    assert all(m.is_fallback for m in matches[3:])
    assert ids(matches[3:]) == ["e", "g", "h"]


async def test_overlap_without_fallback_returns_only_intersecting(seeded):
    matches = await SearchResolver(seeded).resolve(["btc-only", "trading"], fallback_eligible=False)

    assert ids(matches) == ["b", "a", "c"]
    assert not any(m.is_fallback for m in matches)


async def test_large_overlap_needs_no_fallback(seeded):
    matches = await SearchResolver(seeded).resolve(["crypto", "trading"])

    assert ids(matches) == ["e", "g", "b", "h", "c", "i", "j", "f"]
    assert not any(m.is_fallback for m in matches)
    followers = [m.creator.total_followers for m in matches]
    assert followers == sorted(followers, reverse=True)
    for m in matches:
        assert set(m.creator.categories) & {"crypto", "trading"}


async def test_unmatched_category_returns_fallback_pool(seeded):
    matches = await SearchResolver(seeded).resolve(["nonexistent-tag"])

    assert ids(matches) == BITCOIN_POOL[:6]
    assert all(m.is_fallback for m in matches)
    assert all(m.creator.is_bitcoin_suitable for m in matches)


async def test_empty_categories_return_whole_fallback_pool(seeded):
    matches = await SearchResolver(seeded).resolve([])

    assert ids(matches) == BITCOIN_POOL
    assert all(m.is_fallback for m in matches)


async def test_empty_categories_capped_at_max_results(seeded):
    matches = await SearchResolver(seeded, max_results=3).resolve([])

    assert ids(matches) == BITCOIN_POOL[:3]


async def test_zero_max_results_is_honoured(seeded):
    assert await SearchResolver(seeded, max_results=0).resolve([]) == []


async def test_empty_categories_without_fallback(seeded):
    assert await SearchResolver(seeded).resolve([], fallback_eligible=False) == []


async def test_bitcoin_only_restricts_tiers(seeded):
    matches = await SearchResolver(seeded).resolve(["trading"], fallback_eligible=False, bitcoin_only=True)

    assert ids(matches) == ["c"]


async def test_duplicate_categories_are_collapsed(seeded):
    matches = await SearchResolver(seeded).resolve(["mining", "mining", " "], fallback_eligible=False)

    assert ids(matches) == ["d"]


async def test_missing_followers_rank_last(session_factory, seeded):
    async with session_factory() as session:
        session.add(Creator(
            id="z", username="z", full_name="Z", total_followers=None, is_bitcoin_suitable=True,
        ))
        await session.commit()

    matches = await SearchResolver(seeded).resolve([])

    assert ids(matches)[-1] == "z"


async def test_overlap_failure_falls_through_to_containment(session_factory, seeded):
    repo = FlakyRepository(session_factory, fail_overlap=True)

    matches = await SearchResolver(repo).resolve(["btc-only", "trading"], fallback_eligible=False)

    assert ids(matches) == ["c"]
    assert [call[0] for call in repo.calls] == ["overlap", "contain"]


async def test_per_category_union_after_both_tiers_fail(session_factory, seeded):
    repo = FlakyRepository(session_factory, fail_overlap=True, fail_multi_contain=True)

    matches = await SearchResolver(repo).resolve(["trading", "btc-only"], fallback_eligible=False)

    assert ids(matches) == ["b", "a", "c"]
    assert ("contain", ("trading",)) in repo.calls
    assert ("contain", ("btc-only",)) in repo.calls


async def test_failed_union_branch_contributes_nothing(session_factory, seeded):
    repo = FlakyRepository(
        session_factory, fail_overlap=True, fail_multi_contain=True, fail_categories=["trading"],
    )

    matches = await SearchResolver(repo).resolve(["trading", "mining"], fallback_eligible=False)

    assert ids(matches) == ["d"]


async def test_each_tier_attempted_once(session_factory, seeded):
    repo = FlakyRepository(session_factory)

    await SearchResolver(repo).resolve(["nonexistent-tag", "other-tag"])

    assert [call[0] for call in repo.calls].count("overlap") == 1
    assert repo.calls[1] == ("contain", ("nonexistent-tag", "other-tag"))
    assert [call[0] for call in repo.calls].count("fallback") == 1


async def test_fallback_failure_returns_partial_result(session_factory, seeded):
    repo = FlakyRepository(session_factory, fail_fallback=True)

    matches = await SearchResolver(repo).resolve(["btc-only", "trading"])

    assert ids(matches) == ["b", "a", "c"]


async def test_fallback_failure_after_empty_tiers_returns_nothing(session_factory, seeded):
    repo = FlakyRepository(session_factory, fail_fallback=True)

    assert await SearchResolver(repo).resolve(["nonexistent-tag"]) == []


async def test_every_query_failing_raises(session_factory, seeded):
    repo = FlakyRepository(
        session_factory, fail_overlap=True, fail_multi_contain=True,
        fail_categories=["trading", "mining"], fail_fallback=True,
    )

    with pytest.raises(UpstreamQueryError):
        await SearchResolver(repo).resolve(["trading", "mining"])


async def test_empty_categories_fallback_failure_raises(session_factory, seeded):
    repo = FlakyRepository(session_factory, fail_fallback=True)

    with pytest.raises(UpstreamQueryError):
        await SearchResolver(repo).resolve([])


async def test_fallback_threshold_is_configurable(seeded):
    matches = await SearchResolver(seeded, fallback_min_results=4).resolve(["btc-only", "trading"])

    assert ids(matches) == ["b", "a", "c", "e"]
    assert matches[3].is_fallback


async def test_upsert_derives_bitcoin_flag_and_replaces_categories(seeded):
    await seeded.upsert_creators([creator_record("b", ["trading", "btc-only"], 900)])
    creator = await seeded.get("b")
    assert creator.is_bitcoin_suitable
    assert sorted(creator.categories) == ["btc-only", "trading"]

    await seeded.upsert_creators([creator_record("b", ["travel"], 900)])
    creator = await seeded.get("b")
    assert not creator.is_bitcoin_suitable
    assert creator.categories == ["travel"]
