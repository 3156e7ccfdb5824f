"""
Unit tests for ancestor chain resolution.

The lookup is a plain dict behind an async function, so the walk is
tested without a database.
"""

import pytest

from app.models.enums import ReferralLevel
from app.services.referral.hierarchy_builder import (
    Ancestor,
    HierarchyBuildResult,
    resolve_ancestor_chain,
)
from app.utils.exceptions import NotFoundError


def parent_lookup(parents: dict[int, int | None]):
    """Build an async referred_by lookup over a dict."""
    calls: list[list[int]] = []

    async def lookup(user_ids: list[int]) -> dict[int, int | None]:
        calls.append(list(user_ids))
        return {uid: parents[uid] for uid in user_ids if uid in parents}

    lookup.calls = calls
    return lookup


class TestResolveAncestorChain:
    """Test bounded-depth walk."""

    @pytest.mark.asyncio
    async def test_stops_at_three_levels(self):
        """Fourth generation is never returned."""
        # 5 -> 4 -> 3 -> 2 -> 1
        lookup = parent_lookup({1: None, 2: 1, 3: 2, 4: 3, 5: 4})

        chain = await resolve_ancestor_chain(lookup, 5)

        assert chain == [
            Ancestor(ReferralLevel.A_LEVEL, 4),
            Ancestor(ReferralLevel.B_LEVEL, 3),
            Ancestor(ReferralLevel.C_LEVEL, 2),
        ]
        # No lookup beyond the third ancestor
        assert [2] not in lookup.calls

    @pytest.mark.asyncio
    async def test_partial_chain(self):
        lookup = parent_lookup({1: None, 2: 1})

        chain = await resolve_ancestor_chain(lookup, 2)

        assert chain == [Ancestor(ReferralLevel.A_LEVEL, 1)]

    @pytest.mark.asyncio
    async def test_root_user_has_no_ancestors(self):
        lookup = parent_lookup({1: None})

        assert await resolve_ancestor_chain(lookup, 1) == []

    @pytest.mark.asyncio
    async def test_unknown_user(self):
        lookup = parent_lookup({1: None})

        with pytest.raises(NotFoundError):
            await resolve_ancestor_chain(lookup, 99)

    @pytest.mark.asyncio
    async def test_two_node_loop_terminates(self):
        lookup = parent_lookup({1: 2, 2: 1})

        chain = await resolve_ancestor_chain(lookup, 1)

        assert [a.user_id for a in chain] == [2]

    @pytest.mark.asyncio
    async def test_three_node_loop_terminates(self):
        lookup = parent_lookup({1: 2, 2: 3, 3: 1})

        chain = await resolve_ancestor_chain(lookup, 1)

        assert [a.user_id for a in chain] == [2, 3]

    @pytest.mark.asyncio
    async def test_dangling_parent_ends_chain(self):
        """A referrer missing from the store ends the walk after itself."""
        lookup = parent_lookup({5: 4})

        chain = await resolve_ancestor_chain(lookup, 5)

        assert chain == [Ancestor(ReferralLevel.A_LEVEL, 4)]

    @pytest.mark.asyncio
    async def test_custom_depth(self):
        lookup = parent_lookup({1: None, 2: 1, 3: 2})

        chain = await resolve_ancestor_chain(lookup, 3, depth=1)

        assert chain == [Ancestor(ReferralLevel.A_LEVEL, 2)]


class TestHierarchyBuildResult:
    """Test result flags."""

    def test_partial(self):
        result = HierarchyBuildResult(
            user_id=1, ancestors=[Ancestor(ReferralLevel.A_LEVEL, 2)]
        )

        assert result.is_partial is True
        assert result.created is False

    def test_full(self):
        result = HierarchyBuildResult(
            user_id=1,
            ancestors=[
                Ancestor(ReferralLevel.A_LEVEL, 2),
                Ancestor(ReferralLevel.B_LEVEL, 3),
                Ancestor(ReferralLevel.C_LEVEL, 4),
            ],
            created_levels=[ReferralLevel.C_LEVEL],
        )

        assert result.is_partial is False
        assert result.created is True
