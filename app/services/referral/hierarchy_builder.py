"""
Referral hierarchy builder.

Derives the A/B/C ancestors of a user from the referred_by chain and
materializes them as hierarchy edges. Edges are insert-if-absent and
never rewritten. Writes happen in savepoints; the caller commits.
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from loguru import logger
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.enums import ReferralLevel
from app.models.referral_hierarchy import ReferralHierarchy
from app.repositories.referral_hierarchy_repository import (
    ReferralHierarchyRepository,
)
from app.repositories.user_repository import UserRepository
from app.services.base_service import BaseService
from app.services.referral.config import REFERRAL_DEPTH
from app.utils.exceptions import (
    LedgerWriteError,
    NotFoundError,
    ReferralLinkError,
)

ParentLookup = Callable[[list[int]], Awaitable[dict[int, int | None]]]


@dataclass(frozen=True)
class Ancestor:
    """One ancestor of a referred user."""

    level: ReferralLevel
    user_id: int


@dataclass
class HierarchyBuildResult:
    """Outcome of ensure_hierarchy."""

    user_id: int
    ancestors: list[Ancestor] = field(default_factory=list)
    created_levels: list[ReferralLevel] = field(default_factory=list)

    @property
    def is_partial(self) -> bool:
        """Chain shorter than the full depth (a valid terminal state)."""
        return len(self.ancestors) < REFERRAL_DEPTH

    @property
    def created(self) -> bool:
        return bool(self.created_levels)


async def resolve_ancestor_chain(
    get_parents: ParentLookup,
    user_id: int,
    depth: int = REFERRAL_DEPTH,
) -> list[Ancestor]:
    """
    Walk referred_by pointers up to `depth` generations.

    Stops at the first node without a parent. A pointer back into the
    already visited chain is a loop and ends the walk.

    Args:
        get_parents: Lookup returning {user_id: referred_by} for given IDs
        user_id: Referred user ID
        depth: Max generations

    Returns:
        Ancestors ordered A, B, C (0..depth items)

    Raises:
        NotFoundError: If user does not exist
    """
    parents = await get_parents([user_id])
    if user_id not in parents:
        raise NotFoundError("User", user_id)

    chain: list[Ancestor] = []
    visited = {user_id}
    current = parents[user_id]

    while current is not None and len(chain) < depth:
        if current in visited:
            logger.warning(
                "Referral loop detected",
                extra={
                    "user_id": user_id,
                    "chain_ids": [a.user_id for a in chain],
                    "repeated_id": current,
                },
            )
            break

        chain.append(
            Ancestor(level=ReferralLevel.from_depth(len(chain) + 1), user_id=current)
        )
        visited.add(current)

        if len(chain) == depth:
            break

        parents = await get_parents([current])
        current = parents.get(current)

    return chain


def ancestors_from_edges(edges: list[ReferralHierarchy]) -> list[Ancestor]:
    """Convert persisted edges to ancestors ordered A, B, C."""
    ancestors = [
        Ancestor(level=edge.referral_level, user_id=edge.referrer_id)
        for edge in edges
    ]
    return sorted(ancestors, key=lambda a: a.level.depth)


class HierarchyBuilder(BaseService):
    """Builds and reads A/B/C hierarchy edges."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize hierarchy builder."""
        super().__init__(session)
        self.user_repo = UserRepository(session)
        self.hierarchy_repo = ReferralHierarchyRepository(session)

    async def get_ancestors(self, user_id: int) -> list[Ancestor]:
        """
        Get persisted ancestors of a user.

        Args:
            user_id: Referred user ID

        Returns:
            Ancestors ordered A, B, C
        """
        edges = await self.hierarchy_repo.get_edges_for_user(user_id)
        return ancestors_from_edges(edges)

    async def ensure_hierarchy(self, user_id: int) -> HierarchyBuildResult:
        """
        Materialize missing hierarchy edges for a user.

        Idempotent: existing edges are kept as they are. Each edge is
        written in its own savepoint, so a failure at level B keeps A
        pending in the caller's transaction and a later call completes
        the rest.

        Args:
            user_id: Referred user ID

        Returns:
            HierarchyBuildResult with persisted ancestors and created levels

        Raises:
            NotFoundError: If user does not exist
            LedgerWriteError: If an edge insert fails
        """
        existing = {
            ancestor.level: ancestor.user_id
            for ancestor in await self.get_ancestors(user_id)
        }
        if len(existing) == REFERRAL_DEPTH:
            return HierarchyBuildResult(
                user_id=user_id,
                ancestors=[
                    Ancestor(level=level, user_id=existing[level])
                    for level in ReferralLevel
                ],
            )

        chain = await resolve_ancestor_chain(
            self.user_repo.get_referred_by_map, user_id
        )

        created_levels: list[ReferralLevel] = []
        for ancestor in chain:
            existing_referrer = existing.get(ancestor.level)
            if existing_referrer is not None:
                if existing_referrer != ancestor.user_id:
                    self.logger.warning(
                        "Hierarchy edge disagrees with referred_by chain, keeping edge",
                        extra={
                            "user_id": user_id,
                            "level": ancestor.level.value,
                            "edge_referrer_id": existing_referrer,
                            "chain_referrer_id": ancestor.user_id,
                        },
                    )
                continue

            if await self._insert_edge(user_id, ancestor):
                created_levels.append(ancestor.level)

        ancestors = await self.get_ancestors(user_id)

        if created_levels:
            self.logger.info(
                "Referral hierarchy built",
                extra={
                    "user_id": user_id,
                    "levels_created": [level.value for level in created_levels],
                    "chain_length": len(ancestors),
                },
            )

        return HierarchyBuildResult(
            user_id=user_id,
            ancestors=ancestors,
            created_levels=created_levels,
        )

    async def _insert_edge(self, user_id: int, ancestor: Ancestor) -> bool:
        """Insert one edge in a savepoint. False if a concurrent insert won."""
        try:
            async with self.savepoint():
                await self.hierarchy_repo.create_edge(
                    user_id=user_id,
                    referrer_id=ancestor.user_id,
                    level=ancestor.level,
                )
        except IntegrityError:
            self.logger.debug(
                "Hierarchy edge already created concurrently",
                extra={"user_id": user_id, "level": ancestor.level.value},
            )
            return False
        except SQLAlchemyError as e:
            raise LedgerWriteError(
                f"Failed to write {ancestor.level.value} edge for user {user_id}: {e}"
            ) from e
        return True

    async def attach_referrer(
        self,
        user_id: int,
        *,
        referral_code: str | None = None,
        referrer_id: int | None = None,
    ) -> HierarchyBuildResult:
        """
        Link a newly registered user to a referrer and build the hierarchy.

        referred_by is write-once: a user that already has a referrer
        cannot be re-parented. Link and edges share one savepoint and
        become durable when the caller commits.

        Args:
            user_id: New user ID
            referral_code: Referrer's referral code
            referrer_id: Referrer user ID (alternative to the code)

        Returns:
            HierarchyBuildResult for the new user

        Raises:
            NotFoundError: If the user does not exist
            ReferralLinkError: If the link is not allowed
        """
        if (referral_code is None) == (referrer_id is None):
            raise ReferralLinkError(
                "Exactly one of referral_code or referrer_id is required"
            )

        if referral_code is not None:
            referrer = await self.user_repo.get_by_referral_code(referral_code)
        else:
            referrer = await self.user_repo.get_by_id(referrer_id)

        if referrer is None:
            raise ReferralLinkError("Referrer not found")

        async with self.savepoint():
            await self._link(user_id, referrer.id, referrer.is_active)
            return await self.ensure_hierarchy(user_id)

    async def _link(
        self, user_id: int, referrer_id: int, referrer_active: bool
    ) -> None:
        """Validate and write the referred_by pointer."""
        user = await self.user_repo.get_by_id(user_id)
        if user is None:
            raise NotFoundError("User", user_id)

        if user_id == referrer_id:
            raise ReferralLinkError("A user cannot refer themselves")
        if not referrer_active:
            raise ReferralLinkError("Referrer is not active")
        if user.referred_by is not None:
            raise ReferralLinkError(
                f"User {user_id} already has referrer {user.referred_by}"
            )

        referrer_chain = await resolve_ancestor_chain(
            self.user_repo.get_referred_by_map, referrer_id
        )
        chain_ids = [a.user_id for a in referrer_chain]
        if user_id in chain_ids:
            self.logger.warning(
                "Referral loop detected",
                extra={
                    "new_user_id": user_id,
                    "direct_referrer_id": referrer_id,
                    "chain_ids": chain_ids,
                },
            )
            raise ReferralLinkError("Referral chain would contain a loop")

        if not await self.user_repo.set_referred_by(user_id, referrer_id):
            raise ReferralLinkError(f"User {user_id} already has a referrer")

        self.logger.info(
            "Referrer attached",
            extra={"user_id": user_id, "referrer_id": referrer_id},
        )
