"""
quluub/services/relationship_service.py

Purpose: Relationship lifecycle (match requests)

- sendRequest / respond / withdraw with the pending -> matched | rejected machine
- One relationship per unordered pair, enforced by the store's unique pair key
- Activity log entries and in-app notifications on each transition
- Read views joined against user profiles
"""

from dataclasses import dataclass
from typing import List

from quluub.core.exceptions import (
    DuplicateRelationshipError,
    InvalidStateTransitionError,
    NotAuthorizedError,
    ResourceNotFoundError,
    ValidationError,
)
from quluub.core.logging import LogContext, get_logger
from quluub.models.activity import ActivityAction, ActivityLog, NotificationType
from quluub.models.relationship import Relationship, RelationshipStatus, is_valid_transition
from quluub.models.user import User
from quluub.services.in_app_notifier import InAppNotifier
from quluub.services.profile_cache import ProfileCache
from quluub.stores.base import ActivityStore, DuplicateKeyConflict, RelationshipStore, UserDirectory

logger = get_logger(__name__)

RESPONSE_DECISIONS = (RelationshipStatus.MATCHED.value, RelationshipStatus.REJECTED.value)


@dataclass
class RelationshipView:
    """A relationship together with the profile of the other party."""
    profile: User
    relationship: Relationship


class RelationshipStateMachine:
    """
    Owns creation and status changes of Relationship documents.
    """

    def __init__(
        self,
        relationships: RelationshipStore,
        users: UserDirectory,
        activity: ActivityStore,
        notifier: InAppNotifier,
        profiles: ProfileCache,
    ):
        self.relationships = relationships
        self.users = users
        self.activity = activity
        self.notifier = notifier
        self.profiles = profiles

    async def send_request(self, follower_id: str, followed_id: str) -> Relationship:
        """
        Creates a pending relationship from `follower_id` to `followed_id`.

        Raises:
            ValidationError: Self-request
            ResourceNotFoundError: Followed user does not exist
            DuplicateRelationshipError: A relationship already exists for the pair
        """
        with LogContext(user_id=follower_id, operation="send_request"):
            if follower_id == followed_id:
                raise ValidationError("You cannot send a request to yourself")

            followed = await self.users.find_by_id(followed_id)
            if followed is None:
                raise ResourceNotFoundError("User not found", details={"userId": followed_id})

            existing = await self.relationships.find_between(follower_id, followed_id)
            if existing is not None:
                raise DuplicateRelationshipError(existing.status)

            relationship = Relationship(follower_user_id=follower_id, followed_user_id=followed_id)
            try:
                await self.relationships.insert(relationship)
            except DuplicateKeyConflict:
                # Lost a race with a concurrent request for the same pair
                winner = await self.relationships.find_between(follower_id, followed_id)
                current = winner.status if winner else RelationshipStatus.PENDING.value
                logger.info(f"Concurrent request for pair {relationship.pair_key} rejected")
                raise DuplicateRelationshipError(current)

            logger.info(
                f"Connection request sent to {followed_id}",
                extra={"relationship_id": relationship.id},
            )

            await self._log_activity(follower_id, followed_id, ActivityAction.FOLLOWED)
            name = await self._display_name(follower_id)
            await self.notifier.notify(
                followed_id,
                NotificationType.NEW_REQUEST,
                f"{name} sent you a connection request",
                sender_id=follower_id,
                data={"relationshipId": relationship.id},
            )
            return relationship

    async def respond(self, relationship_id: str, acting_user_id: str, decision: str) -> Relationship:
        """
        Accepts or rejects a pending request. Only the followed user may respond.

        Raises:
            ValidationError: Decision is not matched/rejected
            ResourceNotFoundError: Unknown relationship
            NotAuthorizedError: Acting user is not the followed party
            InvalidStateTransitionError: Relationship is no longer pending
        """
        with LogContext(user_id=acting_user_id, relationship_id=relationship_id, operation="respond"):
            if decision not in RESPONSE_DECISIONS:
                raise ValidationError(
                    "Invalid status. Must be 'rejected' or 'matched'",
                    details={"status": decision},
                )

            relationship = await self.relationships.get(relationship_id)
            if relationship is None:
                raise ResourceNotFoundError("Relationship not found")

            if acting_user_id != relationship.followed_user_id:
                raise NotAuthorizedError("Not authorized to update this relationship")

            if not is_valid_transition(relationship.status, decision):
                raise InvalidStateTransitionError(
                    f"Cannot update relationship that is already {relationship.status}",
                    details={"status": relationship.status},
                )

            updated = await self.relationships.transition(
                relationship_id, RelationshipStatus.PENDING.value, decision
            )
            if updated is None:
                current = await self.relationships.get(relationship_id)
                status = current.status if current else "deleted"
                raise InvalidStateTransitionError(
                    f"Cannot update relationship that is already {status}",
                    details={"status": status},
                )

            logger.info(f"Relationship {decision}", extra={"status": decision})

            follower_id = relationship.follower_user_id
            name = await self._display_name(acting_user_id)

            if decision == RelationshipStatus.MATCHED.value:
                await self._log_activity(acting_user_id, follower_id, ActivityAction.MATCHED)
                await self.notifier.notify(
                    follower_id,
                    NotificationType.REQUEST_ACCEPTED,
                    f"{name} accepted your connection request",
                    sender_id=acting_user_id,
                    data={"relationshipId": relationship_id},
                )
            else:
                await self._log_activity(acting_user_id, follower_id, ActivityAction.REJECTED)
                await self.notifier.notify(
                    follower_id,
                    NotificationType.REQUEST_REJECTED,
                    f"{name} declined your connection request",
                    sender_id=acting_user_id,
                    data={"relationshipId": relationship_id},
                )

            return updated

    async def withdraw(self, relationship_id: str, acting_user_id: str) -> Relationship:
        """
        Deletes a pending request. Only the follower may withdraw.

        A party to the relationship asking to withdraw a matched or rejected
        relationship gets INVALID_STATE_TRANSITION; outsiders always get
        NOT_AUTHORIZED.

        Returns:
            The relationship as it was before deletion
        """
        with LogContext(user_id=acting_user_id, relationship_id=relationship_id, operation="withdraw"):
            relationship = await self.relationships.get(relationship_id)
            if relationship is None:
                raise ResourceNotFoundError("Relationship not found")

            if not relationship.involves(acting_user_id):
                raise NotAuthorizedError("Not authorized to withdraw this relationship")

            if relationship.status != RelationshipStatus.PENDING.value:
                raise InvalidStateTransitionError(
                    f"Cannot withdraw relationship that is already {relationship.status}",
                    details={"status": relationship.status},
                )

            if acting_user_id != relationship.follower_user_id:
                raise NotAuthorizedError("Not authorized to withdraw this relationship")

            deleted = await self.relationships.delete_if_status(
                relationship_id, RelationshipStatus.PENDING.value
            )
            if not deleted:
                current = await self.relationships.get(relationship_id)
                status = current.status if current else "deleted"
                raise InvalidStateTransitionError(
                    f"Cannot withdraw relationship that is already {status}",
                    details={"status": status},
                )

            logger.info("Request withdrawn")

            followed_id = relationship.followed_user_id
            await self._log_activity(acting_user_id, followed_id, ActivityAction.WITHDREW)
            name = await self._display_name(acting_user_id)
            await self.notifier.notify(
                followed_id,
                NotificationType.REQUEST_WITHDRAWN,
                f"{name} withdrew their connection request",
                sender_id=acting_user_id,
                data={"relationshipId": relationship_id},
            )
            return relationship

    async def get_matches(self, user_id: str) -> List[RelationshipView]:
        """
        Matched relationships in either direction, limited to counterparts of
        the opposite gender. The gender rule is applied here only; a same-gender
        match can be stored but is never listed.
        """
        relationships = await self.relationships.list_for_user(user_id, RelationshipStatus.MATCHED.value)
        views = await self._join(user_id, relationships)

        user = await self.profiles.get(user_id)
        wanted = user.opposite_gender() if user else None
        if wanted is None:
            return views
        return [view for view in views if view.profile.gender == wanted]

    async def get_pending(self, user_id: str) -> List[RelationshipView]:
        """Pending requests received by `user_id`."""
        relationships = await self.relationships.list_for_user(
            user_id, RelationshipStatus.PENDING.value, as_follower=False
        )
        return await self._join(user_id, relationships)

    async def get_sent(self, user_id: str) -> List[RelationshipView]:
        """Pending requests sent by `user_id`."""
        relationships = await self.relationships.list_for_user(
            user_id, RelationshipStatus.PENDING.value, as_followed=False
        )
        return await self._join(user_id, relationships)

    async def _join(self, user_id: str, relationships: List[Relationship]) -> List[RelationshipView]:
        profiles = await self.profiles.get_many(r.counterpart(user_id) for r in relationships)
        views = []
        for relationship in relationships:
            profile = profiles.get(relationship.counterpart(user_id))
            if profile is None:
                continue
            views.append(RelationshipView(profile=profile, relationship=relationship))
        return views

    async def _log_activity(self, user_id: str, receiver_id: str, action: ActivityAction) -> None:
        try:
            await self.activity.log(ActivityLog(user_id=user_id, receiver_id=receiver_id, action=action))
        except Exception as e:
            logger.error(f"Failed to log {action.value} activity: {str(e)}")

    async def _display_name(self, user_id: str) -> str:
        try:
            profile = await self.profiles.get(user_id)
        except Exception as e:
            logger.warning(f"Profile lookup failed for {user_id}: {str(e)}")
            return "Someone"
        return profile.display_name if profile else "Someone"
