"""
Endorsement Ledger

The endorsements collection is the source of truth for who vouched for which
skill. Each user's SkillEntry.endorser_ids mirrors it. MongoDB offers no
atomic write across the two documents without a replica-set transaction, so
both mutations use a compensating action: if the second write fails, the
first is undone before the error is reported.
"""
from typing import List

from pymongo import DESCENDING
from pymongo.errors import DuplicateKeyError, PyMongoError

from app.models.schemas import EndorsementModel, EndorsementView
from app.services.db import endorsements_coll, users_coll
from app.services.ownership import require_owner
from app.services.skill_catalog import SkillCatalog
from app.services.user_store import UserStore
from app.utils.exceptions import (
    ConflictError,
    DatabaseError,
    NotFoundError,
    PreconditionFailedError,
    SelfEndorsementError,
)
from app.utils.logging_config import get_logger

logger = get_logger(__name__)


class EndorsementLedger:

    @staticmethod
    def _triple(endorsed_by_id: str, endorsed_user_id: str, skill_id: str) -> dict:
        return {
            "skill_id": skill_id,
            "endorsed_user_id": endorsed_user_id,
            "endorsed_by_id": endorsed_by_id,
        }

    @staticmethod
    async def create(endorsed_by_id: str, endorsed_user_id: str, skill_id: str) -> EndorsementModel:
        """Record that endorsed_by_id vouches for endorsed_user_id's skill."""
        if endorsed_by_id == endorsed_user_id:
            raise SelfEndorsementError(user_id=endorsed_by_id)

        await UserStore.get_user(endorsed_by_id)
        endorsed_user = await UserStore.get_user(endorsed_user_id)
        await SkillCatalog.find_by_id(skill_id)

        if not any(entry.skill_id == skill_id for entry in endorsed_user.skills):
            raise PreconditionFailedError(
                "User does not have this skill in their profile",
                rule="skill_on_profile"
            )

        triple = EndorsementLedger._triple(endorsed_by_id, endorsed_user_id, skill_id)
        if await endorsements_coll.find_one(triple):
            raise ConflictError(
                "You have already endorsed this user for this skill",
                resource="endorsement"
            )

        endorsement = EndorsementModel(**triple)
        try:
            await endorsements_coll.insert_one(endorsement.dict())
        except DuplicateKeyError as e:
            raise ConflictError(
                "You have already endorsed this user for this skill",
                resource="endorsement",
                cause=e
            )

        try:
            result = await users_coll.update_one(
                {"user_id": endorsed_user_id, "skills.skill_id": skill_id},
                {"$addToSet": {"skills.$.endorser_ids": endorsed_by_id}}
            )
        except PyMongoError as e:
            await EndorsementLedger._discard(endorsement.endorsement_id)
            raise DatabaseError(
                "Failed to record endorsement on profile",
                operation="create_endorsement",
                collection="users",
                cause=e
            )

        if result.matched_count == 0:
            # The skill was removed between the precondition check and the write
            await EndorsementLedger._discard(endorsement.endorsement_id)
            raise PreconditionFailedError(
                "User does not have this skill in their profile",
                rule="skill_on_profile"
            )

        logger.info(
            "Endorsement created",
            extra={"endorsement_id": endorsement.endorsement_id, "skill_id": skill_id}
        )
        return endorsement

    @staticmethod
    async def _discard(endorsement_id: str) -> None:
        logger.warning("Rolling back endorsement record", extra={"endorsement_id": endorsement_id})
        await endorsements_coll.delete_one({"endorsement_id": endorsement_id})

    @staticmethod
    async def get_endorsement(endorsement_id: str) -> EndorsementModel:
        doc = await endorsements_coll.find_one({"endorsement_id": endorsement_id})
        if not doc:
            raise NotFoundError("Endorsement not found", resource="endorsement", resource_id=endorsement_id)
        return EndorsementModel(**doc)

    @staticmethod
    async def revoke(requesting_user_id: str, endorsement_id: str) -> None:
        """Only the endorser may take an endorsement back."""
        endorsement = await EndorsementLedger.get_endorsement(endorsement_id)
        require_owner(requesting_user_id, endorsement.dict(), "endorsed_by_id", "endorsement")

        profile_filter = {
            "user_id": endorsement.endorsed_user_id,
            "skills.skill_id": endorsement.skill_id,
        }
        await users_coll.update_one(
            profile_filter,
            {"$pull": {"skills.$.endorser_ids": endorsement.endorsed_by_id}}
        )

        try:
            await endorsements_coll.delete_one({"endorsement_id": endorsement_id})
        except PyMongoError as e:
            logger.warning("Restoring endorser after failed delete", extra={"endorsement_id": endorsement_id})
            await users_coll.update_one(
                profile_filter,
                {"$addToSet": {"skills.$.endorser_ids": endorsement.endorsed_by_id}}
            )
            raise DatabaseError(
                "Failed to delete endorsement",
                operation="revoke_endorsement",
                collection="endorsements",
                cause=e
            )

        logger.info("Endorsement revoked", extra={"endorsement_id": endorsement_id})

    @staticmethod
    async def _expand(docs: List[dict]) -> List[EndorsementView]:
        endorsements = [EndorsementModel(**doc) for doc in docs]
        skill_names = await SkillCatalog.names_by_id(e.skill_id for e in endorsements)
        user_names = await UserStore.names_by_id(
            [e.endorsed_user_id for e in endorsements] + [e.endorsed_by_id for e in endorsements]
        )
        return [
            EndorsementView(
                **e.dict(),
                skill_name=skill_names.get(e.skill_id),
                endorsed_user_name=user_names.get(e.endorsed_user_id),
                endorsed_by_name=user_names.get(e.endorsed_by_id),
            )
            for e in endorsements
        ]

    @staticmethod
    async def list_received_by(user_id: str) -> List[EndorsementView]:
        await UserStore.get_user(user_id)
        cursor = endorsements_coll.find({"endorsed_user_id": user_id}).sort("created_at", DESCENDING)
        return await EndorsementLedger._expand(await cursor.to_list(length=None))

    @staticmethod
    async def list_given_by(user_id: str) -> List[EndorsementView]:
        await UserStore.get_user(user_id)
        cursor = endorsements_coll.find({"endorsed_by_id": user_id}).sort("created_at", DESCENDING)
        return await EndorsementLedger._expand(await cursor.to_list(length=None))

    @staticmethod
    async def can_endorse(endorser_id: str, endorsee_id: str, skill_id: str) -> bool:
        if endorser_id == endorsee_id:
            return False

        doc = await users_coll.find_one({"user_id": endorsee_id, "skills.skill_id": skill_id})
        if not doc:
            return False

        existing = await endorsements_coll.find_one(
            EndorsementLedger._triple(endorser_id, endorsee_id, skill_id)
        )
        return existing is None
