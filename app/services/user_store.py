"""
User Profile Store: identity, contact details, hire availability and the
embedded list of self-rated skills.
"""
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

from pymongo import ASCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError, PyMongoError

from app.models.requests import ProfileHints, ProfileUpdate, SearchCriteria, UserCreatedEvent
from app.models.schemas import ContactInfo, PublicUser, SkillEntry, SkillEntryView, UserModel
from app.services.db import endorsements_coll, users_coll
from app.services.matching import (
    build_user_search_query,
    check_rating_window,
    skill_name_query,
    validate_rating,
)
from app.services.skill_catalog import SkillCatalog
from app.utils.exceptions import ConflictError, DatabaseError, ExceptionContext, NotFoundError, ValidationError
from app.utils.logging_config import PerformanceMonitor, get_logger

logger = get_logger(__name__)


class UserStore:
    """Owns the User documents and their embedded SkillEntry lists"""

    # -------- lookups --------

    @staticmethod
    async def get_user(user_id: str) -> UserModel:
        doc = await users_coll.find_one({"user_id": user_id})
        if not doc:
            raise NotFoundError("User not found", resource="user", resource_id=user_id)
        return UserModel(**doc)

    @staticmethod
    async def names_by_id(user_ids: Iterable[str]) -> Dict[str, str]:
        ids = list(set(user_ids))
        if not ids:
            return {}
        cursor = users_coll.find({"user_id": {"$in": ids}}, {"user_id": 1, "name": 1})
        docs = await cursor.to_list(length=None)
        return {doc["user_id"]: doc.get("name", "") for doc in docs}

    # -------- creation --------

    @staticmethod
    async def _insert_or_fetch(user: UserModel) -> Tuple[UserModel, bool]:
        """Insert a new user; if another request inserted the same auth id first, return theirs."""
        try:
            await users_coll.insert_one(user.dict())
        except DuplicateKeyError as e:
            doc = await users_coll.find_one({"auth_id": user.auth_id})
            if doc:
                return UserModel(**doc), False
            raise ConflictError(
                "Email address is already registered to another account",
                resource="user",
                cause=e
            )
        logger.info("Created user", extra={"user_id": user.user_id})
        return user, True

    @staticmethod
    async def get_or_create(auth_id: str, hints: Optional[ProfileHints] = None) -> UserModel:
        """Return the user for an auth id, creating a bare profile on first access."""
        if not auth_id:
            raise ValidationError("Auth id is required", field="auth_id")

        doc = await users_coll.find_one({"auth_id": auth_id})
        if doc:
            return UserModel(**doc)

        hints = hints or ProfileHints()
        user = UserModel(
            auth_id=auth_id,
            name=hints.name or hints.username or "",
            email=hints.email or None,
            contact_info=ContactInfo(email=hints.email or None),
        )
        user, _ = await UserStore._insert_or_fetch(user)
        return user

    @staticmethod
    async def register_from_event(event: UserCreatedEvent) -> Tuple[UserModel, bool]:
        """Explicit registration from the identity provider's account-created event."""
        data = event.data
        primary_email = data.email_addresses[0].email_address if data.email_addresses else None
        if not primary_email:
            raise ValidationError("No email address provided", field="email_addresses")

        doc = await users_coll.find_one({"auth_id": data.id})
        if doc:
            logger.info("User already registered", extra={"user_id": doc.get("user_id")})
            return UserModel(**doc), False

        name = " ".join(part for part in [data.first_name, data.last_name] if part) or data.username or ""
        user = UserModel(
            auth_id=data.id,
            name=name,
            email=primary_email,
            contact_info=ContactInfo(email=primary_email),
        )
        return await UserStore._insert_or_fetch(user)

    # -------- profile --------

    @staticmethod
    async def update_profile(user_id: str, update: ProfileUpdate) -> UserModel:
        """Apply only the fields present in the payload."""
        update_data = update.dict(exclude_unset=True)
        if not update_data:
            raise ValidationError("No update data provided")

        for field in ("name", "available_for_hire"):
            if field in update_data and update_data[field] is None:
                raise ValidationError(f"{field} cannot be null", field=field)
        if "name" in update_data:
            update_data["name"] = update_data["name"].strip()
            if not update_data["name"]:
                raise ValidationError("Name cannot be empty", field="name")
        if "contact_info" in update_data and update_data["contact_info"] is None:
            update_data["contact_info"] = ContactInfo().dict()

        update_data["updated_at"] = datetime.utcnow()

        with ExceptionContext("update_profile", logger, collection="users", user_id=user_id):
            doc = await users_coll.find_one_and_update(
                {"user_id": user_id},
                {"$set": update_data},
                return_document=ReturnDocument.AFTER
            )
        if not doc:
            raise NotFoundError("User not found", resource="user", resource_id=user_id)

        logger.info("Updated profile", extra={"user_id": user_id, "fields": sorted(update_data)})
        return UserModel(**doc)

    # -------- skills --------

    @staticmethod
    async def add_skill(user_id: str, skill_name: str, rating: int) -> UserModel:
        """
        Add a self-rated skill to the user's profile.

        The push is conditional on the skill being absent, in a single write.
        When the user already lists the skill nothing changes and the current
        profile is returned. Unknown users are rejected before the catalog is
        touched.
        """
        validate_rating(rating)
        await UserStore.get_user(user_id)
        skill = await SkillCatalog.resolve_skill(skill_name)

        entry = SkillEntry(skill_id=skill.skill_id, rating=rating)
        with ExceptionContext("add_skill", logger, collection="users", user_id=user_id):
            doc = await users_coll.find_one_and_update(
                {"user_id": user_id, "skills.skill_id": {"$ne": skill.skill_id}},
                {
                    "$push": {"skills": entry.dict()},
                    "$set": {"updated_at": datetime.utcnow()},
                },
                return_document=ReturnDocument.AFTER
            )
        if doc:
            logger.info("Added skill to profile", extra={"user_id": user_id, "skill_id": skill.skill_id})
            return UserModel(**doc)

        # Already listed, or the user was deleted since the lookup above
        user = await UserStore.get_user(user_id)
        logger.debug("Skill already on profile", extra={"user_id": user_id, "skill_id": skill.skill_id})
        return user

    @staticmethod
    async def update_skill_rating(user_id: str, skill_id: str, rating: int) -> UserModel:
        validate_rating(rating)

        with ExceptionContext("update_skill_rating", logger, collection="users", user_id=user_id):
            doc = await users_coll.find_one_and_update(
                {"user_id": user_id, "skills.skill_id": skill_id},
                {"$set": {"skills.$.rating": rating, "updated_at": datetime.utcnow()}},
                return_document=ReturnDocument.AFTER
            )
        if not doc:
            await UserStore.get_user(user_id)
            raise NotFoundError("Skill not found on profile", resource="skill", resource_id=skill_id)
        return UserModel(**doc)

    @staticmethod
    async def remove_skill(user_id: str, skill_id: str) -> UserModel:
        """
        Remove a skill from the profile and cascade-delete the endorsements
        received for it.

        The entry is pulled first, then the endorsements are deleted. If the
        delete fails, the entry is pushed back at its old position with
        endorser_ids taken from whatever endorsement records remain, and the
        error is reported.
        """
        now = datetime.utcnow()
        with ExceptionContext("remove_skill", logger, collection="users", user_id=user_id):
            before = await users_coll.find_one_and_update(
                {"user_id": user_id, "skills.skill_id": skill_id},
                {
                    "$pull": {"skills": {"skill_id": skill_id}},
                    "$set": {"updated_at": now},
                },
                return_document=ReturnDocument.BEFORE
            )
        if not before:
            await UserStore.get_user(user_id)
            raise NotFoundError("Skill not found on profile", resource="skill", resource_id=skill_id)

        position = next(i for i, e in enumerate(before["skills"]) if e["skill_id"] == skill_id)
        removed = before["skills"][position]

        try:
            result = await endorsements_coll.delete_many(
                {"endorsed_user_id": user_id, "skill_id": skill_id}
            )
        except PyMongoError as e:
            await UserStore._restore_entry(user_id, removed, position)
            raise DatabaseError(
                "Failed to delete endorsements for removed skill",
                operation="remove_skill",
                collection="endorsements",
                cause=e
            )

        logger.info(
            "Removed skill from profile",
            extra={"user_id": user_id, "skill_id": skill_id, "endorsements_removed": result.deleted_count}
        )
        after = dict(before, updated_at=now)
        after["skills"] = [e for e in before["skills"] if e["skill_id"] != skill_id]
        return UserModel(**after)

    @staticmethod
    async def _restore_entry(user_id: str, entry: dict, position: int) -> None:
        skill_id = entry["skill_id"]
        logger.warning("Restoring skill entry after failed cascade", extra={"user_id": user_id, "skill_id": skill_id})

        # delete_many may have removed some records before failing
        cursor = endorsements_coll.find(
            {"endorsed_user_id": user_id, "skill_id": skill_id},
            {"endorsed_by_id": 1}
        )
        remaining = await cursor.to_list(length=None)
        restored = dict(entry, endorser_ids=[doc["endorsed_by_id"] for doc in remaining])

        await users_coll.update_one(
            {"user_id": user_id, "skills.skill_id": {"$ne": skill_id}},
            {"$push": {"skills": {"$each": [restored], "$position": position}}}
        )

    # -------- public views --------

    @staticmethod
    async def to_public(users: List[UserModel]) -> List[PublicUser]:
        names = await SkillCatalog.names_by_id(
            entry.skill_id for user in users for entry in user.skills
        )
        return [
            PublicUser(
                user_id=user.user_id,
                name=user.name,
                available_for_hire=user.available_for_hire,
                skills=[
                    SkillEntryView(
                        skill_id=entry.skill_id,
                        skill_name=names.get(entry.skill_id),
                        rating=entry.rating,
                        endorser_ids=entry.endorser_ids,
                        endorsement_count=len(entry.endorser_ids),
                    )
                    for entry in user.skills
                ],
            )
            for user in users
        ]

    @staticmethod
    async def get_public_profile(user_id: str) -> PublicUser:
        user = await UserStore.get_user(user_id)
        return (await UserStore.to_public([user]))[0]

    @staticmethod
    async def search(criteria: SearchCriteria) -> List[PublicUser]:
        """Filter members by skill names, rating window and hire availability."""
        check_rating_window(criteria)

        with PerformanceMonitor("search_users", logger):
            skill_ids = None
            name_query = skill_name_query(criteria.skill_names)
            if name_query is not None:
                skill_ids = await SkillCatalog.find_matching_ids(name_query)
                if not skill_ids:
                    return []

            query = build_user_search_query(criteria, skill_ids)
            cursor = users_coll.find(query).sort("name", ASCENDING)
            docs = await cursor.to_list(length=None)

        logger.debug(f"Search matched {len(docs)} users", extra={"criteria": criteria.dict()})
        return await UserStore.to_public([UserModel(**doc) for doc in docs])
