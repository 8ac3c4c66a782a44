import pytest
from unittest.mock import AsyncMock, MagicMock, patch
from pymongo import ASCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError, PyMongoError

from app.models.requests import ProfileHints, ProfileUpdate, SearchCriteria, UserCreatedEvent
from app.models.schemas import SkillModel
from app.services.skill_catalog import SkillCatalog
from app.services.user_store import UserStore
from app.utils.exceptions import ConflictError, DatabaseError, NotFoundError, ValidationError
from factories import make_cursor, make_entry, make_user_doc

GO = SkillModel(skill_id="skill-go", name="Go")


class TestGetOrCreate:

    @pytest.mark.asyncio
    @patch('app.services.user_store.users_coll')
    async def test_returns_existing_user(self, mock_users_coll):
        mock_users_coll.find_one = AsyncMock(return_value=make_user_doc())
        mock_users_coll.insert_one = AsyncMock()

        user = await UserStore.get_or_create("auth-user-a")

        assert user.user_id == "user-a"
        mock_users_coll.insert_one.assert_not_called()

    @pytest.mark.asyncio
    @patch('app.services.user_store.users_coll')
    async def test_creates_user_from_hints(self, mock_users_coll):
        mock_users_coll.find_one = AsyncMock(return_value=None)
        mock_users_coll.insert_one = AsyncMock()

        user = await UserStore.get_or_create(
            "auth-new", ProfileHints(username="ada", email="ada@example.com")
        )

        assert user.auth_id == "auth-new"
        assert user.name == "ada"
        assert user.email == "ada@example.com"
        assert user.contact_info.email == "ada@example.com"
        assert user.available_for_hire is False
        assert user.skills == []
        mock_users_coll.insert_one.assert_awaited_once()

    @pytest.mark.asyncio
    @patch('app.services.user_store.users_coll')
    async def test_concurrent_create_returns_winner(self, mock_users_coll):
        winner = make_user_doc(user_id="winner", auth_id="auth-new")
        mock_users_coll.find_one = AsyncMock(side_effect=[None, winner])
        mock_users_coll.insert_one = AsyncMock(side_effect=DuplicateKeyError("dup auth_id"))

        user = await UserStore.get_or_create("auth-new")

        assert user.user_id == "winner"

    @pytest.mark.asyncio
    @patch('app.services.user_store.users_coll')
    async def test_email_taken_by_other_account(self, mock_users_coll):
        mock_users_coll.find_one = AsyncMock(return_value=None)
        mock_users_coll.insert_one = AsyncMock(side_effect=DuplicateKeyError("dup email"))

        with pytest.raises(ConflictError):
            await UserStore.get_or_create("auth-new", ProfileHints(email="taken@example.com"))


class TestRegisterFromEvent:

    def _event(self, **data):
        payload = {"id": "auth-ada", "email_addresses": [{"email_address": "ada@example.com"}]}
        payload.update(data)
        return UserCreatedEvent(type="user.created", data=payload)

    @pytest.mark.asyncio
    @patch('app.services.user_store.users_coll')
    async def test_creates_user_with_full_name(self, mock_users_coll):
        mock_users_coll.find_one = AsyncMock(return_value=None)
        mock_users_coll.insert_one = AsyncMock()

        user, created = await UserStore.register_from_event(
            self._event(first_name="Ada", last_name="Lovelace", username="ada")
        )

        assert created is True
        assert user.name == "Ada Lovelace"
        assert user.email == "ada@example.com"

    @pytest.mark.asyncio
    @patch('app.services.user_store.users_coll')
    async def test_existing_user_is_not_recreated(self, mock_users_coll):
        mock_users_coll.find_one = AsyncMock(return_value=make_user_doc(auth_id="auth-ada"))
        mock_users_coll.insert_one = AsyncMock()

        _, created = await UserStore.register_from_event(self._event())

        assert created is False
        mock_users_coll.insert_one.assert_not_called()

    @pytest.mark.asyncio
    async def test_requires_email(self):
        with pytest.raises(ValidationError):
            await UserStore.register_from_event(self._event(email_addresses=[]))


class TestUpdateProfile:

    @pytest.mark.asyncio
    @patch('app.services.user_store.users_coll')
    async def test_only_sent_fields_are_set(self, mock_users_coll):
        mock_users_coll.find_one_and_update = AsyncMock(return_value=make_user_doc(available_for_hire=True))

        user = await UserStore.update_profile("user-a", ProfileUpdate(available_for_hire=True))

        assert user.available_for_hire is True
        _, update = mock_users_coll.find_one_and_update.await_args.args
        assert set(update["$set"]) == {"available_for_hire", "updated_at"}

    @pytest.mark.asyncio
    async def test_null_name_rejected(self):
        with pytest.raises(ValidationError):
            await UserStore.update_profile("user-a", ProfileUpdate(name=None))

    @pytest.mark.asyncio
    async def test_empty_update_rejected(self):
        with pytest.raises(ValidationError):
            await UserStore.update_profile("user-a", ProfileUpdate())

    @pytest.mark.asyncio
    @patch('app.services.user_store.users_coll')
    async def test_unknown_user(self, mock_users_coll):
        mock_users_coll.find_one_and_update = AsyncMock(return_value=None)

        with pytest.raises(NotFoundError):
            await UserStore.update_profile("ghost", ProfileUpdate(name="Ghost"))


class TestSkills:

    @pytest.mark.asyncio
    @patch.object(SkillCatalog, 'resolve_skill', AsyncMock(return_value=GO))
    @patch('app.services.user_store.users_coll')
    async def test_add_skill_is_single_conditional_push(self, mock_users_coll):
        mock_users_coll.find_one = AsyncMock(return_value=make_user_doc())
        mock_users_coll.find_one_and_update = AsyncMock(
            return_value=make_user_doc(skills=[make_entry("skill-go", 7)])
        )

        user = await UserStore.add_skill("user-a", "Go", 7)

        assert [(e.skill_id, e.rating) for e in user.skills] == [("skill-go", 7)]
        query, update = mock_users_coll.find_one_and_update.await_args.args
        assert query == {"user_id": "user-a", "skills.skill_id": {"$ne": "skill-go"}}
        assert update["$push"]["skills"] == {"skill_id": "skill-go", "rating": 7, "endorser_ids": []}

    @pytest.mark.asyncio
    @patch.object(SkillCatalog, 'resolve_skill', AsyncMock(return_value=GO))
    @patch('app.services.user_store.users_coll')
    async def test_adding_same_skill_twice_keeps_one_entry(self, mock_users_coll):
        with_go = make_user_doc(skills=[make_entry("skill-go", 7)])
        # first push succeeds, second is filtered out by the $ne condition
        mock_users_coll.find_one_and_update = AsyncMock(side_effect=[with_go, None])
        mock_users_coll.find_one = AsyncMock(return_value=with_go)

        await UserStore.add_skill("user-a", "Go", 7)
        user = await UserStore.add_skill("user-a", "Go", 9)

        assert [(e.skill_id, e.rating) for e in user.skills] == [("skill-go", 7)]

    @pytest.mark.asyncio
    @patch('app.services.user_store.users_coll')
    async def test_add_skill_unknown_user_creates_no_skill(self, mock_users_coll):
        mock_users_coll.find_one_and_update = AsyncMock(return_value=None)
        mock_users_coll.find_one = AsyncMock(return_value=None)

        with patch.object(SkillCatalog, 'resolve_skill', AsyncMock(return_value=GO)) as mock_resolve:
            with pytest.raises(NotFoundError):
                await UserStore.add_skill("ghost", "Go", 5)
            mock_resolve.assert_not_called()
        mock_users_coll.find_one_and_update.assert_not_called()

    @pytest.mark.asyncio
    async def test_add_skill_rejects_rating_before_touching_catalog(self):
        with patch.object(SkillCatalog, 'resolve_skill', AsyncMock()) as mock_resolve:
            with pytest.raises(ValidationError):
                await UserStore.add_skill("user-a", "Go", 11)
            mock_resolve.assert_not_called()

    @pytest.mark.asyncio
    @patch('app.services.user_store.users_coll')
    async def test_update_rating_uses_positional_set(self, mock_users_coll):
        mock_users_coll.find_one_and_update = AsyncMock(
            return_value=make_user_doc(skills=[make_entry("skill-go", 9)])
        )

        user = await UserStore.update_skill_rating("user-a", "skill-go", 9)

        assert user.skills[0].rating == 9
        query, update = mock_users_coll.find_one_and_update.await_args.args
        assert query == {"user_id": "user-a", "skills.skill_id": "skill-go"}
        assert update["$set"]["skills.$.rating"] == 9

    @pytest.mark.asyncio
    @patch('app.services.user_store.users_coll')
    async def test_update_rating_missing_entry(self, mock_users_coll):
        mock_users_coll.find_one_and_update = AsyncMock(return_value=None)
        mock_users_coll.find_one = AsyncMock(return_value=make_user_doc())

        with pytest.raises(NotFoundError) as exc_info:
            await UserStore.update_skill_rating("user-a", "skill-go", 4)
        assert exc_info.value.details["resource"] == "skill"

    @pytest.mark.asyncio
    @patch('app.services.user_store.endorsements_coll')
    @patch('app.services.user_store.users_coll')
    async def test_remove_skill_cascades_endorsements(self, mock_users_coll, mock_endorsements_coll):
        mock_users_coll.find_one_and_update = AsyncMock(return_value=make_user_doc(skills=[
            make_entry("skill-go", 7, ["user-b", "user-c"]),
            make_entry("skill-rust", 5),
        ]))
        mock_endorsements_coll.delete_many = AsyncMock(return_value=MagicMock(deleted_count=2))

        user = await UserStore.remove_skill("user-a", "skill-go")

        assert [e.skill_id for e in user.skills] == ["skill-rust"]
        _, update = mock_users_coll.find_one_and_update.await_args.args
        assert update["$pull"] == {"skills": {"skill_id": "skill-go"}}
        assert mock_users_coll.find_one_and_update.await_args.kwargs["return_document"] == ReturnDocument.BEFORE
        mock_endorsements_coll.delete_many.assert_awaited_once_with(
            {"endorsed_user_id": "user-a", "skill_id": "skill-go"}
        )

    @pytest.mark.asyncio
    @patch('app.services.user_store.endorsements_coll')
    @patch('app.services.user_store.users_coll')
    async def test_remove_skill_not_on_profile(self, mock_users_coll, mock_endorsements_coll):
        mock_users_coll.find_one_and_update = AsyncMock(return_value=None)
        mock_users_coll.find_one = AsyncMock(return_value=make_user_doc())
        mock_endorsements_coll.delete_many = AsyncMock()

        with pytest.raises(NotFoundError):
            await UserStore.remove_skill("user-a", "skill-go")
        mock_endorsements_coll.delete_many.assert_not_called()

    @pytest.mark.asyncio
    @patch('app.services.user_store.endorsements_coll')
    @patch('app.services.user_store.users_coll')
    async def test_failed_cascade_restores_entry(self, mock_users_coll, mock_endorsements_coll):
        mock_users_coll.find_one_and_update = AsyncMock(return_value=make_user_doc(skills=[
            make_entry("skill-go", 7),
            make_entry("skill-rust", 8, ["user-b", "user-c"]),
        ]))
        mock_users_coll.update_one = AsyncMock()
        mock_endorsements_coll.delete_many = AsyncMock(side_effect=PyMongoError("timeout"))
        # user-c's record was deleted before the failure
        mock_endorsements_coll.find.return_value = make_cursor([{"endorsed_by_id": "user-b"}])

        with pytest.raises(DatabaseError):
            await UserStore.remove_skill("user-a", "skill-rust")

        query, update = mock_users_coll.update_one.await_args.args
        assert query == {"user_id": "user-a", "skills.skill_id": {"$ne": "skill-rust"}}
        assert update == {"$push": {"skills": {
            "$each": [{"skill_id": "skill-rust", "rating": 8, "endorser_ids": ["user-b"]}],
            "$position": 1,
        }}}


class TestSearch:

    @pytest.mark.asyncio
    @patch.object(SkillCatalog, 'names_by_id', AsyncMock(return_value={"skill-react": "React"}))
    @patch.object(SkillCatalog, 'find_matching_ids', AsyncMock(return_value=["skill-react"]))
    @patch('app.services.user_store.users_coll')
    async def test_react_min_rating_seven(self, mock_users_coll):
        cursor = make_cursor([
            make_user_doc(user_id="bob", name="Bob", skills=[make_entry("skill-react", 8, ["user-a"])]),
        ])
        mock_users_coll.find.return_value = cursor

        results = await UserStore.search(SearchCriteria(skill_names=["React"], min_rating=7))

        mock_users_coll.find.assert_called_once_with({
            "skills": {"$elemMatch": {"skill_id": {"$in": ["skill-react"]}, "rating": {"$gte": 7}}}
        })
        cursor.sort.assert_called_once_with("name", ASCENDING)
        assert [r.user_id for r in results] == ["bob"]
        assert results[0].skills[0].skill_name == "React"
        assert results[0].skills[0].endorsement_count == 1

    @pytest.mark.asyncio
    @patch.object(SkillCatalog, 'names_by_id', AsyncMock(return_value={}))
    @patch('app.services.user_store.users_coll')
    async def test_public_view_hides_private_fields(self, mock_users_coll):
        mock_users_coll.find.return_value = make_cursor([make_user_doc()])

        results = await UserStore.search(SearchCriteria(available_for_hire=False))

        data = results[0].dict()
        for field in ("auth_id", "email", "contact_info"):
            assert field not in data

    @pytest.mark.asyncio
    @patch.object(SkillCatalog, 'find_matching_ids', AsyncMock(return_value=[]))
    @patch('app.services.user_store.users_coll')
    async def test_unknown_skill_names_return_nothing(self, mock_users_coll):
        results = await UserStore.search(SearchCriteria(skill_names=["Cobol"]))

        assert results == []
        mock_users_coll.find.assert_not_called()

    @pytest.mark.asyncio
    async def test_invalid_rating_window(self):
        with pytest.raises(ValidationError):
            await UserStore.search(SearchCriteria(min_rating=0))
