import copy
from datetime import datetime
from unittest.mock import AsyncMock, MagicMock


def make_cursor(docs):
    """Stand-in for a Motor cursor supporting .sort(...).to_list(...)"""
    cursor = MagicMock()
    cursor.sort.return_value = cursor
    cursor.to_list = AsyncMock(return_value=docs)
    return cursor


def make_user_doc(user_id="user-a", auth_id=None, name="Alice", skills=None, **extra):
    doc = {
        "_id": f"oid-{user_id}",
        "user_id": user_id,
        "auth_id": auth_id or f"auth-{user_id}",
        "name": name,
        "email": f"{user_id}@example.com",
        "available_for_hire": False,
        "contact_info": {"email": f"{user_id}@example.com"},
        "skills": skills or [],
        "created_at": datetime(2024, 1, 1),
        "updated_at": datetime(2024, 1, 1),
    }
    doc.update(extra)
    return doc


def make_entry(skill_id, rating, endorser_ids=None):
    return {"skill_id": skill_id, "rating": rating, "endorser_ids": endorser_ids or []}


def make_job_doc(job_id="job-1", posted_by_id="user-a", required_skills=None, **extra):
    doc = {
        "_id": f"oid-{job_id}",
        "job_id": job_id,
        "title": "Backend Engineer",
        "description": "Build services",
        "required_skills": required_skills or [{"skill_id": "skill-go", "min_rating": 8}],
        "posted_by_id": posted_by_id,
        "contact_info": {"email": "jobs@acme.io", "company": "Acme"},
        "created_at": datetime(2024, 1, 1),
        "updated_at": datetime(2024, 1, 1),
    }
    doc.update(extra)
    return doc




class FakeCollection:
    """In-memory stand-in for a Motor collection.

    Supports equality filters plus "skills.skill_id", and positional
    $addToSet/$pull on "skills.$.endorser_ids", which is all the ledger needs.
    """

    def __init__(self, docs=None):
        self.docs = [copy.deepcopy(doc) for doc in docs or []]

    @staticmethod
    def _matches(doc, query):
        for key, value in query.items():
            if key == "skills.skill_id":
                if not any(e["skill_id"] == value for e in doc.get("skills", [])):
                    return False
            elif doc.get(key) != value:
                return False
        return True

    async def find_one(self, query, projection=None):
        for doc in self.docs:
            if self._matches(doc, query):
                return copy.deepcopy(doc)
        return None

    def find(self, query, projection=None):
        return make_cursor([copy.deepcopy(d) for d in self.docs if self._matches(d, query)])

    async def insert_one(self, doc):
        self.docs.append(copy.deepcopy(doc))

    async def delete_one(self, query):
        for i, doc in enumerate(self.docs):
            if self._matches(doc, query):
                del self.docs[i]
                return MagicMock(deleted_count=1)
        return MagicMock(deleted_count=0)

    async def update_one(self, query, update):
        for doc in self.docs:
            if not self._matches(doc, query):
                continue
            entry = next(e for e in doc["skills"] if e["skill_id"] == query["skills.skill_id"])
            for op, fields in update.items():
                for field, value in fields.items():
                    assert field == "skills.$.endorser_ids"
                    ids = entry["endorser_ids"]
                    if op == "$addToSet" and value not in ids:
                        ids.append(value)
                    elif op == "$pull" and value in ids:
                        ids.remove(value)
            return MagicMock(matched_count=1)
        return MagicMock(matched_count=0)
