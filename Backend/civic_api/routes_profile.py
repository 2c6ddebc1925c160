import logging
import threading
from fastapi import APIRouter, HTTPException
from civic_api.auth import hash_password, verify_password
from civic_api.config.settings import settings
from civic_api.database import profiles
from civic_api.models import ChangePasswordRequest, ProfileUpdate, UsernameCheck

router = APIRouter(prefix="/api/profile")
LOGGER = logging.getLogger(__name__)
_USERNAME_LOCK = threading.Lock()


def _taken_usernames() -> set[str]:
    taken = {name.lower() for name in settings.RESERVED_USERNAMES}
    for row in profiles.find():
        taken.add((row.get("username") or "").lower())
    return taken

def _public_profile(doc: dict) -> dict:
    return {
        "userId": doc.get("id"),
        "username": doc.get("username"),
        "email": doc.get("email"),
        "phone": doc.get("phone"),
    }

def _ensure_profile(user_id: str) -> dict:
    doc = profiles.find_one(user_id)
    if doc:
        return doc
    return profiles.insert_one(
        {
            "id": user_id,
            "username": user_id,
            "email": f"{user_id}@example.com",
            "phone": "",
            "_password": hash_password(settings.DEFAULT_PROFILE_PASSWORD),
        }
    )


@router.post("/username-check")
def check_username(payload: UsernameCheck):
    return {"available": payload.username.lower() not in _taken_usernames()}

@router.get("/{user_id}")
def get_profile(user_id: str):
    return {"profile": _public_profile(_ensure_profile(user_id))}

@router.put("/{user_id}")
def update_profile(user_id: str, payload: ProfileUpdate):
    with _USERNAME_LOCK:
        doc = _ensure_profile(user_id)
        updates = payload.model_dump(exclude_none=True)
        username = updates.get("username")
        current = (doc.get("username") or "").lower()
        if username and username.lower() != current and username.lower() in _taken_usernames():
            raise HTTPException(status_code=409, detail="Username already taken")
        doc = profiles.update_one(user_id, lambda row: row.update(updates))
    return {"profile": _public_profile(doc)}

@router.post("/{user_id}/change-password")
def change_password(user_id: str, payload: ChangePasswordRequest):
    doc = _ensure_profile(user_id)
    if not verify_password(payload.current, doc.get("_password") or ""):
        raise HTTPException(status_code=401, detail="Incorrect current password")
    new_hash = hash_password(payload.next)
    profiles.update_one(user_id, lambda row: row.update({"_password": new_hash}))
    LOGGER.info("Password changed for profile %s", user_id)
    return {"ok": True}
