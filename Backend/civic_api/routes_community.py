from fastapi import APIRouter, HTTPException
from civic_api.database import community_events, community_posts
from civic_api.models import CommunityEventCreate, CommunityPostCreate, LikePayload
from civic_api.services.image_service import media_kind
from civic_api.utils import now_iso, parse_iso, serialize_doc, serialize_list

router = APIRouter(prefix="/api")


@router.get("/community-posts")
def list_community_posts():
    rows = community_posts.find()
    rows.sort(key=lambda row: row.get("createdAt") or "", reverse=True)
    return {"posts": serialize_list(rows)}

@router.post("/community-posts", status_code=201)
def create_community_post(payload: CommunityPostCreate):
    media = [{"url": item, "kind": media_kind(item)} for item in payload.mediaBase64 if item]
    doc = {
        "userId": payload.userId,
        "description": payload.description,
        "media": media,
        "upvotes": 0,
        "createdAt": now_iso(),
        "_likedBy": [],
    }
    return serialize_doc(community_posts.insert_one(doc))

@router.post("/community-posts/{post_id}/like")
def like_community_post(post_id: str, payload: LikePayload | None = None):
    user_id = (payload.userId if payload else None) or "anon"

    def _like(row: dict):
        liked_by = row.setdefault("_likedBy", [])
        if user_id not in liked_by:
            liked_by.append(user_id)
            row["upvotes"] += 1

    doc = community_posts.update_one(post_id, _like)
    if doc is None:
        raise HTTPException(status_code=404, detail="Post not found")
    return serialize_doc(doc)

@router.get("/community-events")
def list_community_events():
    rows = community_events.find()
    rows.sort(key=lambda row: row.get("startsAt") or "")
    return {"events": serialize_list(rows)}

@router.post("/community-events", status_code=201)
def create_community_event(payload: CommunityEventCreate):
    starts_at = parse_iso(payload.startsAt)
    if starts_at is None:
        raise HTTPException(status_code=400, detail="startsAt must be a valid ISO datetime")
    doc = {
        "title": payload.title.strip(),
        "description": payload.description.strip(),
        "location": payload.location.strip(),
        "startsAt": starts_at.isoformat(),
        "createdAt": now_iso(),
    }
    return serialize_doc(community_events.insert_one(doc))
