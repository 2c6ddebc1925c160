import logging
from fastapi import APIRouter, HTTPException
from civic_api.config.settings import settings
from civic_api.database import issues
from civic_api.models import CommentCreate, ContributionCreate, IssueCreate, StatusUpdate, VotePayload
from civic_api.services.image_service import InvalidImageError, save_image
from civic_api.utils import new_id, now_iso, serialize_doc, serialize_list

router = APIRouter(prefix="/api")
LOGGER = logging.getLogger(__name__)
VERIFICATION_OPEN_STATUSES = {"submitted", "pending_verification"}


def _get_issue_doc(issue_id: str) -> dict:
    doc = issues.find_one(issue_id)
    if not doc:
        raise HTTPException(status_code=404, detail="Issue not found")
    return doc

def _save_photo(photo: str | None) -> str:
    if not photo:
        return ""
    try:
        return save_image(photo)
    except InvalidImageError:
        raise HTTPException(status_code=400, detail="Invalid image data")

def _apply_vote(doc: dict, user_id: str, vote: int):
    voters = doc.setdefault("_voters", {})
    previous = voters.get(user_id)
    if previous == vote:
        return
    if previous == 1:
        doc["upvotes"] -= 1
    elif previous == -1:
        doc["downvotes"] -= 1
    if vote == 1:
        doc["upvotes"] += 1
    else:
        doc["downvotes"] += 1
    voters[user_id] = vote

    status = doc.get("status")
    if status in VERIFICATION_OPEN_STATUSES and doc["upvotes"] >= doc.get("verificationThreshold", 0):
        doc["status"] = "under_review"
    elif status == "submitted":
        doc["status"] = "pending_verification"
    doc["updatedAt"] = now_iso()


@router.get("/issues")
def list_issues():
    rows = issues.find()
    rows.sort(key=lambda row: row.get("createdAt") or "", reverse=True)
    return {"issues": serialize_list(rows)}

@router.post("/issues", status_code=201)
def create_issue(payload: IssueCreate):
    data = payload.model_dump()
    photo_url = _save_photo(data.pop("photoBase64", None))
    user_id = data.pop("userId", None)
    now = now_iso()
    doc = {
        "title": data["title"].strip(),
        "description": data["description"].strip(),
        "category": data["category"],
        "location": data["location"],
        "address": data["address"].strip(),
        "wardId": data["wardId"].strip(),
        "photoUrl": photo_url,
        "status": "submitted",
        "upvotes": 0,
        "downvotes": 0,
        "verificationThreshold": settings.VERIFICATION_THRESHOLD,
        "comments": [],
        "contributions": [],
        "createdAt": now,
        "updatedAt": now,
        "_voters": {},
    }
    if user_id:
        doc["userId"] = user_id
    created = issues.insert_one(doc)
    LOGGER.info("Issue %s created (category=%s, ward=%s)", created["id"], created["category"], created["wardId"])
    return serialize_doc(created)

@router.get("/issues/{issue_id}")
def get_issue(issue_id: str):
    return serialize_doc(_get_issue_doc(issue_id))

@router.post("/issues/{issue_id}/vote")
def vote_issue(issue_id: str, payload: VotePayload):
    doc = issues.update_one(issue_id, lambda row: _apply_vote(row, payload.userId, payload.vote))
    if doc is None:
        raise HTTPException(status_code=404, detail="Issue not found")
    return serialize_doc(doc)

@router.post("/issues/{issue_id}/comments", status_code=201)
def add_comment(issue_id: str, payload: CommentCreate):
    comment = {
        "id": new_id(),
        "issueId": issue_id,
        "userId": payload.userId,
        "userName": payload.userName.strip(),
        "message": payload.message.strip(),
        "createdAt": now_iso(),
    }

    def _append(row: dict):
        row["comments"].append(comment)
        row["updatedAt"] = comment["createdAt"]

    if issues.update_one(issue_id, _append) is None:
        raise HTTPException(status_code=404, detail="Issue not found")
    return comment

@router.post("/issues/{issue_id}/contributions", status_code=201)
def add_contribution(issue_id: str, payload: ContributionCreate):
    contribution = {
        "id": new_id(),
        "issueId": issue_id,
        "userId": payload.userId,
        "userName": payload.userName.strip(),
        "description": payload.description.strip(),
        "mediaUrl": (payload.mediaUrl or payload.mediaBase64 or "").strip(),
        "upvotes": 0,
        "createdAt": now_iso(),
        "_voters": [],
    }

    def _append(row: dict):
        row["contributions"].append(contribution)
        row["updatedAt"] = contribution["createdAt"]

    if issues.update_one(issue_id, _append) is None:
        raise HTTPException(status_code=404, detail="Issue not found")
    return serialize_doc(contribution)

@router.post("/issues/{issue_id}/contributions/{contribution_id}/vote")
def vote_contribution(issue_id: str, contribution_id: str, payload: VotePayload):
    result: dict = {}

    def _vote(row: dict):
        for contribution in row.get("contributions", []):
            if contribution.get("id") != contribution_id:
                continue
            voters = contribution.setdefault("_voters", [])
            if payload.vote == 1 and payload.userId not in voters:
                voters.append(payload.userId)
                contribution["upvotes"] += 1
            elif payload.vote == -1 and payload.userId in voters:
                voters.remove(payload.userId)
                contribution["upvotes"] -= 1
            result["contribution"] = serialize_doc(contribution)
            return

    if issues.update_one(issue_id, _vote) is None:
        raise HTTPException(status_code=404, detail="Issue not found")
    if "contribution" not in result:
        raise HTTPException(status_code=404, detail="Contribution not found")
    return result["contribution"]

@router.put("/issues/{issue_id}/status")
def update_status(issue_id: str, payload: StatusUpdate):
    now = now_iso()

    def _set_status(row: dict):
        row["status"] = payload.status
        row["updatedAt"] = now
        if payload.status == "resolved":
            row["resolvedAt"] = now
        else:
            row.pop("resolvedAt", None)

    doc = issues.update_one(issue_id, _set_status)
    if doc is None:
        raise HTTPException(status_code=404, detail="Issue not found")
    LOGGER.info("Issue %s moved to %s", issue_id, payload.status)
    return serialize_doc(doc)
