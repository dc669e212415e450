import logging

from fastapi import APIRouter, BackgroundTasks, HTTPException, Request
from pydantic import ValidationError

from api.dependencies import get_review_service
from api.models.schemas import REVIEW_ACTIONS, PullRequestEvent, WebhookResponse
from api.services.review_service import execute_pr_review

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/github", response_model=WebhookResponse, response_model_exclude_none=True)
async def github_webhook(request: Request, background_tasks: BackgroundTasks):
    """
    Receive GitHub webhooks and trigger a review for opened/synchronized PRs.

    The review runs as a background task; the response only says whether
    the delivery was accepted. The review service is only built once a
    delivery passes the event and action filter, so pings and ignored
    events succeed even when the App credentials are missing.
    """
    event_type = request.headers.get("X-GitHub-Event", "")
    payload = await request.json()

    logger.info(f"Received GitHub webhook: {event_type}")

    if event_type != "pull_request":
        return WebhookResponse(status="ignored", reason=f"event is '{event_type}', not 'pull_request'")

    action = str(payload.get("action", ""))
    if action.lower() not in REVIEW_ACTIONS:
        return WebhookResponse(status="ignored", reason=f"action is '{action}', not 'opened' or 'synchronize'")

    try:
        event = PullRequestEvent.model_validate(payload)
    except ValidationError as e:
        logger.warning(f"Rejected pull_request payload: {e.error_count()} validation error(s)")
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise HTTPException(status_code=400, detail=f"Invalid pull_request payload: {problems}")

    review_service = get_review_service()

    pr_label = f"{event.owner}/{event.repo}#{event.number}"
    logger.info(f"PR review triggered: {pr_label} ({event.action})")

    background_tasks.add_task(execute_pr_review, review_service, event)

    return WebhookResponse(status="processing", pr=pr_label, action="review")
