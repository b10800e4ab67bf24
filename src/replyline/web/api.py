"""REST API routes for dashboards and reporting."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from replyline.service import ConversationService

router = APIRouter(tags=["api"])


def get_service(request: Request):
    """Request-scoped service over the app-scoped gateway, adapter and guard."""
    from replyline.database import open_db
    from replyline.service import build_service

    state = request.app.state
    with open_db(state.config, check_same_thread=False) as conn:
        yield build_service(
            state.config, conn,
            gateway=state.gateway, reply_adapter=state.reply_adapter, guard=state.guard,
        )


def _contact_email(service: ConversationService, reference: str) -> str:
    email = service.resolve_contact_email(reference)
    if not email:
        raise HTTPException(404, f"Unknown contact: {reference}")
    return email


@router.get("/accounts/{account_id}/followups")
def follow_up_queue(account_id: str, service: ConversationService = Depends(get_service)):
    """Contacts overdue for a follow-up, most overdue first."""
    return [s.to_dict() for s in service.get_follow_up_queue(account_id)]


@router.get("/accounts/{account_id}/contacts")
def conversation_contacts(account_id: str, service: ConversationService = Depends(get_service)):
    """Every contact the account has written to, most recent first."""
    return [s.to_dict() for s in service.list_conversation_contacts(account_id)]


@router.get("/accounts/{account_id}/conversations/{contact}")
def conversation(account_id: str, contact: str, service: ConversationService = Depends(get_service)):
    email = _contact_email(service, contact)
    return {
        "contact_email": email,
        "events": [e.to_dict() for e in service.get_conversation(account_id, email)],
    }


@router.get("/accounts/{account_id}/conversations/{contact}/stats")
def conversation_stats(account_id: str, contact: str, service: ConversationService = Depends(get_service)):
    email = _contact_email(service, contact)
    return {"contact_email": email, **service.get_conversation_stats(account_id, email).to_dict()}


@router.get("/accounts/{account_id}/conversations/{contact}/search")
def conversation_search(
    account_id: str,
    contact: str,
    q: str = Query(..., min_length=1),
    service: ConversationService = Depends(get_service),
):
    email = _contact_email(service, contact)
    return {
        "contact_email": email,
        "query": q,
        "events": [e.to_dict() for e in service.search_conversation(account_id, email, q)],
    }
