from fastapi import APIRouter, Depends, HTTPException, Query
from loguru import logger

from coinmind.chat.orchestrator import ChatOrchestrator
from coinmind.config import get_settings
from coinmind.db.repository import ProfileRepository, TransactionRepository
from coinmind.deps import (
    get_orchestrator,
    get_profile_repo,
    get_transaction_repo,
    get_user_id,
)
from coinmind.models.schemas import (
    ChatRequest,
    ChatResponse,
    NormalizedTransaction,
    Profile,
    ProfileUpdateRequest,
)

router = APIRouter()


def require_message(request: ChatRequest) -> ChatRequest:
    if not request.message or not request.message.strip():
        raise HTTPException(status_code=400, detail="Message is required")
    return request


@router.get("/health")
def health():
    return {"status": "healthy", "service": "coinmind"}


@router.post("/chat", response_model=ChatResponse, response_model_exclude_none=True)
def chat(
    request: ChatRequest = Depends(require_message),
    user_id: str = Depends(get_user_id),
    orchestrator: ChatOrchestrator = Depends(get_orchestrator),
):
    message = request.to_incoming()
    logger.info("Chat message from {} (mode={}, {} chars)", user_id, message.mode.value, len(message.text))
    reply = orchestrator.handle(user_id, message)
    return ChatResponse(data=reply)


@router.get("/transactions", response_model=list[NormalizedTransaction])
def list_transactions(
    limit: int = Query(default=100, ge=1, le=1000),
    user_id: str = Depends(get_user_id),
    repo: TransactionRepository = Depends(get_transaction_repo),
):
    return repo.list_transactions(user_id, limit)


@router.get("/profile", response_model=Profile)
def get_profile(
    user_id: str = Depends(get_user_id),
    repo: ProfileRepository = Depends(get_profile_repo),
):
    profile = repo.find_by_id(user_id)
    if profile is None:
        return Profile(user_id=user_id, default_currency=get_settings().default_currency)
    return profile


@router.put("/profile", response_model=Profile)
def update_profile(
    request: ProfileUpdateRequest,
    user_id: str = Depends(get_user_id),
    repo: ProfileRepository = Depends(get_profile_repo),
):
    currency = request.default_currency.upper()
    if not currency.isalpha():
        raise HTTPException(status_code=400, detail="Currency must be an ISO 4217 code")
    profile = repo.upsert(Profile(user_id=user_id, default_currency=currency))
    logger.info("Default currency for {} set to {}", user_id, currency)
    return profile
