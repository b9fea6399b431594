from fastapi import APIRouter, Depends

from kartproxy.core.errors import InvalidArgument
from kartproxy.dependencies import get_chat_service
from kartproxy.models.chat_model import ChatRequest, ChatResponse
from kartproxy.services.chat_service import ChatService

router = APIRouter()

@router.post("/api/chat", response_model=ChatResponse)
async def chat_endpoint(
    request: ChatRequest,
    service: ChatService = Depends(get_chat_service)
):
    """
    Receives the message from the map's chat panel and returns the answer
    text plus the places to plot.
    """
    if not request.message or not request.message.strip():
        raise InvalidArgument("message is required")
    return await service.chat(request.message.strip())
