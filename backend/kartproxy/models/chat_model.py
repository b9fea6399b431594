from pydantic import BaseModel, Field
from typing import List, Optional

class ChatPlace(BaseModel):
    name: str
    lat: float
    lon: float
    description: str = ""

# --- API Request/Response Models ---
class ChatRequest(BaseModel):
    message: Optional[str] = Field(None, description="User's input message")

class ChatResponse(BaseModel):
    text: str
    places: List[ChatPlace] = []
