from pydantic import BaseModel

class TileResponse(BaseModel):
    content_type: str
    content: bytes
