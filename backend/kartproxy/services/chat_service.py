import asyncio
import json
import logging
import math
import re
from typing import List
from kartproxy.core.config import Settings
from kartproxy.core.llm_connection import LLMService
from kartproxy.core.logger import logs
from kartproxy.models.chat_model import ChatPlace, ChatResponse
from kartproxy.services.geocode_service import GeocodingService


class ChatService:
    """
    Asks the LLM, pulls the fenced places block out of its answer and
    corrects each place's coordinates with the geocoder.
    Both the extraction and the correction degrade instead of failing.
    """
    def __init__(self, settings: Settings, llm: LLMService, geocoder: GeocodingService):
        self.llm = llm
        self.geocoder = geocoder
        self.system_prompt = settings.CHAT_SYSTEM_PROMPT
        self.block_pattern = re.compile(
            r"```" + re.escape(settings.CHAT_PLACES_TAG) + r"[ \t]*\r?\n(.*?)```",
            re.DOTALL
        )

    async def chat(self, message: str) -> ChatResponse:
        reply = await self.llm.complete(self.system_prompt, message)

        places = self.extract_places(reply)
        text = self.strip_places_block(reply)

        if places:
            places = await self.verify_places(places)

        logs.log(logging.INFO, f"Chat reply with {len(places)} places")
        return ChatResponse(text=text, places=places)

    def extract_places(self, reply: str) -> List[ChatPlace]:
        match = self.block_pattern.search(reply)
        if not match:
            return []

        try:
            raw = json.loads(match.group(1))
        except json.JSONDecodeError as e:
            logs.log(logging.WARNING, f"Could not parse places block: {str(e)}")
            return []
        if not isinstance(raw, list):
            logs.log(logging.WARNING, f"Places block is not a list: {type(raw).__name__}")
            return []

        places = []
        for item in raw:
            try:
                lat, lon = float(item["lat"]), float(item["lon"])
                if not (math.isfinite(lat) and math.isfinite(lon)):
                    raise ValueError("non-finite coordinates")
                places.append(ChatPlace(
                    name=str(item["name"]),
                    lat=lat,
                    lon=lon,
                    description=str(item.get("description") or "")
                ))
            except (KeyError, TypeError, ValueError, AttributeError):
                logs.log(logging.WARNING, f"Skipping malformed place entry: {item!r}")
        return places

    def strip_places_block(self, reply: str) -> str:
        return self.block_pattern.sub("", reply).strip()

    async def verify_places(self, places: List[ChatPlace]) -> List[ChatPlace]:
        # gather keeps input order regardless of completion order
        return list(await asyncio.gather(*(self._verify_place(p) for p in places)))

    async def _verify_place(self, place: ChatPlace) -> ChatPlace:
        try:
            coords = await self.geocoder.geocode(place.name)
        except Exception as e:
            logs.log(logging.WARNING, f"Geocoding '{place.name}' failed, keeping model coordinates: {str(e)}")
            return place

        if coords is None:
            logs.log(logging.INFO, f"No geocoder match for '{place.name}', keeping model coordinates")
            return place

        lat, lon = coords
        return place.model_copy(update={"lat": lat, "lon": lon})
