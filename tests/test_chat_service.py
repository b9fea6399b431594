import asyncio
import json
import httpx
import pytest

from kartproxy.core.errors import ConfigError, UpstreamError
from kartproxy.core.llm_connection import LLMService, is_placeholder_key
from kartproxy.services.chat_service import ChatService
from kartproxy.services.geocode_service import GeocodingService
from conftest import Upstream, run


def llm_reply(content: str) -> httpx.Response:
    return httpx.Response(200, json={"choices": [{"message": {"role": "assistant", "content": content}}]})


def reply_with_places(places, text="Här är några tips i Göteborg."):
    return f"{text}\n\n```places\n{json.dumps(places, ensure_ascii=False)}\n```"


def make_service(settings, llm_responses, geocode_responses):
    llm_upstream = Upstream(llm_responses)
    geo_upstream = Upstream(geocode_responses)
    service = ChatService(
        settings,
        LLMService(settings, transport=llm_upstream.transport),
        GeocodingService(settings, transport=geo_upstream.transport),
    )
    return service, llm_upstream, geo_upstream


def test_geocoder_match_overrides_model_coordinates(settings):
    places = [{"name": "Liseberg", "lat": 0.0, "lon": 0.0, "description": "Nöjespark"}]
    service, _, geo = make_service(
        settings,
        lambda req: llm_reply(reply_with_places(places)),
        lambda req: httpx.Response(200, json=[{"lat": "57.6953", "lon": "11.9925", "display_name": "Liseberg"}]),
    )

    result = run(service.chat("Vad kan man göra i Göteborg?"))

    assert len(result.places) == 1
    assert (result.places[0].lat, result.places[0].lon) == (57.6953, 11.9925)
    assert result.places[0].description == "Nöjespark"
    params = geo.requests[0].url.params
    assert params["q"] == "Liseberg"
    assert params["countrycodes"] == "se"


def test_geocoder_failure_keeps_model_coordinates(settings):
    places = [{"name": "Liseberg", "lat": 57.69, "lon": 11.99, "description": ""}]
    service, _, _ = make_service(
        settings,
        lambda req: llm_reply(reply_with_places(places)),
        lambda req: httpx.Response(503),
    )

    result = run(service.chat("Nöjesparker?"))

    assert (result.places[0].lat, result.places[0].lon) == (57.69, 11.99)


def test_no_geocoder_match_keeps_model_coordinates(settings):
    places = [{"name": "Okänd plats", "lat": 58.1, "lon": 12.2, "description": ""}]
    service, _, _ = make_service(
        settings,
        lambda req: llm_reply(reply_with_places(places)),
        lambda req: httpx.Response(200, json=[]),
    )

    result = run(service.chat("Hej"))

    assert (result.places[0].lat, result.places[0].lon) == (58.1, 12.2)


def test_place_order_is_preserved_when_lookups_finish_out_of_order(settings):
    places = [
        {"name": "Slow", "lat": 1.0, "lon": 1.0, "description": ""},
        {"name": "Fast", "lat": 2.0, "lon": 2.0, "description": ""},
    ]

    async def geocode(request):
        if request.url.params["q"] == "Slow":
            await asyncio.sleep(0.05)
            return httpx.Response(200, json=[{"lat": "10", "lon": "10"}])
        return httpx.Response(200, json=[{"lat": "20", "lon": "20"}])

    llm_upstream = Upstream(lambda req: llm_reply(reply_with_places(places)))
    service = ChatService(
        settings,
        LLMService(settings, transport=llm_upstream.transport),
        GeocodingService(settings, transport=httpx.MockTransport(geocode)),
    )

    result = run(service.chat("Två platser"))

    assert [(p.name, p.lat) for p in result.places] == [("Slow", 10.0), ("Fast", 20.0)]


def test_places_block_is_stripped_from_text(settings):
    places = [{"name": "Vasamuseet", "lat": 59.328, "lon": 18.091, "description": "Museum"}]
    service, _, _ = make_service(
        settings,
        lambda req: llm_reply(reply_with_places(places, text="Besök Vasamuseet!")),
        lambda req: httpx.Response(200, json=[]),
    )

    result = run(service.chat("Museum i Stockholm?"))

    assert result.text == "Besök Vasamuseet!"


def test_unparseable_places_block_degrades_to_no_places(settings):
    service, _, geo = make_service(
        settings,
        lambda req: llm_reply("Svar utan giltig JSON.\n```places\n[{name: Liseberg}]\n```"),
        lambda req: httpx.Response(200, json=[]),
    )

    result = run(service.chat("Hej"))

    assert result.places == []
    assert result.text == "Svar utan giltig JSON."
    assert geo.calls == 0


def test_reply_without_block_returns_text_only(settings):
    service, _, _ = make_service(settings, lambda req: llm_reply("Hej! Vad vill du veta?"), lambda req: httpx.Response(200, json=[]))

    result = run(service.chat("Hej"))

    assert result.text == "Hej! Vad vill du veta?"
    assert result.places == []


def test_malformed_entries_are_skipped(settings):
    places = [{"name": "Bra", "lat": 59.0, "lon": 18.0}, {"name": "Utan koordinater"}, "text"]
    service, _, _ = make_service(
        settings,
        lambda req: llm_reply(reply_with_places(places)),
        lambda req: httpx.Response(200, json=[]),
    )

    result = run(service.chat("Hej"))

    assert [p.name for p in result.places] == ["Bra"]


def test_system_prompt_and_message_are_sent(settings):
    service, llm, _ = make_service(settings, lambda req: llm_reply("ok"), lambda req: httpx.Response(200, json=[]))

    run(service.chat("Var ligger Kiruna?"))

    payload = json.loads(llm.requests[0].content)
    assert payload["messages"][0] == {"role": "system", "content": settings.CHAT_SYSTEM_PROMPT}
    assert payload["messages"][1] == {"role": "user", "content": "Var ligger Kiruna?"}
    assert llm.requests[0].headers["Authorization"] == "Bearer sk-test"


@pytest.mark.parametrize("key", ["", "   ", "your-key-here", "your_api_key_here"])
def test_placeholder_key_fails_before_any_call(settings, key):
    settings.OPENAI_API_KEY = key
    service, llm, _ = make_service(settings, lambda req: llm_reply("ok"), lambda req: httpx.Response(200, json=[]))

    with pytest.raises(ConfigError):
        run(service.chat("Hej"))
    assert llm.calls == 0


def test_llm_error_maps_to_upstream_error(settings):
    service, _, _ = make_service(settings, lambda req: httpx.Response(429, json={"error": "rate"}), lambda req: httpx.Response(200, json=[]))

    with pytest.raises(UpstreamError) as exc:
        run(service.chat("Hej"))
    assert exc.value.status_code == 502


def test_placeholder_detection():
    assert is_placeholder_key(None)
    assert is_placeholder_key("Your-Key-Here")
    assert not is_placeholder_key("sk-live-123")


def test_places_with_non_finite_coordinates_are_skipped(settings):
    service, _, _ = make_service(settings, lambda req: llm_reply("ok"), lambda req: httpx.Response(200, json=[]))
    reply = (
        "Tips.\n```places\n"
        '[{"name": "Kaknästornet", "lat": NaN, "lon": 18.13},'
        ' {"name": "Globen", "lat": 59.29, "lon": Infinity},'
        ' {"name": "Kungsträdgården", "lat": "-inf", "lon": 18.07},'
        ' {"name": "Skansen", "lat": 59.32, "lon": 18.10}]\n```'
    )

    places = service.extract_places(reply)

    assert [p.name for p in places] == ["Skansen"]
