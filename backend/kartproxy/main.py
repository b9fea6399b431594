from pathlib import Path
from fastapi import FastAPI, Request
from fastapi.responses import FileResponse, JSONResponse, Response
from kartproxy.core.config import settings
from kartproxy.core.errors import register_error_handlers
from kartproxy.routes.wmts_route import router as wmts_router
from kartproxy.routes.pois_route import router as pois_router
from kartproxy.routes.chat_route import router as chat_router
from kartproxy.routes.stats_route import router as stats_router

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}

app = FastAPI(title="Kartproxy")
register_error_handlers(app, headers=CORS_HEADERS)

# --- CORS: every response, and OPTIONS short-circuits ---
@app.middleware("http")
async def add_cors(request: Request, call_next):
    if request.method == "OPTIONS":
        return Response(status_code=204, headers=CORS_HEADERS)
    response = await call_next(request)
    response.headers.update(CORS_HEADERS)
    return response

app.include_router(wmts_router)
app.include_router(pois_router)
app.include_router(chat_router)
app.include_router(stats_router)

# --- Health Check ---
@app.get("/health")
async def health_check():
    return {"status": "ok", "service": "Kartproxy"}

# --- Frontend: static files, then index.html for client-side routes ---
@app.get("/{full_path:path}", include_in_schema=False)
async def serve_frontend(full_path: str):
    static_root = Path(settings.STATIC_DIR).resolve()
    candidate = (static_root / full_path).resolve()
    if full_path and candidate.is_file() and static_root in candidate.parents:
        return FileResponse(candidate)

    index = static_root / "index.html"
    if index.is_file():
        return FileResponse(index)
    return JSONResponse({"error": "Not found"}, status_code=404)

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("kartproxy.main:app", host="0.0.0.0", port=settings.PORT, reload=True)
