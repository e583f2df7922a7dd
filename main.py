# main.py

import logging
import os
from functools import lru_cache

import firebase_admin
from dotenv import load_dotenv
from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from firebase_admin import credentials

from hemolink.ai_backend import TextGenerator
from hemolink.alerts import AlertDispatcher
from hemolink.config import Settings
from hemolink.firebase_tools import DonorStore
from hemolink.notifier import Notifier
from hemolink.suggestions import DonorSuggester

load_dotenv()

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app = FastAPI()

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


# ─────────────────────────────────────────────
# SERVICES
# ─────────────────────────────────────────────
@lru_cache
def get_settings() -> Settings:
    return Settings.from_env()


@lru_cache
def get_store() -> DonorStore:
    settings = get_settings()
    if not firebase_admin._apps:
        if os.path.exists(settings.firebase_credentials):
            cred = credentials.Certificate(settings.firebase_credentials)
            firebase_admin.initialize_app(cred)
        else:
            # Application Default Credentials
            firebase_admin.initialize_app()
            logger.info("Using Application Default Credentials for Firebase")
    return DonorStore()


@lru_cache
def get_notifier() -> Notifier:
    return Notifier(get_settings())


@lru_cache
def get_generator() -> TextGenerator:
    return TextGenerator(get_settings())


def get_dispatcher() -> AlertDispatcher:
    return AlertDispatcher(get_store(), get_notifier(), get_settings())


def get_suggester() -> DonorSuggester:
    return DonorSuggester(get_store(), get_generator(), get_settings())


async def _request_id(request: Request):
    try:
        data = await request.json()
    except ValueError:
        return None
    if not isinstance(data, dict):
        return None
    return data.get("requestId")


# ─────────────────────────────────────────────
# ENDPOINTS
# ─────────────────────────────────────────────
@app.post("/send-donor-alerts")
async def send_donor_alerts(request: Request, dispatcher: AlertDispatcher = Depends(get_dispatcher)):
    """
    Notify all eligible donors for a blood request.
    Always answers 200; failures carry success=false and an error string.
    """
    request_id = await _request_id(request)
    if not request_id:
        return {"success": False, "error": "Request ID is required", "notified": 0}

    try:
        result = await dispatcher.dispatch(str(request_id))
    except Exception as e:
        logger.error(f"Error in send-donor-alerts: {str(e)}", exc_info=True)
        return {"success": False, "error": str(e) or "An unexpected error occurred", "notified": 0}

    return result.to_dict()


@app.post("/suggest-donors")
async def suggest_donors(request: Request, suggester: DonorSuggester = Depends(get_suggester)):
    """Ranked donor suggestions with an AI-written analysis."""
    request_id = await _request_id(request)
    if not request_id:
        return JSONResponse({"error": "Request ID is required"}, status_code=400)

    try:
        result = await suggester.suggest(str(request_id))
    except Exception as e:
        logger.error(f"Error in suggest-donors: {str(e)}", exc_info=True)
        return JSONResponse({"error": str(e) or "Unknown error"}, status_code=500)

    if not result.found:
        return JSONResponse({"error": result.error}, status_code=404)
    return result.to_dict()


@app.get("/")
async def health_check():
    return {"status": "healthy", "service": "hemolink-matching"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "8080")))
