"""
Telegram webhook backend for the meeting notes bot.
"""
import json
import os
from fastapi import FastAPI, HTTPException
from fastapi.responses import JSONResponse, PlainTextResponse
import firebase_admin
from firebase_admin import credentials

import bot
import config
import telegram_api
from models import SimulatedMessageRequest, SimulatedMessageResponse, TelegramUpdate

app = FastAPI(title="Meeting Notes Telegram Bot")


def _initialize_app(cred) -> None:
    try:
        firebase_admin.initialize_app(cred)
    except ValueError:
        pass  # Already initialized


def init_firebase() -> bool:
    """
    Initialize Firebase Admin SDK.
    Supports both file path (local dev) and JSON string (Cloud Run).
    """
    if config.FIREBASE_CREDENTIALS_JSON:
        cred = credentials.Certificate(json.loads(config.FIREBASE_CREDENTIALS_JSON))
        _initialize_app(cred)
        print("[main] Firebase Admin SDK initialized from FIREBASE_CREDENTIALS_JSON")
        return True
    if config.FIREBASE_CREDENTIALS_PATH and os.path.exists(config.FIREBASE_CREDENTIALS_PATH):
        cred = credentials.Certificate(config.FIREBASE_CREDENTIALS_PATH)
        _initialize_app(cred)
        print(f"[main] Firebase Admin SDK initialized with {config.FIREBASE_CREDENTIALS_PATH}")
        return True

    print("[main] Warning: Firebase credentials not configured")
    return False


init_firebase()


@app.get("/")
async def index():
    return PlainTextResponse("Bot do Telegram. Use /api/telegram/setup para configurar o webhook.")


@app.get("/api/telegram/setup")
def telegram_setup():
    """Point the Telegram webhook at BASE_URL/api/telegram/webhook"""
    if not config.TELEGRAM_BOT_TOKEN or not config.BASE_URL:
        return JSONResponse(
            status_code=500,
            content={"ok": False, "error": "TELEGRAM_BOT_TOKEN e BASE_URL devem estar definidos no ambiente."},
        )

    webhook_url = f"{config.BASE_URL.rstrip('/')}/api/telegram/webhook"
    try:
        return telegram_api.set_webhook(webhook_url)
    except Exception as e:
        print(f"[main] Error setting webhook: {e}")
        raise HTTPException(status_code=502, detail="Failed to set Telegram webhook")


# Plain `def` handlers run in the thread pool; the reply flow is blocking I/O.
@app.post("/api/telegram/webhook")
def telegram_webhook(update: TelegramUpdate):
    """Receive a Telegram update, reply to the chat."""
    if update.message is None:
        raise HTTPException(status_code=400, detail="Update has no message")

    if not config.TELEGRAM_BOT_TOKEN:
        raise HTTPException(status_code=500, detail="TELEGRAM_BOT_TOKEN not configured")

    chat_id = update.message.chat.id
    result = bot.handle_message(chat_id, update.message.text)
    print(f"[main] Chat {chat_id}: exchange {result.state.value}")

    telegram_api.send_message(chat_id, result.reply)
    return {"ok": True}


@app.post("/api/telegram/test", response_model=SimulatedMessageResponse)
def telegram_test(request: SimulatedMessageRequest):
    """Run the reply flow for a fixed local chat id without sending anything to Telegram."""
    try:
        result = bot.handle_message(config.TEST_CHAT_ID, request.text)
        return SimulatedMessageResponse(ok=True, reply=result.reply)
    except Exception as e:
        print(f"[main] Error in test exchange: {e}")
        return JSONResponse(status_code=500, content={"ok": False, "reply": ""})


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv('PORT', '8080')))
