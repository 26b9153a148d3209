"""
Settings for the meeting notes bot.
Everything comes from environment variables (or a local .env file).
"""
import os
from dotenv import load_dotenv

load_dotenv()

# OpenAI
OPENAI_API_KEY = os.getenv('OPENAI_API_KEY', '')
OPENAI_MODEL = os.getenv('OPENAI_MODEL', 'gpt-5.1')
# Explicit timeout per LLM call; the client retries once on transient failures
LLM_TIMEOUT_SECONDS = float(os.getenv('LLM_TIMEOUT_SECONDS', '30'))
LLM_MAX_RETRIES = 1

# Telegram
TELEGRAM_BOT_TOKEN = os.getenv('TELEGRAM_BOT_TOKEN', '')
TELEGRAM_API = 'https://api.telegram.org/bot'
TELEGRAM_TIMEOUT_SECONDS = float(os.getenv('TELEGRAM_TIMEOUT_SECONDS', '10'))
BASE_URL = os.getenv('BASE_URL', '')

# Firebase (file path for local dev, JSON string for Cloud Run)
FIREBASE_CREDENTIALS_PATH = os.getenv('GOOGLE_APPLICATION_CREDENTIALS')
FIREBASE_CREDENTIALS_JSON = os.getenv('FIREBASE_CREDENTIALS_JSON')

# Dates are shown and compared in this timezone
BOT_TIMEZONE = os.getenv('BOT_TIMEZONE', 'America/Sao_Paulo')

# "memory" (single instance) or "firestore" (shared between instances)
CHAT_STATE_BACKEND = os.getenv('CHAT_STATE_BACKEND', 'memory').lower()

# Conversation limits
HISTORY_WINDOW = 20
SAVED_KEYS_CAP = 10
DATE_INFERENCE_TURNS = 6
NEARBY_WINDOW_DAYS = 1

# Chat id used by the local test endpoint (never sent to Telegram)
TEST_CHAT_ID = 999999
