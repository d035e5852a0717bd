import os
from dotenv import load_dotenv

load_dotenv()

LLM_PROVIDER = os.getenv("LLM_PROVIDER", "ollama").lower()

OLLAMA_MODEL = os.getenv("OLLAMA_MODEL", "mistral")
OLLAMA_HOST = os.getenv("OLLAMA_HOST", "http://localhost:11434")
OLLAMA_TIMEOUT = float(os.getenv("OLLAMA_TIMEOUT", "180"))

OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4")
OPENAI_BASE_URL = os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1")
OPENAI_TIMEOUT = float(os.getenv("OPENAI_TIMEOUT", "60"))

LLM_TEMPERATURE = float(os.getenv("LLM_TEMPERATURE", "0.7"))
LLM_MAX_TOKENS = int(os.getenv("LLM_MAX_TOKENS", "1000"))

DEFAULT_TIMEZONE = os.getenv("ASH_TIMEZONE", "UTC")
CONTEXT_TURNS = int(os.getenv("ASH_CONTEXT_TURNS", "6"))
WORKING_HOURS_START = os.getenv("ASH_WORKING_HOURS_START", "09:00")
WORKING_HOURS_END = os.getenv("ASH_WORKING_HOURS_END", "17:00")
SUGGESTION_LIMIT = int(os.getenv("ASH_SUGGESTION_LIMIT", "5"))
DEFAULT_REMINDER_MINUTES = int(os.getenv("ASH_DEFAULT_REMINDER_MINUTES", "30"))

TOKENS_DIR = os.getenv("GOOGLE_TOKENS_DIR", "tokens")
SCOPES = [
    "https://www.googleapis.com/auth/calendar",
    "https://www.googleapis.com/auth/gmail.send",
]

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
