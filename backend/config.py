"""Configuration management for the Voice Assistant backend."""
import os
from dotenv import load_dotenv

from logger import setup_logging

# Load environment variables
load_dotenv()

# API Keys
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
GROQ_API_KEY = os.getenv("GROQ_API_KEY")

# Server Configuration
PORT = int(os.getenv("PORT", "3000"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT = os.getenv("LOG_FORMAT", "text")  # "text" or "json"
LOG_FILE = os.getenv("LOG_FILE")  # Optional, e.g. "logs/combined.log"

# CORS Configuration
CORS_ORIGINS = os.getenv(
    "CORS_ORIGINS",
    "http://localhost:3000,http://localhost:5173"
).split(",")

# Storage Configuration
UPLOAD_DIR = os.getenv(
    "UPLOAD_DIR",
    os.path.join(os.path.dirname(os.path.abspath(__file__)), "uploads")
)
MAX_UPLOAD_BYTES = 25 * 1024 * 1024  # 25 MiB
UPLOAD_EXTENSIONS = {"mp3", "wav", "m4a", "ogg", "webm"}
TRANSCRIBABLE_EXTENSIONS = {"mp3", "wav", "m4a"}
RESPONSE_AUDIO_TTL_SECONDS = int(os.getenv("RESPONSE_AUDIO_TTL_SECONDS", "3600"))

# Model Configuration
CHAT_MODEL = os.getenv("CHAT_MODEL", "llama-3.3-70b-versatile")
CHAT_TEMPERATURE = float(os.getenv("CHAT_TEMPERATURE", "0.7"))
CHAT_MAX_TOKENS = int(os.getenv("CHAT_MAX_TOKENS", "500"))
TRANSCRIPTION_MODEL = os.getenv("TRANSCRIPTION_MODEL", "whisper-1")
TTS_MODEL = os.getenv("TTS_MODEL", "tts-1")
DEFAULT_VOICE = "alloy"

# Conversation Configuration
MEMORY_MAX_EXCHANGES = int(os.getenv("MEMORY_MAX_EXCHANGES", "5"))  # 10 messages

# Remote call timeout (seconds) for transcription, generation and synthesis
REMOTE_TIMEOUT_SECONDS = float(os.getenv("REMOTE_TIMEOUT_SECONDS", "60"))

# Audio encoder; falls back to PATH lookup when unset
FFMPEG_PATH = os.getenv("FFMPEG_PATH")

# Logging Configuration
setup_logging(LOG_LEVEL, log_format=LOG_FORMAT, log_file=LOG_FILE)
