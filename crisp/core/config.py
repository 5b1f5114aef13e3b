import os

# ✅ Database
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./crisp.db")

# ✅ OpenAI (optional - question bank is used when unset)
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")

# ✅ Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# ✅ Sessions
SESSION_STALE_AFTER_HOURS = float(os.getenv("SESSION_STALE_AFTER_HOURS", "24"))

# ✅ CORS
ALLOWED_ORIGINS = [
    origin.strip()
    for origin in os.getenv("ALLOWED_ORIGINS", "http://localhost:5173").split(",")
    if origin.strip()
]

# ✅ Access code brute-force protection
ACCESS_CODE_RATE_LIMIT = int(os.getenv("ACCESS_CODE_RATE_LIMIT", "10"))
ACCESS_CODE_RATE_WINDOW_SECONDS = int(os.getenv("ACCESS_CODE_RATE_WINDOW_SECONDS", "60"))
