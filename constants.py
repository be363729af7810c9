import os

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", 8080))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FILE = os.getenv("LOG_FILE", None)

# Comma separated STUN/TURN urls handed to browsers via /config
ICE_SERVERS = [
    url.strip()
    for url in os.getenv(
        "ICE_SERVERS",
        "stun:stun.l.google.com:19302,stun:stun1.l.google.com:19302",
    ).split(",")
    if url.strip()
]

MAX_MESSAGE_BYTES = int(os.getenv("MAX_MESSAGE_BYTES", 64 * 1024))

# Browser clients name a user's room "room_<external user id>"
ROOM_KEY_PREFIX = os.getenv("ROOM_KEY_PREFIX", "room_")

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
