import re
import time

def now_ms() -> int:
    return int(time.time() * 1000)

def safe_topic(topic: str, max_length: int = 30) -> str:
    return re.sub(r"[^a-z0-9]", "_", topic, flags=re.IGNORECASE).lower()[:max_length]

def note_filename(topic: str) -> str:
    return f"{safe_topic(topic)}_note.md"
