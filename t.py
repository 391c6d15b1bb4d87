import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent
BACKEND = ROOT / "backend"
if str(BACKEND) not in sys.path:
    sys.path.insert(0, str(BACKEND))

from app.core.config import settings
from app.services.assistant import Assistant

assistant = Assistant(enabled=True)

print("AI_ENABLED =", settings.ai_enabled)
print("GEMINI_BASE_URL =", settings.gemini_base_url)
print("GEMINI_CHAT_MODEL =", settings.gemini_chat_model)
print("GEMINI_GENERATE_MODEL =", settings.gemini_generate_model)
print("GEMINI_API_KEY configured =", assistant.is_configured())

ok, reason = assistant.healthcheck()
print("healthcheck ok =", ok)
print("healthcheck reason =", reason)

reply = assistant.chat("In one sentence, what is a stack?")
print("chat fallback =", reply.fallback, reply.reason)
print("chat reply:", str(reply.value)[:200])

qs = assistant.generate_questions("binary search trees", 3)
print("questions fallback =", qs.fallback, qs.reason)
print("questions n =", len(qs.value))
if qs.value:
    print("sample:", qs.value[0].text[:200])
