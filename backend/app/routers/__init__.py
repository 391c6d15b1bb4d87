from app.routers import admin, assistant, auth, health, me, quizzes

__all__ = [
    "admin",
    "assistant",
    "auth",
    "health",
    "me",
    "quizzes",
]
