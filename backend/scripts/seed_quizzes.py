from __future__ import annotations

import argparse
import json
import os
import pathlib
import sys

# Ensure imports work when running from any CWD and in Docker (/app)
_HERE = pathlib.Path(__file__).resolve()
_BACKEND_ROOT = _HERE.parents[1]
sys.path.insert(0, str(_BACKEND_ROOT))
sys.path.insert(0, "/app")
sys.path.insert(0, os.getcwd())

from app.core.config import resolved_storage_backend
from app.schemas.quiz import QuizDraft
from app.services.authoring import QuizBuilder, QuizValidationError
from app.services.catalog import sample_quizzes
from app.services.store import RecordStore, open_store


def _load_drafts(path: pathlib.Path) -> list[QuizDraft]:
    data = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(data, dict):
        data = [data]
    return [QuizDraft.model_validate(item) for item in data]


def run(*, source: pathlib.Path | None, cleanup: bool, skip_existing: bool) -> None:
    store: RecordStore = open_store()
    try:
        existing = {q.title: q for q in store.get_quizzes()}
        if cleanup:
            for quiz in existing.values():
                store.delete_quiz(quiz.id)
                print(f"deleted {quiz.id} {quiz.title!r}")
            existing = {}

        if source is None:
            quizzes = sample_quizzes()
        else:
            quizzes = []
            for n, draft in enumerate(_load_drafts(source), start=1):
                try:
                    quizzes.append(QuizBuilder.from_draft(draft, existing=existing.get(draft.title)).build())
                except QuizValidationError as e:
                    print(f"skip #{n} {draft.title!r}: {e}")

        for quiz in quizzes:
            if skip_existing and quiz.title in existing:
                print(f"skip existing {quiz.title!r}")
                continue
            store.save_quiz(quiz)
            print(f"saved {quiz.id} {quiz.title!r} questions={len(quiz.questions)}")
    finally:
        store.close()


def main() -> None:
    p = argparse.ArgumentParser(description="Load quizzes into the configured store")
    p.add_argument("--file", default=None, help="JSON file with one quiz draft or a list of drafts")
    p.add_argument("--cleanup", action="store_true", help="Delete existing quizzes before loading")
    p.add_argument("--skip-existing", action="store_true", help="Skip quizzes whose title is already stored")
    args = p.parse_args()

    print(f"storage backend = {resolved_storage_backend()}")
    run(
        source=pathlib.Path(args.file) if args.file else None,
        cleanup=bool(args.cleanup),
        skip_existing=bool(args.skip_existing),
    )


if __name__ == "__main__":
    main()
