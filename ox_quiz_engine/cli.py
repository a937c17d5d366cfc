from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from .config import EngineConfig, load_config
from .errors import QuizEngineError
from .extraction import build_quiz_set, extract_with_config
from .repository import QuizRepository
from .session import QuizSession, SessionState
from .stats import weakest_questions
from .store import open_file_store
from .utils import round_percent
from .validator import validate_document

_ANSWER_WORDS = {
    "o": True,
    "true": True,
    "t": True,
    "x": False,
    "false": False,
    "f": False,
}


def _parse_ox(value: str) -> bool:
    key = value.strip().lower()
    if key not in _ANSWER_WORDS:
        raise argparse.ArgumentTypeError(f"expected o or x, got {value!r}")
    return _ANSWER_WORDS[key]


def _ox(answer: bool) -> str:
    return "O" if answer else "X"


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="ox_quiz_engine")
    p.add_argument("--config", default=None, help="Config JSON path (defaults built in)")
    p.add_argument("--data-dir", default=None, help="Override storage.data_dir")
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = p.add_subparsers(dest="command", required=True)

    ex = sub.add_parser("extract", help="Turn a photo into a new quiz set via the vision model")
    ex.add_argument("--image", required=True, help="Image path")
    ex.add_argument("--title", required=True, help="Quiz set title")
    ex.add_argument("--dry-run", action="store_true", help="Print questions without saving")

    sub.add_parser("list", help="List quiz sets")

    aq = sub.add_parser("add-question", help="Add a question to a quiz set")
    aq.add_argument("--set", dest="set_id", required=True)
    aq.add_argument("--text", required=True)
    aq.add_argument("--answer", required=True, type=_parse_ox, help="o or x")
    aq.add_argument("--explanation", default=None)

    eq = sub.add_parser("edit-question", help="Edit fields of a question")
    eq.add_argument("--set", dest="set_id", required=True)
    eq.add_argument("--question", dest="question_id", required=True)
    eq.add_argument("--text", default=None)
    eq.add_argument("--answer", default=None, type=_parse_ox, help="o or x")
    eq.add_argument("--explanation", default=None)

    dq = sub.add_parser("delete-question", help="Delete a question (and its results)")
    dq.add_argument("--set", dest="set_id", required=True)
    dq.add_argument("--question", dest="question_id", required=True)

    ds = sub.add_parser("delete-set", help="Delete a quiz set (and its results)")
    ds.add_argument("--set", dest="set_id", required=True)

    qz = sub.add_parser("quiz", help="Practice in the terminal (answer with o/x, q to quit)")
    qz.add_argument("--count", type=int, default=None, help="Number of questions (default: all)")

    st = sub.add_parser("stats", help="Show accuracy statistics")
    st.add_argument("--top", type=int, default=None, help="How many weakest questions to show")

    sub.add_parser("validate", help="Check stored document integrity")

    cl = sub.add_parser("clear", help="Delete all stored data")
    cl.add_argument("--yes", action="store_true", help="Confirm deletion")

    return p


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s | %(levelname)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
    )


def _open(args: argparse.Namespace) -> tuple[EngineConfig, QuizRepository]:
    cfg = load_config(args.config)
    data_dir = Path(args.data_dir) if args.data_dir else cfg.data_dir
    return cfg, QuizRepository(open_file_store(data_dir, key=cfg.storage_key))


def cmd_extract(args: argparse.Namespace, cfg: EngineConfig, repo: QuizRepository) -> int:
    try:
        response = extract_with_config(args.image, cfg)
        quiz_set = build_quiz_set(response, title=args.title, source_image_uri=str(Path(args.image).resolve()))
    except (QuizEngineError, ValueError) as e:
        print(f"extract_failed: {e}")
        return 1

    for i, q in enumerate(quiz_set.questions, start=1):
        print(f"{i}. [{_ox(q.answer)}] {q.text}")
    if args.dry_run:
        print(f"provider={response.provider} questions={len(quiz_set.questions)} saved=false")
        return 0

    try:
        repo.save_quiz_set(quiz_set)
    except QuizEngineError as e:
        print(f"extract_failed: {e}")
        return 1
    print(f"provider={response.provider} questions={len(quiz_set.questions)} saved=true")
    print(quiz_set.id)
    return 0


def cmd_list(args: argparse.Namespace, cfg: EngineConfig, repo: QuizRepository) -> int:
    quiz_sets = repo.get_all_quiz_sets()
    for qs in quiz_sets:
        print(f"{qs.id}\t{len(qs.questions)}\t{qs.title}")
        for q in qs.questions:
            print(f"  {q.id}\t[{_ox(q.answer)}] {q.text}")
    print(f"quiz_sets={len(quiz_sets)}")
    return 0


def cmd_add_question(args: argparse.Namespace, cfg: EngineConfig, repo: QuizRepository) -> int:
    if not args.text.strip():
        print("add_question_failed: empty question text")
        return 1
    question = repo.add_question(args.set_id, args.text.strip(), args.answer, args.explanation)
    if question is None:
        print("not_found")
        return 1
    print(question.id)
    return 0


def cmd_edit_question(args: argparse.Namespace, cfg: EngineConfig, repo: QuizRepository) -> int:
    changed = repo.update_question(
        args.set_id,
        args.question_id,
        text=args.text,
        answer=args.answer,
        explanation=args.explanation,
    )
    print("updated" if changed else "not_found")
    return 0 if changed else 1


def cmd_delete_question(args: argparse.Namespace, cfg: EngineConfig, repo: QuizRepository) -> int:
    deleted = repo.delete_question(args.set_id, args.question_id)
    print("deleted" if deleted else "not_found")
    return 0 if deleted else 1


def cmd_delete_set(args: argparse.Namespace, cfg: EngineConfig, repo: QuizRepository) -> int:
    deleted = repo.delete_quiz_set(args.set_id)
    print("deleted" if deleted else "not_found")
    return 0 if deleted else 1


def cmd_quiz(args: argparse.Namespace, cfg: EngineConfig, repo: QuizRepository) -> int:
    count = args.count if args.count is not None else cfg.quiz.get("default_count")
    session = QuizSession(repo, count=count)
    if not session.start():
        print("no_questions")
        return 1

    while session.state is SessionState.PLAYING:
        item = session.current
        print(f"\n[{session.index + 1}/{len(session.items)}] {item.question.text}")
        try:
            raw = input("O/X (q to quit)> ")
        except EOFError:
            break
        if raw.strip().lower() == "q":
            break
        try:
            user_answer = _parse_ox(raw)
        except argparse.ArgumentTypeError:
            print("answer with o or x")
            continue

        result = session.answer(user_answer)
        print("correct" if result.is_correct else f"wrong (answer: {_ox(item.question.answer)})")
        if item.question.explanation:
            print(item.question.explanation)
        session.next()

    s = session.summary()
    print(f"\nanswered={s.answered} correct={s.correct} incorrect={s.incorrect} accuracy={round_percent(s.accuracy)}")
    return 0


def cmd_stats(args: argparse.Namespace, cfg: EngineConfig, repo: QuizRepository) -> int:
    stats = repo.calculate_stats()
    top = args.top if args.top is not None else int(cfg.quiz.get("weakest_top_n") or 5)
    print(f"total_questions={stats.total_questions}")
    print(f"total_attempts={stats.total_attempts}")
    print(f"total_correct={stats.total_correct}")
    print(f"total_incorrect={stats.total_incorrect}")
    print(f"overall_accuracy={round_percent(stats.overall_accuracy)}")
    for s in weakest_questions(stats, top):
        print(f"{round_percent(s.accuracy):>6}%\t{s.correct_count}/{s.total_attempts}\t{s.question}")
    return 0


def cmd_validate(args: argparse.Namespace, cfg: EngineConfig, repo: QuizRepository) -> int:
    report = validate_document(repo.store.read_document())
    print(f"empty_sets={report.empty_sets}")
    print(f"duplicate_ids={report.duplicate_ids}")
    print(f"dangling_results={report.dangling_results}")
    print(f"mismatched_results={report.mismatched_results}")
    for w in report.warnings:
        print(f"warning: {w}")
    if report.errors:
        for m in report.errors:
            print(m)
        return 1
    print("OK")
    return 0


def cmd_clear(args: argparse.Namespace, cfg: EngineConfig, repo: QuizRepository) -> int:
    if not args.yes:
        print("refusing to clear without --yes")
        return 1
    repo.clear_all_data()
    print("cleared")
    return 0


COMMANDS = {
    "extract": cmd_extract,
    "list": cmd_list,
    "add-question": cmd_add_question,
    "edit-question": cmd_edit_question,
    "delete-question": cmd_delete_question,
    "delete-set": cmd_delete_set,
    "quiz": cmd_quiz,
    "stats": cmd_stats,
    "validate": cmd_validate,
    "clear": cmd_clear,
}


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    _setup_logging(args.verbose)

    handler = COMMANDS.get(args.command)
    if handler is None:
        raise SystemExit(2)

    try:
        cfg, repo = _open(args)
        return handler(args, cfg, repo)
    except (QuizEngineError, ValueError) as e:
        print(f"{args.command}_failed: {e}")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
