import json
import logging
import os
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from rich.console import Console

from content.arithmetic import SUBTOPICS, ArithmeticGenerator
from mastery_core import (
    adapt_answered_history,
    compute_per_topic_complexity,
    generate_quiz_questions,
    get_topic_availability,
    next_target_complexity,
    resolve_daily_goal,
)
from mastery_core.schema import Candidate
from practice_ai_core.question_bank import QuestionBank, QuestionBankError
from practice_ai_core.settings import configure_logging, load_settings

console = Console()


def load_history(path: str) -> List[Dict[str, Any]]:
    """answeredQuestions đã lưu (định dạng app); file hỏng/thiếu → rỗng."""
    if not os.path.exists(path):
        return []
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logging.warning(f"Cannot read history {path}: {e}")
        return []
    return data if isinstance(data, list) else []


def save_history(path: str, answered: List[Dict[str, Any]]) -> None:
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(answered, f, ensure_ascii=False, indent=2)


def today_progress(answered: List[Dict[str, Any]]) -> Dict[str, Dict[str, int]]:
    today = datetime.now(timezone.utc).date().isoformat()
    progress: Dict[str, Dict[str, int]] = {}
    for a in answered:
        if a.get("date") != today:
            continue
        stats = progress.setdefault(a.get("topic", ""), {"correct": 0, "incorrect": 0})
        stats["correct" if a.get("isCorrect") else "incorrect"] += 1
    return progress


def choose_topic(answered: List[Dict[str, Any]], daily_goals: Dict[str, int]) -> Optional[str]:
    topics = sorted(SUBTOPICS)
    availability = get_topic_availability(topics, daily_goals, today_progress(answered))

    console.print("\n[bold magenta]Cac chu de:[/bold magenta]")
    for i, stat in enumerate(availability.topic_stats, 1):
        mark = "[green]✓[/green]" if stat.completed else " "
        locked = "" if stat.topic in availability.available_topics else " [dim](tam khoa)[/dim]"
        console.print(f"  [cyan]{i}.[/cyan] {stat.topic} {mark} {stat.correct_answers}/{stat.goal}{locked}")

    raw = input("\nChon chu de (so): ").strip()
    if not raw.isdigit() or not 1 <= int(raw) <= len(topics):
        console.print("[yellow]Lua chon khong hop le.[/yellow]")
        return None
    topic = topics[int(raw) - 1]
    if topic not in availability.available_topics:
        console.print("[yellow]Chu de nay da dat muc tieu hom nay, hay luyen chu de khac truoc.[/yellow]")
        return None
    return topic


def fetch_bank_questions(bank: QuestionBank, topic: str, grade: str, answered: List[Dict[str, Any]]) -> List[Candidate]:
    answered_ids = [a["questionId"] for a in answered if a.get("questionId")]
    try:
        return bank.fetch_remote_candidates(topic, grade, answered_question_ids=answered_ids)
    except QuestionBankError as e:
        console.print(f"[yellow]Khong tai duoc ngan hang cau hoi ({e}); chi dung cau hoi sinh tu dong.[/yellow]")
        return []


def ask(candidate: Candidate, step: int) -> Optional[Dict[str, Any]]:
    console.print(f"\n[blue]Cau {step}:[/blue] {candidate.question}")
    options = list(candidate.options)
    for i, opt in enumerate(options, 1):
        console.print(f"  {i}. {opt}")

    started = time.monotonic()
    ans = input("Chon dap an (so, hoac q de thoat): ").strip().lower()
    elapsed = time.monotonic() - started
    if ans == "q":
        return None

    if ans.isdigit() and 1 <= int(ans) <= len(options):
        chosen = options[int(ans) - 1]
    else:
        chosen = ans
    correct = chosen.strip() == candidate.correct_answer.strip()
    console.print("[green]Dung![/green]" if correct else f"[red]Sai.[/red] Dap an: {candidate.correct_answer}")

    now = datetime.now(timezone.utc)
    return {
        "id": f"{candidate.concept}|{int(now.timestamp() * 1000)}",
        "questionId": candidate.question_id,
        "question": candidate.question,
        "correctAnswer": candidate.correct_answer,
        "topic": candidate.concept,
        "subtopic": candidate.subtopic,
        "isCorrect": correct,
        "timeTaken": round(elapsed, 2),
        "timestamp": now.isoformat(),
        "date": now.date().isoformat(),
    }


def run_practice_session(grade: str = "G3", mode: str = "progressive") -> None:
    settings = load_settings()
    configure_logging(settings)

    answered = load_history(settings.history_file)
    daily_goals: Dict[str, int] = {}

    topic = choose_topic(answered, daily_goals)
    if not topic:
        return

    history = adapt_answered_history(answered)
    target = next_target_complexity(history, topic, mode=mode)
    console.print(f"\n[cyan]Do kho muc tieu cho {topic}: {target:.2f}[/cyan]")

    bank = QuestionBank(settings.question_bank_dir, app_id=settings.app_id)
    remote = fetch_bank_questions(bank, topic, grade, answered)

    result = generate_quiz_questions(
        topic=topic,
        daily_goal=resolve_daily_goal(daily_goals, topic),
        history=history,
        difficulty=target,
        remote_candidates=remote,
        generator=ArithmeticGenerator(topic),
        question_bank_probability=settings.question_bank_probability,
    )
    if not result.is_complete:
        console.print(f"[yellow]Chi tao duoc {len(result)}/{result.requested} cau ({result.exit_reason.value}).[/yellow]")
    if not result.questions:
        return

    console.print(f"\n[bold cyan]BAT DAU LUYEN TAP ({len(result)} cau)[/bold cyan]")
    for step, candidate in enumerate(result.questions, 1):
        entry = ask(candidate, step)
        if entry is None:
            console.print("[red]Ket thuc som.[/red]")
            break
        answered.append(entry)
        save_history(settings.history_file, answered)

    console.print("\n[bold cyan]KET THUC[/bold cyan]")
    for stat in compute_per_topic_complexity(adapt_answered_history(answered)):
        console.print(f"  {stat.topic}: do phuc tap TB {stat.avg_complexity:.2f} ({stat.count} cau)")


if __name__ == "__main__":
    run_practice_session()
