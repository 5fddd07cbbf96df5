import logging
import os
import time
from typing import List, Optional

from rich.console import Console
from tqdm import tqdm

from content.arithmetic import SUBTOPICS
from mastery_core.schema import Candidate
from practice_ai_core.question_bank import QuestionBank
from practice_ai_core.question_generator import LLMQuestionGenerator, difficulty_label
from practice_ai_core.settings import configure_logging, load_settings

console = Console()


def banner():
    console.print("\n[bold cyan]╔══════════════════════════════════════════════╗[/bold cyan]")
    console.print("[bold cyan]║     🚀 Practice Question Bank Builder        ║[/bold cyan]")
    console.print("[bold cyan]╚══════════════════════════════════════════════╝[/bold cyan]\n")


def generate_batch(
    generator: LLMQuestionGenerator,
    n: int,
    difficulty: float,
    allowed_subtopics: Optional[List[str]] = None,
) -> List[Candidate]:
    """Sinh n câu, bỏ qua lượt thất bại và câu trùng signature trong batch."""
    out: List[Candidate] = []
    seen = set()
    with tqdm(total=n, desc=f"{generator.topic}/{difficulty_label(difficulty)}") as bar:
        for _ in range(n):
            candidate = generator(difficulty, allowed_subtopics)
            if candidate is not None and candidate.signature not in seen:
                seen.add(candidate.signature)
                out.append(candidate)
            bar.update(1)
    return out


def _pick(prompt: str, options: List[str], default: str) -> str:
    for i, opt in enumerate(options, 1):
        console.print(f"  [cyan]{i}.[/cyan] {opt}")
    raw = input(f"\n👉 {prompt} (Enter = {default}): ").strip()
    if raw.isdigit() and 1 <= int(raw) <= len(options):
        return options[int(raw) - 1]
    return default


def run_question_generator():
    settings = load_settings()
    configure_logging(settings, log_file="logs/question_gen.log")
    banner()

    topics = sorted(SUBTOPICS)
    console.print("[magenta]📘 Chọn topic:[/magenta]")
    topic = _pick("Nhập số", topics, topics[0])

    grade = input("🎓 Lớp (Enter = G3): ").strip() or "G3"
    backend = _pick("Backend", ["openai", "gemini"], "openai")

    try:
        difficulty = float(input("📈 Độ khó 0-1 (Enter = 0.5): ").strip() or 0.5)
    except ValueError:
        difficulty = 0.5
    difficulty = min(1.0, max(0.0, difficulty))

    try:
        n = int(input("🔢 Số lượng câu cần tạo (Enter = 3): ").strip() or 3)
        if n <= 0:
            raise ValueError
    except ValueError:
        console.print("[yellow]⚠️ Giá trị không hợp lệ, mặc định: 3[/yellow]")
        n = 3

    user_id = input("👤 Lưu vào ngân hàng của user (Enter = dùng chung): ").strip() or None

    bank = QuestionBank(settings.question_bank_dir, app_id=settings.app_id)
    path = bank.user_path(user_id) if user_id else bank.shared_path()

    console.print(f"\n[cyan]🤖 Đang sinh câu hỏi bằng {backend}...[/cyan]\n")
    start = time.time()
    try:
        generator = LLMQuestionGenerator(topic, grade=grade, backend=backend, settings=settings)
        items = generate_batch(generator, n, difficulty)
        if not items:
            console.print("[yellow]⚠️ Không sinh được câu hỏi nào.[/yellow]")
            return

        added = bank.save_questions(path, items, grade)
        elapsed = time.time() - start
        console.print(f"\n[green]✅ Đã sinh {len(items)} câu, lưu mới {added} câu trong {elapsed:.1f}s.[/green]")
        console.print(f"[cyan]📁 File:[/cyan] {os.path.abspath(path)}")

        preview = items[0]
        console.print("\n[bold magenta]📖 Xem trước câu hỏi đầu tiên:[/bold magenta]")
        console.print(f"  🧩 {preview.question}")
        for i, opt in enumerate(preview.options, 1):
            console.print(f"   {chr(64 + i)}. {opt}")
        console.print(f"  ✅ Đáp án đúng: {preview.correct_answer}")

    except Exception as e:
        console.print(f"[red]🚨 Lỗi khi sinh câu hỏi:[/red] {e}")
        logging.exception("Lỗi khi sinh câu hỏi")


if __name__ == "__main__":
    run_question_generator()
