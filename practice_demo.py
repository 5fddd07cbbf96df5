import sys

from rich.console import Console

console = Console()


def main():
    console.print("\n[bold cyan]ADAPTIVE PRACTICE - CLI DEMO[/bold cyan]")
    console.print("-" * 40)
    console.print("1. Luyen tap thich ung (Practice Session)")
    console.print("2. Sinh cau hoi moi vao ngan hang (Question Generator)")
    console.print("0. Thoat")
    console.print("-" * 40)
    choice = input("Chon chuc nang (0-2): ").strip()
    if choice == "1":
        from cli.run_practice_session import run_practice_session
        run_practice_session()
    elif choice == "2":
        from cli.generate_questions import run_question_generator
        run_question_generator()
    elif choice == "0":
        console.print("[green]Tam biet![/green]")
        sys.exit(0)
    else:
        console.print("[yellow]Lua chon khong hop le, vui long nhap 0-2.[/yellow]")


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        console.print("\n[red]Da dung chuong trinh.[/red]")
