"""Combine a directory of saved posts into one scenario seed.

    python scripts/posts_to_scenario.py posts/ -o grounded-scenario.txt
    python main.py --scenario-file grounded-scenario.txt

Posts are read in order of their numeric filename prefix ("3-foo.html"
before "12-bar.html") and wrapped in <posts><post filename=...> tags between
two fixed directives.
"""

import argparse
import re
import sys
from pathlib import Path

BEFORE_DIRECTIVE = (
    "Below is a list of posts describing many aspects of the world that are relevant "
    "to globally catastrophic scenarios. Use them as background information to create "
    "a scenario that leads to global catastrophe."
)

AFTER_DIRECTIVE = (
    "DO NOT REPEAT ANY INFORMATION FROM THE POSTS. YOU ARE ONLY USING THEM AS BACKGROUND "
    "INFORMATION TO CREATE A SCENARIO. Create a future scenario that seems risky."
)


def numeric_prefix(filename: str) -> int:
    match = re.match(r"^(\d+)", filename)
    return int(match.group(1)) if match else 0


def build_prompt(posts_dir: Path) -> tuple[str, int]:
    """Return (prompt, number of posts)."""
    files = sorted(
        (p for p in posts_dir.iterdir() if p.suffix == ".html"),
        key=lambda p: numeric_prefix(p.name),
    )
    posts = [
        f'<post filename="{p.name}">\n{p.read_text(encoding="utf-8")}\n</post>'
        for p in files
    ]
    posts_xml = "<posts>\n" + "\n\n".join(posts) + "\n</posts>"
    return f"{BEFORE_DIRECTIVE}\n\n{posts_xml}\n\n{AFTER_DIRECTIVE}\n", len(posts)


def main():
    parser = argparse.ArgumentParser(description="Build a scenario seed from saved posts")
    parser.add_argument("posts_dir", type=Path, nargs="?", default=Path("posts"))
    parser.add_argument("-o", "--output", type=Path, default=Path("grounded-scenario.txt"))
    args = parser.parse_args()

    if not args.posts_dir.is_dir():
        print(f"Posts directory not found: {args.posts_dir}", file=sys.stderr)
        sys.exit(1)

    prompt, count = build_prompt(args.posts_dir)
    args.output.write_text(prompt, encoding="utf-8")
    print(f"Combined {count} posts into {args.output} ({len(prompt)} characters)")


if __name__ == "__main__":
    main()
