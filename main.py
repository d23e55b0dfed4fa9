"""
AnswerNet - Command Line Entry Point

Wires a configured storage backend to the answer_core library and exposes
its operations as subcommands:

  add-word / add-answer   Ingest texts (idempotent) and print their IDs
  link                    Create or reuse the hidden node for a word set
  score                   Rank candidate answers for a question
  get-strength            Read one word or answer edge (defaulted)
  set-strength            Overwrite one word or answer edge
  status                  Record counts for the configured backend

Example:
    python main.py add-word capital france
    python main.py add-answer paris
    python main.py link --text --words capital france --answers paris
    python main.py score --text --words capital france --answers paris lyon

# ---- Changelog ----
# [2026-10-17] Initial creation.
#   What: AnswerNetApp (store lifecycle + operations) and an argparse CLI
#         using Rich for tables.
#   Settings: Reads config.yaml (see config_schema.py).  --verbose forces
#         DEBUG logging.
#   How:  Each command opens the store, runs one coroutine under
#         asyncio.run(), and closes the store.  AnswerNetError exits 1.
# -------------------
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from pydantic import ValidationError

from answer_core.errors import AnswerNetError, PreconditionError
from answer_core.hidden_nodes import HiddenNodeRegistry
from answer_core.memory_store import MemoryStore
from answer_core.models import HiddenNode
from answer_core.network import Network
from answer_core.sqlite_store import SQLiteStore
from answer_core.store import StorageBackend, StrengthRelation
from config_schema import load_and_validate

logger = logging.getLogger("answernet")

DEFAULT_LOG_FORMAT = "%(name)s %(levelname)s: %(message)s"


@dataclass
class ScoreReport:
    """Ranking for one question.

    Attributes:
        words: Word IDs of the question.
        answers: Candidate answer IDs, in input order.
        hidden_count: Size of the resolved hidden layer.
        ranking: (answer_id, score) pairs, best first.
        elapsed_ms: Time for setup plus feedforward.
    """
    words: List[str] = field(default_factory=list)
    answers: List[str] = field(default_factory=list)
    hidden_count: int = 0
    ranking: List[Tuple[str, float]] = field(default_factory=list)
    elapsed_ms: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for JSON output."""
        return {
            "words": self.words,
            "answers": self.answers,
            "hidden_count": self.hidden_count,
            "ranking": [
                {"answer_id": answer, "score": score}
                for answer, score in self.ranking
            ],
            "elapsed_ms": round(self.elapsed_ms, 2),
        }


class AnswerNetApp:
    """Configured store plus the operations the CLI exposes.

    Usage:
        app = AnswerNetApp(config)
        async with app.store:
            report = await app.score(["w_1", "w_2"], ["a_1", "a_2"])
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        self.config = config or {}
        self.store = self._build_store()

    def _build_store(self) -> StorageBackend:
        store_config = self.config.get("store", {})
        backend = store_config.get("backend", "memory")
        if backend == "sqlite":
            return SQLiteStore(
                store_config.get("sqlite_path", "answernet.db"),
                timeout=store_config.get("timeout", 30.0),
            )
        if backend == "memory":
            return MemoryStore(state_path=store_config.get("state_path") or None)
        raise PreconditionError(f"Unknown store backend '{backend}'")

    @property
    def registry(self) -> HiddenNodeRegistry:
        return HiddenNodeRegistry(
            self.store.hidden_nodes,
            self.store.word_strength,
            self.store.answer_strength,
        )

    async def word_ids(self, values: Sequence[str], by_text: bool) -> List[str]:
        """IDs as given, or ingested from texts when ``by_text`` is set."""
        if not by_text:
            return list(values)
        return [(await self.store.words.add(text)).word_id for text in values]

    async def answer_ids(self, values: Sequence[str], by_text: bool) -> List[str]:
        if not by_text:
            return list(values)
        return [(await self.store.answers.add(text)).answer_id for text in values]

    async def link(self, words: Sequence[str], answers: Sequence[str]) -> HiddenNode:
        return await self.registry.generate_node(words, answers)

    async def score(self, words: Sequence[str], answers: Sequence[str]) -> ScoreReport:
        start = time.time()
        network_config = self.config.get("network", {})
        network = Network(
            words=words,
            answers=answers,
            word_strength=self.store.word_strength,
            answer_strength=self.store.answer_strength,
            hidden_nodes=self.store.hidden_nodes,
            fetch_mode=network_config.get("fetch_mode", "sequential"),
            dedupe_hidden=network_config.get("dedupe_hidden", False),
        )
        await network.setup()
        ranking = network.rank()
        return ScoreReport(
            words=list(words),
            answers=list(answers),
            hidden_count=len(network.hidden),
            ranking=ranking,
            elapsed_ms=(time.time() - start) * 1000.0,
        )

    def relation(self, name: str) -> StrengthRelation:
        if name == "word":
            return self.store.word_strength
        if name == "answer":
            return self.store.answer_strength
        raise PreconditionError(f"Unknown strength relation '{name}'")


# ---------------------------------------------------------------------------
# CLI Entry Point
# ---------------------------------------------------------------------------

def load_config(config_path: str = "config.yaml") -> Dict[str, Any]:
    """Load AnswerNet configuration from YAML with Pydantic validation."""
    return load_and_validate(config_path)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="AnswerNet - associative-memory answer scoring",
    )
    parser.add_argument(
        "--config", "-c",
        default="config.yaml",
        help="Path to config.yaml",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    for name in ("add-word", "add-answer"):
        p = sub.add_parser(name, help=f"Ingest texts ({name.split('-')[1]}s)")
        p.add_argument("texts", nargs="+")

    for name in ("link", "score"):
        p = sub.add_parser(name)
        p.add_argument("--words", nargs="+", required=True)
        p.add_argument("--answers", nargs="+", required=True)
        p.add_argument(
            "--text",
            action="store_true",
            help="Treat --words/--answers as texts and ingest them",
        )
        if name == "score":
            p.add_argument("--json", action="store_true", help="Output raw JSON")

    p = sub.add_parser("get-strength")
    p.add_argument("relation", choices=["word", "answer"])
    p.add_argument("from_id")
    p.add_argument("to_id")

    p = sub.add_parser("set-strength")
    p.add_argument("relation", choices=["word", "answer"])
    p.add_argument("from_id")
    p.add_argument("to_id")
    p.add_argument("value", type=float)

    sub.add_parser("status")
    return parser


async def run_command(app: AnswerNetApp, args: argparse.Namespace) -> None:
    """Open the store, execute one command, close the store."""
    async with app.store:
        if args.command == "add-word":
            for text in args.texts:
                word = await app.store.words.add(text)
                print(f"{word.word_id}\t{word.text}")

        elif args.command == "add-answer":
            for text in args.texts:
                answer = await app.store.answers.add(text)
                print(f"{answer.answer_id}\t{answer.text}")

        elif args.command == "link":
            words = await app.word_ids(args.words, args.text)
            answers = await app.answer_ids(args.answers, args.text)
            node = await app.link(words, answers)
            print(f"{node.node_id}\t{node.creation_key}")

        elif args.command == "score":
            words = await app.word_ids(args.words, args.text)
            answers = await app.answer_ids(args.answers, args.text)
            report = await app.score(words, answers)
            if args.json:
                print(json.dumps(report.to_dict(), indent=2))
            else:
                _rich_print_report(report)

        elif args.command == "get-strength":
            value = await app.relation(args.relation).get(args.from_id, args.to_id)
            print(value)

        elif args.command == "set-strength":
            await app.relation(args.relation).set(args.from_id, args.to_id, args.value)
            print(args.value)

        elif args.command == "status":
            _print_status(await app.store.get_stats())


def main(argv: Optional[Sequence[str]] = None) -> int:
    """CLI entry point.  Returns the process exit code."""
    args = build_parser().parse_args(argv)

    # Config loading logs too, so handlers exist before the file is read
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format=DEFAULT_LOG_FORMAT,
    )

    try:
        config = load_config(args.config)
    except ValidationError:
        return 1

    _apply_logging_config(config.get("logging", {}), args.verbose)

    try:
        app = AnswerNetApp(config)
        asyncio.run(run_command(app, args))
    except AnswerNetError as e:
        logger.error("%s failed: %s", args.command, e)
        return 1
    return 0


def _apply_logging_config(log_config: Dict[str, Any], verbose: bool) -> None:
    """Switch the root logger to the configured level and format."""
    root = logging.getLogger()
    if not verbose:
        root.setLevel(getattr(logging, log_config.get("level", "INFO")))
    log_format = log_config.get("format", DEFAULT_LOG_FORMAT)
    if log_format != DEFAULT_LOG_FORMAT:
        for handler in root.handlers:
            handler.setFormatter(logging.Formatter(log_format))


def _rich_print_report(report: ScoreReport) -> None:
    """Pretty-print a ranking using Rich."""
    from rich.console import Console
    from rich.table import Table

    console = Console()
    table = Table(title=f"AnswerNet ranking ({report.hidden_count} hidden nodes)")
    table.add_column("Rank", style="cyan", justify="right")
    table.add_column("Answer", style="white")
    table.add_column("Score", justify="right")

    for rank, (answer, score) in enumerate(report.ranking, start=1):
        color = "green" if score > 0 else "red" if score < 0 else "white"
        table.add_row(str(rank), answer, f"[{color}]{score:.6f}[/]")

    console.print(table)
    console.print(f"\nTotal time: {report.elapsed_ms:.1f}ms")


def _print_status(stats: Dict[str, Any]) -> None:
    """Print backend record counts."""
    print("=== AnswerNet Status ===")
    print(f"Backend: {stats['backend']}")
    print(f"  Words: {stats['word_count']}")
    print(f"  Answers: {stats['answer_count']}")
    print(f"  Hidden nodes: {stats['hidden_node_count']}")
    print(f"  Word strengths: {stats['word_strength_count']}")
    print(f"  Answer strengths: {stats['answer_strength_count']}")


if __name__ == "__main__":
    sys.exit(main())
