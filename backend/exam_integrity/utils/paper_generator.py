"""
Per-attempt exam paper generation.

A paper is a seeded, reproducible materialization of a question bank: which
questions are asked, in what order, and in what option order. The same seed
and bank always give the same paper, so a paper can be audited later from
``seed`` alone. The answer key travels only inside the server-side copy.
"""
import hashlib
import json
import logging
import secrets
from typing import Any, Iterable, List, Sequence, TypeVar

from ..schemas.paper import (
    BankQuestion,
    ClientPaper,
    ClientQuestion,
    GeneratedPaper,
    PaperQuestion,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

_MASK32 = 0xFFFFFFFF


def _imul(a: int, b: int) -> int:
    return (a * b) & _MASK32


class Mulberry32:
    """Small 32-bit generator with good spread over [0, 1).

    One instance belongs to one generation call and is never shared.
    """

    def __init__(self, seed: int):
        self._state = seed & _MASK32

    def random(self) -> float:
        self._state = (self._state + 0x6D2B79F5) & _MASK32
        a = self._state
        t = _imul(a ^ (a >> 15), 1 | a)
        t = ((t + _imul(t ^ (t >> 7), 61 | t)) & _MASK32) ^ t
        return ((t ^ (t >> 14)) & _MASK32) / 4294967296


def draw_seed() -> int:
    """Fresh 31-bit seed for a new paper."""
    return secrets.randbelow(2 ** 31)


def seeded_shuffle(items: Sequence[T], rng: Mulberry32) -> List[T]:
    """Fisher-Yates shuffle that returns a new list."""
    out = list(items)
    for i in range(len(out) - 1, 0, -1):
        j = int(rng.random() * (i + 1))
        out[i], out[j] = out[j], out[i]
    return out


def normalize_bank(raw_questions: Iterable[Any]) -> List[BankQuestion]:
    """Coerce loosely-authored bank entries into ``BankQuestion`` objects.

    Missing ids fall back to the 1-based position, ``question`` is accepted
    for ``text`` and ``correct_index`` for ``correctIndex``.
    """
    bank = []
    for idx, q in enumerate(raw_questions or []):
        if isinstance(q, BankQuestion):
            bank.append(q)
            continue
        if not isinstance(q, dict):
            q = {}
        options = q.get("options")
        correct = q.get("correctIndex", q.get("correct_index"))
        bank.append(BankQuestion(
            id=q.get("id") if q.get("id") is not None else idx + 1,
            text=q.get("text") or q.get("question") or "",
            options=[str(o) for o in options] if isinstance(options, list) else [],
            correct_index=correct if isinstance(correct, int) and not isinstance(correct, bool) else 0,
        ))
    return bank


def _shuffle_options(question: BankQuestion, rng: Mulberry32) -> PaperQuestion:
    order = seeded_shuffle(range(len(question.options)), rng)
    options = [question.options[i] for i in order]
    try:
        correct = order.index(question.correct_index)
    except ValueError:
        logger.warning(
            f"Question {question.id} has correct index {question.correct_index} "
            f"outside its {len(question.options)} options; clamping to 0"
        )
        correct = 0
    return PaperQuestion(id=question.id, text=question.text, options=options, correct_index=correct)


def generate_paper(
    bank: Sequence[BankQuestion],
    seed: int,
    duration_minutes: int,
    questions_per_attempt: int = 0,
) -> GeneratedPaper:
    rng = Mulberry32(seed)

    picked = list(bank)
    if 0 < questions_per_attempt < len(picked):
        picked = seeded_shuffle(picked, rng)[:questions_per_attempt]

    ordered = seeded_shuffle(picked, rng)
    questions = [_shuffle_options(q, rng) for q in ordered]

    return GeneratedPaper(seed=seed, duration_minutes=duration_minutes, questions=questions)


def canonical_paper_json(paper: GeneratedPaper) -> str:
    return json.dumps(paper.model_dump(mode="json"), sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def compute_paper_hash(paper: GeneratedPaper) -> str:
    return hashlib.sha256(canonical_paper_json(paper).encode("utf-8")).hexdigest()


def to_client_paper(paper: GeneratedPaper) -> ClientPaper:
    """Strip the answer key before a paper leaves the server."""
    questions = [ClientQuestion(id=q.id, text=q.text, options=q.options) for q in paper.questions]
    return ClientPaper(
        duration_minutes=paper.duration_minutes,
        question_count=len(questions),
        questions=questions,
    )


def bank_as_paper(bank: Sequence[BankQuestion], duration_minutes: int) -> GeneratedPaper:
    """Unshuffled paper in bank order, used to grade non-proctored submissions."""
    questions = []
    for q in bank:
        correct = q.correct_index if 0 <= q.correct_index < max(1, len(q.options)) else 0
        questions.append(PaperQuestion(id=q.id, text=q.text, options=q.options, correct_index=correct))
    return GeneratedPaper(seed=0, duration_minutes=duration_minutes, questions=questions)
