"""
Seeded e-draw

The permutation is a Fisher-Yates shuffle of the canonical input (verified
application ids sorted ascending) driven by a SHA-256 counter-mode stream over
``seed`` and ``nonce``. Index selection uses rejection sampling, so every
permutation is equally likely. Anyone holding the persisted seed, nonce and
input ids can recompute the result offline with :func:`run_draw`.
"""
import hashlib
import json
import secrets
from dataclasses import dataclass
from typing import Iterable, List, Tuple

_WORD_BYTES = 8
_WORD_SPACE = 1 << (8 * _WORD_BYTES)


def new_seed() -> str:
    """32 random bytes from the OS CSPRNG, hex encoded"""
    return secrets.token_hex(32)


def new_nonce() -> str:
    return secrets.token_hex(8)


def canonical_input(application_ids: Iterable[int]) -> List[int]:
    ids = sorted(int(i) for i in application_ids)
    if len(set(ids)) != len(ids):
        raise ValueError("draw input contains duplicate application ids")
    return ids


def input_digest(ids: List[int]) -> str:
    return hashlib.sha256(",".join(str(i) for i in ids).encode("ascii")).hexdigest()


class DrawStream:
    """Deterministic byte stream: SHA-256(seed || nonce || counter) blocks"""

    def __init__(self, seed: str, nonce: str):
        self._key = bytes.fromhex(seed) + nonce.encode("ascii")
        self._counter = 0
        self._buffer = b""

    def _refill(self) -> None:
        block = hashlib.sha256(self._key + self._counter.to_bytes(8, "big")).digest()
        self._counter += 1
        self._buffer += block

    def next_word(self) -> int:
        while len(self._buffer) < _WORD_BYTES:
            self._refill()
        word, self._buffer = self._buffer[:_WORD_BYTES], self._buffer[_WORD_BYTES:]
        return int.from_bytes(word, "big")

    def below(self, n: int) -> int:
        """Uniform integer in [0, n)"""
        if n <= 0:
            raise ValueError("n must be positive")
        limit = _WORD_SPACE - (_WORD_SPACE % n)
        while True:
            value = self.next_word()
            if value < limit:
                return value % n


def shuffle(ids: List[int], seed: str, nonce: str) -> List[int]:
    items = list(ids)
    stream = DrawStream(seed, nonce)
    for i in range(len(items) - 1, 0, -1):
        j = stream.below(i + 1)
        items[i], items[j] = items[j], items[i]
    return items


def audit_hash(seed: str, nonce: str, digest: str, permutation: List[int], selected_count: int) -> str:
    payload = json.dumps(
        {
            "seed": seed,
            "nonce": nonce,
            "input_digest": digest,
            "permutation": permutation,
            "selected_count": selected_count,
        },
        sort_keys=True,
        separators=(",", ":"),
    )
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class DrawResult:
    seed: str
    nonce: str
    application_ids: List[int]
    input_digest: str
    permutation: List[int]
    selected_count: int
    audit_hash: str

    @property
    def selected(self) -> List[Tuple[int, int]]:
        """(application_id, draw_seq) for the winners, draw_seq 1-indexed"""
        return [(app_id, pos) for pos, app_id in enumerate(self.permutation[: self.selected_count], start=1)]


def run_draw(seed: str, nonce: str, application_ids: Iterable[int], selected_count: int) -> DrawResult:
    ids = canonical_input(application_ids)
    if isinstance(selected_count, bool) or not 0 < selected_count <= len(ids):
        raise ValueError(f"selected_count must be within 1..{len(ids)}")
    digest = input_digest(ids)
    permutation = shuffle(ids, seed, nonce)
    return DrawResult(
        seed=seed,
        nonce=nonce,
        application_ids=ids,
        input_digest=digest,
        permutation=permutation,
        selected_count=selected_count,
        audit_hash=audit_hash(seed, nonce, digest, permutation, selected_count),
    )
