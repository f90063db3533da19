# codonbeam/core/candidate.py

from __future__ import annotations

from typing import FrozenSet, List, Optional, Tuple

WINDOW = 6
_EMPTY: FrozenSet[str] = frozenset()

# prefix node: (codon, previous node); shared by every descendant
Prefix = Optional[Tuple[str, "Prefix"]]


class Candidate:
    """
    A partial DNA sequence during search.

    Candidates never change after construction. The codons are held as a
    linked prefix shared with every ancestor, so extending one costs a node,
    not a copy. Only bounded state is stored per candidate: a tail of recent
    nucleotides, the current nucleotide and codon runs, and the 6-nt windows
    completed by the last codon. The set of all windows seen so far is built
    on first use from the parent's set.
    """

    __slots__ = (
        "prefix",
        "length",
        "score",
        "tail",
        "run_base",
        "run_length",
        "max_new_run",
        "codon_run",
        "new_windows",
        "_base",
        "_sixmers",
        "_repeated",
    )

    def __init__(
        self,
        prefix: Prefix = None,
        length: int = 0,
        score: float = 0.0,
        tail: str = "",
        run_base: str = "",
        run_length: int = 0,
        max_new_run: int = 0,
        codon_run: int = 0,
        new_windows: Tuple[str, ...] = (),
        base: Optional["Candidate"] = None,
        sixmers: Optional[FrozenSet[str]] = None,
    ):
        self.prefix = prefix
        self.length = length
        self.score = score
        self.tail = tail
        self.run_base = run_base
        self.run_length = run_length
        self.max_new_run = max_new_run
        self.codon_run = codon_run
        self.new_windows = new_windows
        self._base = base
        self._sixmers = sixmers
        self._repeated: Optional[bool] = None

    @classmethod
    def root(cls) -> "Candidate":
        return cls(sixmers=_EMPTY)

    def __repr__(self):
        return f"Candidate(length={self.length}, score={self.score:.4f}, tail={self.tail[-9:]!r})"

    @property
    def codon(self) -> str:
        return self.prefix[0] if self.prefix is not None else ""

    @property
    def nt_length(self) -> int:
        return self.length * 3

    def extend(self, codon: str, delta: float, tail_length: int, track_windows: bool = True) -> "Candidate":
        run_base, run_length, max_run = self.run_base, self.run_length, 0
        for base in codon:
            if base == run_base:
                run_length += 1
            else:
                run_base, run_length = base, 1
            if run_length > max_run:
                max_run = run_length

        joined = self.tail + codon
        if track_windows:
            first = max(len(joined) - 3, WINDOW - 1)
            new_windows = tuple(joined[e - WINDOW + 1:e + 1] for e in range(first, len(joined)))
        else:
            new_windows = ()

        return Candidate(
            prefix=(codon, self.prefix),
            length=self.length + 1,
            score=self.score + delta,
            tail=joined[-tail_length:],
            run_base=run_base,
            run_length=run_length,
            max_new_run=max_run,
            codon_run=self.codon_run + 1 if codon == self.codon else 1,
            new_windows=new_windows,
            base=self if track_windows else None,
        )

    def repeats_window(self) -> bool:
        """True if a window completed by the last codon already occurs earlier."""
        if self._repeated is None:
            if self._base is not None:
                seen = self._base.sixmers
                new = self.new_windows
            else:
                dna = self.sequence()
                seen = _windows_of(dna[:-3])
                new = tuple(dna[e - WINDOW + 1:e + 1] for e in range(max(len(dna) - 3, WINDOW - 1), len(dna)))
            self._repeated = any(w in seen for w in new) or len(set(new)) != len(new)
        return self._repeated

    @property
    def sixmers(self) -> FrozenSet[str]:
        if self._sixmers is None:
            pending = []
            node = self
            while node is not None and node._sixmers is None:
                pending.append(node)
                node = node._base
            if node is None:
                self._sixmers = _windows_of(self.sequence())
            else:
                windows = set(node._sixmers)
                for n in reversed(pending):
                    windows.update(n.new_windows)
                self._sixmers = frozenset(windows)
            self._base = None
        return self._sixmers

    def codons(self) -> List[str]:
        out = []
        node = self.prefix
        while node is not None:
            out.append(node[0])
            node = node[1]
        out.reverse()
        return out

    def codon_slice(self, start: int, stop: int) -> str:
        """DNA for codon positions [start, stop) without materializing the whole sequence."""
        out = []
        node = self.prefix
        pos = self.length - 1
        while node is not None and pos >= start:
            if pos < stop:
                out.append(node[0])
            node = node[1]
            pos -= 1
        out.reverse()
        return "".join(out)

    def sequence(self) -> str:
        return "".join(self.codons())


def _windows_of(dna: str) -> FrozenSet[str]:
    return frozenset(dna[i:i + WINDOW] for i in range(len(dna) - WINDOW + 1))
