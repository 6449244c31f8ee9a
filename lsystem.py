"""
A Lindenmayer system is a parallel rewriting system and a type of formal grammar.
It consists of an alphabet of symbols that can be used to make sequences, a collection of production rules that
expand each symbol into some larger sequence of symbols, and a seed (the axiom) that is the generation-0 state.

The recursive nature of L-system rules leads to self similarity and thereby fractal like forms are easy to describe
with an L-system. The pattern becomes more complex by increasing the number of generations.

Example:

    koch = LSystem({"F": "F+F--F+F"}, "F")
    koch.evaluate(1)   # F+F--F+F
    koch.evaluate(1)   # compounds: evaluates generation 2 from generation 1

Symbols are stored as integer code points in numpy uint32 arrays, so identity checks are exact integer compares and
a generation with hundreds of thousands of symbols is rewritten with a handful of vectorised gathers.

Rewriting rules:
1. Every symbol is rewritten in parallel, once per generation
2. A symbol with a rule is replaced by its replacement (which may be empty, deleting the symbol)
3. A symbol without a rule passes through unchanged
4. The full sequence of a generation is built before the next generation starts

Lifecycle:
- The seed never changes once the system is built
- `evaluate` rewrites from the current state, so repeated calls compound
- Call `reset()` before each full draw to start again from the seed
"""

from collections import Counter, OrderedDict
from typing import Iterable, Mapping, Union

import numpy as np
from numpy.typing import NDArray

from utils import get_logger

logger = get_logger(__name__)

Symbol = int
SymbolSequence = NDArray[np.uint32]
SymbolLike = Union[int, str]
SequenceLike = Union[str, np.ndarray, Iterable[SymbolLike]]

MAX_SYMBOL = 0xFFFFFFFF
MAX_CODE_POINT = 0x10FFFF

_EMPTY = np.zeros(0, dtype=np.uint32)


class LSystemError(ValueError):
    pass


def _require(cond: bool, msg: str) -> None:
    if not cond:
        raise LSystemError(msg)


def as_symbol(value: SymbolLike) -> Symbol:
    """Convert a single-character string or an int in 0..MAX_SYMBOL to a symbol."""
    if isinstance(value, str):
        _require(len(value) == 1, f"a symbol must be a single character, got {value!r}")
        return ord(value)
    _require(
        isinstance(value, (int, np.integer)) and not isinstance(value, bool) and 0 <= value <= MAX_SYMBOL,
        f"a symbol must be a single character or an int in 0..{MAX_SYMBOL}, got {value!r}",
    )
    return int(value)


def as_symbols(value: SequenceLike) -> SymbolSequence:
    """Return a fresh uint32 symbol array for a string, an array or an iterable of symbols."""
    if isinstance(value, str):
        if not value:
            return _EMPTY.copy()
        return np.frombuffer(value.encode("utf-32-le", "surrogatepass"), dtype="<u4").astype(np.uint32)
    if isinstance(value, np.ndarray):
        _require(value.ndim == 1, "a symbol sequence must be one-dimensional")
        if not value.size:
            return _EMPTY.copy()
        _require(value.dtype.kind in "iu", f"symbols must be integers, got dtype {value.dtype}")
        _require(
            int(value.min()) >= 0 and int(value.max()) <= MAX_SYMBOL,
            f"symbols must be in 0..{MAX_SYMBOL}",
        )
        return value.astype(np.uint32, copy=True)
    return np.array([as_symbol(v) for v in value], dtype=np.uint32)


def symbols_to_string(sequence: SymbolSequence) -> str:
    codes = np.asarray(sequence, dtype=np.uint32).tolist()
    _require(all(c <= MAX_CODE_POINT for c in codes), "symbols above U+10FFFF have no string form")
    return "".join(map(chr, codes))


def _display(sequence: SymbolSequence):
    """String form where every symbol is a code point, else the list of ints."""
    codes = sequence.tolist()
    if all(c <= MAX_CODE_POINT for c in codes):
        return "".join(map(chr, codes))
    return codes


class RuleTable:
    """Ordered mapping from one symbol to its replacement sequence.

    Redefining a symbol replaces its rule (last write wins). Insertion order is
    kept for display only; rewriting depends on lookup alone.
    """

    def __init__(self, rules: Union[Mapping, Iterable, None] = None):
        self._rules: "OrderedDict[Symbol, SymbolSequence]" = OrderedDict()
        self._compiled = None
        if rules is None:
            return
        pairs = rules.items() if isinstance(rules, (Mapping, RuleTable)) else rules
        for key, replacement in pairs:
            self[key] = replacement

    def __setitem__(self, key: SymbolLike, replacement: SequenceLike) -> None:
        symbol = as_symbol(key)
        value = as_symbols(replacement)
        value.flags.writeable = False
        self._rules[symbol] = value
        self._compiled = None

    def __getitem__(self, key: SymbolLike) -> SymbolSequence:
        return self._rules[as_symbol(key)]

    def __delitem__(self, key: SymbolLike) -> None:
        del self._rules[as_symbol(key)]
        self._compiled = None

    def __contains__(self, key) -> bool:
        try:
            return as_symbol(key) in self._rules
        except LSystemError:
            return False

    def __len__(self) -> int:
        return len(self._rules)

    def __iter__(self):
        return iter(self._rules)

    def items(self):
        return self._rules.items()

    def as_dict(self) -> dict:
        return {
            (chr(k) if k <= MAX_CODE_POINT else k): _display(v) for k, v in self._rules.items()
        }

    def __repr__(self) -> str:
        return f"RuleTable({self.as_dict()!r})"

    def _tables(self):
        """Lookup arrays over the sorted rule keys: (keys, lengths, starts, flat)."""
        if self._compiled is not None:
            return self._compiled

        keys = np.array(sorted(self._rules), dtype=np.uint32)
        replacements = [self._rules[int(k)] for k in keys]
        lengths = np.array([len(r) for r in replacements], dtype=np.int64)
        starts = np.cumsum(lengths) - lengths
        flat = np.concatenate(replacements).astype(np.uint32) if replacements else _EMPTY
        self._compiled = (keys, lengths, starts, flat)
        return self._compiled

    def apply(self, sequence: SymbolSequence) -> SymbolSequence:
        """Rewrite every symbol of `sequence` once and return the next generation."""
        if len(sequence) == 0:
            return _EMPTY.copy()
        if not self._rules:
            return sequence.copy()

        keys, lengths, starts, flat = self._tables()

        # Work on the distinct symbols only, so memory follows the alphabet size
        distinct, inverse = np.unique(sequence, return_inverse=True)
        inverse = inverse.reshape(-1)
        slot = np.minimum(np.searchsorted(keys, distinct), len(keys) - 1)
        has_rule = keys[slot] == distinct

        counts = np.where(has_rule, lengths[slot], 1)[inverse]
        total = int(counts.sum())
        if total == 0:
            return _EMPTY.copy()

        # Index of the source symbol that produces each output slot
        owner = np.repeat(np.arange(len(sequence)), counts)
        first = np.cumsum(counts) - counts
        within = np.arange(total) - first[owner]

        kind = inverse[owner]
        out = sequence[owner].copy()
        mask = has_rule[kind]
        out[mask] = flat[starts[slot[kind[mask]]] + within[mask]]
        return out


def _check_generations(generations) -> None:
    _require(
        isinstance(generations, (int, np.integer)) and not isinstance(generations, bool),
        f"generations must be an integer, got {generations!r}",
    )
    _require(generations >= 0, f"generations must be >= 0, got {generations}")


def expand(sequence: SequenceLike, rules: Union[RuleTable, Mapping, Iterable], generations: int) -> SymbolSequence:
    """Apply `rules` to `sequence` for `generations` generations.

    Zero generations returns a copy of the input. There is no cycle detection:
    the length can grow exponentially and bounding the generation count is the
    caller's job.
    """
    _check_generations(generations)
    rules = rules if isinstance(rules, RuleTable) else RuleTable(rules)
    state = as_symbols(sequence)

    for i in range(generations):
        state = rules.apply(state)
        logger.debug("generation %d: %d symbols", i + 1, len(state))
    return state


def expanded_length(sequence: SequenceLike, rules: Union[RuleTable, Mapping, Iterable], generations: int) -> int:
    """Length `expand` would produce, computed from symbol counts without building the sequence."""
    _check_generations(generations)
    rules = rules if isinstance(rules, RuleTable) else RuleTable(rules)
    produces = {symbol: Counter(replacement.tolist()) for symbol, replacement in rules.items()}

    counts = Counter(as_symbols(sequence).tolist())
    for _ in range(generations):
        next_counts = Counter()
        for symbol, n in counts.items():
            if symbol in produces:
                for produced, m in produces[symbol].items():
                    next_counts[produced] += n * m
            else:
                next_counts[symbol] += n
        counts = next_counts
    return sum(counts.values())


def generate_lsystem_state(state: str, n: int, rules) -> str:
    """String in, string out version of `expand`."""
    return symbols_to_string(expand(state, rules, n))


class LSystem:
    """Rules, an immutable seed, and the current (working) state."""

    def __init__(self, rules, seed: SequenceLike):
        self.rules = rules if isinstance(rules, RuleTable) else RuleTable(rules)
        self.seed = as_symbols(seed)
        self.seed.flags.writeable = False
        self.state = self.seed.copy()

    def reset(self) -> "LSystem":
        """Restore the working state to a fresh copy of the seed."""
        self.state = self.seed.copy()
        return self

    def evaluate(self, iterations: int = 1) -> SymbolSequence:
        """Rewrite the current state (not the seed) `iterations` times.

        Calling this repeatedly without `reset()` compounds the expansion.
        """
        self.state = expand(self.state, self.rules, iterations)
        return self.state

    @property
    def state_string(self) -> str:
        return symbols_to_string(self.state)

    def __len__(self) -> int:
        return len(self.state)

    def __repr__(self) -> str:
        return f"LSystem({self.rules.as_dict()!r}, {_display(self.seed)!r})"


__all__ = [
    "LSystem",
    "LSystemError",
    "MAX_SYMBOL",
    "RuleTable",
    "Symbol",
    "SymbolSequence",
    "as_symbol",
    "as_symbols",
    "expand",
    "expanded_length",
    "generate_lsystem_state",
    "symbols_to_string",
]
