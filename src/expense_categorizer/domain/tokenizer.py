import re
from collections.abc import Iterable, Iterator
from dataclasses import dataclass

MIN_TOKEN_LENGTH = 3


@dataclass(frozen=True)
class ScriptRange:
    """An inclusive code-point range whose characters count as token material."""

    name: str
    start: int
    end: int

    def __post_init__(self) -> None:
        if self.start > self.end:
            raise ValueError(f"Script range {self.name} starts after it ends")


DEFAULT_SCRIPT_RANGES: tuple[ScriptRange, ...] = (
    ScriptRange("arabic", 0x0600, 0x06FF),
    ScriptRange("arabic", 0x0750, 0x077F),
    ScriptRange("arabic", 0x08A0, 0x08FF),
    ScriptRange("arabic", 0xFB50, 0xFDFF),
    ScriptRange("arabic", 0xFE70, 0xFEFF),
)


class TokenSequence:
    """Lazy view over the tokens of one text. Every iteration rescans it."""

    def __init__(self, tokenizer: "Tokenizer", text: str):
        self._tokenizer = tokenizer
        self._text = text

    def __iter__(self) -> Iterator[str]:
        return self._tokenizer.iter_tokens(self._text)


class Tokenizer:
    def __init__(self, script_ranges: Iterable[ScriptRange] = DEFAULT_SCRIPT_RANGES):
        self.script_ranges = tuple(script_ranges)
        allowed = "".join(
            f"{re.escape(chr(r.start))}-{re.escape(chr(r.end))}" for r in self.script_ranges
        )
        self._strip = re.compile(f"[^a-z0-9\\s{allowed}]")

    def normalize(self, text: str) -> str:
        return self._strip.sub(" ", (text or "").lower())

    def iter_tokens(self, text: str) -> Iterator[str]:
        for word in self.normalize(text).split():
            if len(word) >= MIN_TOKEN_LENGTH:
                yield word

    def tokens(self, text: str) -> TokenSequence:
        return TokenSequence(self, text)

    def token_set(self, text: str) -> frozenset[str]:
        return frozenset(self.iter_tokens(text))
