"""Reply post-processor: deterministic formatting of generated replies.

Applying process() to its own output returns the output unchanged.
"""

import logging
import re

from replyloop.lib.config import PostProcessingConfig

logger = logging.getLogger(__name__)

_TERMINATORS = "。！？"
_CLOSERS = "」』）】〉》\"'”’)]"

# Two or more blank lines (whitespace-only lines count as blank)
_BLANK_RUN = re.compile(r"\n[ \t]*(?:\n[ \t]*){2,}")

# A terminator followed by optional same-line space and at most one newline,
# then real text that is not a heading, bullet or ordered-list marker.
_SENTENCE_BREAK = re.compile(
    rf"([{_TERMINATORS}])[ \t]*\n?[ \t]*"
    rf"(?=[^\s{_TERMINATORS}{re.escape(_CLOSERS)}])"
    r"(?!#|[-*+•·](?:[ \t\n]|$)|\d+(?:[.)）](?:[ \t\n]|$)|、))"
)

_ORDERED_MARKER = re.compile(r"^([ \t]*)(\d+)(?:[.)）][ \t]+|、[ \t]*)", re.MULTILINE)
_BULLET_MARKER = re.compile(r"^([ \t]*)[-*+•·][ \t]+", re.MULTILINE)
_TRAILING_SPACE = re.compile(r"[ \t]+$", re.MULTILINE)

_NON_WORD = re.compile(r"\W")


class ReplyPostProcessor:
    """Normalizes generated replies for customer presentation.

    Steps, in order (each inspects the output of the previous one):
    whitespace collapse, sentence breaks after CJK terminators, list marker
    normalization, default closing, relevance transition.
    """

    def __init__(self, config: PostProcessingConfig | None = None):
        self.config = config or PostProcessingConfig()

    def process(self, reply: str, query: str = "") -> str:
        """Apply every formatting step.

        Args:
            reply: Raw generated text
            query: The customer query the reply answers

        Returns:
            Formatted reply
        """
        text = self._normalize_whitespace(reply)
        text = self._break_sentences(text)
        text = self._normalize_lists(text)
        text = self._ensure_closing(text)
        text = self._ensure_relevance(text, query)
        return text

    def _normalize_whitespace(self, text: str) -> str:
        text = text.replace("\r\n", "\n").replace("\r", "\n")
        return _BLANK_RUN.sub("\n\n", text).strip()

    def _break_sentences(self, text: str) -> str:
        return _SENTENCE_BREAK.sub(r"\1\n\n", text)

    def _normalize_lists(self, text: str) -> str:
        text = _ORDERED_MARKER.sub(r"\1\2. ", text)
        text = _BULLET_MARKER.sub(r"\1• ", text)
        # A marker with nothing after it must not leave trailing space
        return _TRAILING_SPACE.sub("", text)

    def _ensure_closing(self, text: str) -> str:
        lowered = text.lower()
        if any(phrase.lower() in lowered for phrase in self.config.closing_phrases):
            return text
        if not text:
            return self.config.default_closing
        return f"{text}\n\n{self.config.default_closing}"

    def _ensure_relevance(self, text: str, query: str) -> str:
        tokens = query_tokens(query)
        if not tokens:
            return text

        lowered = text.lower()
        if any(token.lower() in lowered for token in tokens):
            return text

        logger.debug(f"Reply does not mention query terms {tokens}, adding transition")
        return self.config.transition_template.format(topic=" ".join(tokens)) + text


def query_tokens(query: str) -> list[str]:
    """Whitespace-separated query words with punctuation removed, longer than one character."""
    tokens = []
    for raw in query.split():
        token = _NON_WORD.sub("", raw)
        if len(token) > 1:
            tokens.append(token)
    return tokens
