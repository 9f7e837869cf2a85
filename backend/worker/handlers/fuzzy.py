"""
Fuzzy Auto-Responder - replies with the answer of the closest known question.

Every rule question is scored against the incoming text with the
SimilarityMatcher. The first rule with the highest score wins; its answer
is sent back into the conversation the message came from when the score
reaches the threshold (inclusive).
"""

import logging
from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Union

from pydantic import BaseModel, TypeAdapter, ValidationError as PydanticValidationError

from errors import ErrorCode, ValidationError
from ..messenger import Messenger
from ..models import CandidateMessage, ResponseRule
from ..similarity import SimilarityMatcher
from .base import ResponseHandler

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD = 70


class ResponseRuleModel(BaseModel):
    """One entry of the responses document."""

    question: str
    answer: str


_RULES_SCHEMA = TypeAdapter(List[ResponseRuleModel])


def load_response_rules(path: Union[str, Path]) -> Tuple[ResponseRule, ...]:
    """Load ``[{"question": ..., "answer": ...}]`` rules from JSON.

    A missing file yields no rules.

    Raises:
        ValidationError: The document does not match the expected shape
    """
    file_path = Path(path)
    if not file_path.exists():
        logger.warning(f"Responses file not found: {file_path} (auto-responder has no rules)")
        return ()

    try:
        models = _RULES_SCHEMA.validate_json(file_path.read_bytes())
    except PydanticValidationError as e:
        raise ValidationError(
            "Invalid responses file",
            details=str(e),
            parameter="responses_file_path",
            expected='[{"question": str, "answer": str}]',
            received=str(file_path),
            code=ErrorCode.VALIDATION_INVALID_FORMAT,
        ) from e

    rules = tuple(ResponseRule(question=m.question, answer=m.answer) for m in models)
    logger.info(f"Loaded {len(rules)} response rules from {file_path}")
    return rules


class FuzzyAutoResponder(ResponseHandler):
    """Answers messages that closely match a configured question."""

    name = "fuzzy_auto_responder"

    def __init__(
        self,
        messenger: Messenger,
        rules: Sequence[ResponseRule],
        matcher: Optional[SimilarityMatcher] = None,
        threshold: float = DEFAULT_THRESHOLD,
    ):
        self.messenger = messenger
        self.rules = tuple(rules)
        self.matcher = matcher or SimilarityMatcher()
        self.threshold = threshold

    def best_match(self, text: str) -> Tuple[Optional[ResponseRule], float]:
        """Highest-scoring rule for ``text`` (first one on ties) and its score."""
        best_rule: Optional[ResponseRule] = None
        best_score = -1.0
        for rule in self.rules:
            score = self.matcher.similarity(text, rule.question)
            logger.debug(f'Similarity between "{text}" and "{rule.question}": {score:.1f}%')
            if score > best_score:
                best_rule, best_score = rule, score
        return best_rule, best_score

    async def handle(self, message: CandidateMessage) -> None:
        rule, score = self.best_match(message.text)
        if rule is None or score < self.threshold:
            logger.info(f"No suitable response found for: {message.text}")
            return

        logger.info(f"Matched '{rule.question}' ({score:.0f}%) for {message.data_id}")
        await self.messenger.reply(rule.answer, chat_locator=message.chat_locator)
