"""Interactive confirmation of the buckets to empty."""

from __future__ import annotations

import abc
import logging
import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass

logger = logging.getLogger(__name__)

YES_NO_PATTERN = re.compile(r"^(yes|no)$")


@dataclass(frozen=True)
class Question:
    """A single yes/no question asked to the operator."""

    name: str
    description: str
    default: str = "yes"
    pattern: re.Pattern[str] = YES_NO_PATTERN
    message: str = "Must respond yes or no"


Ask = Callable[[list[Question]], Mapping[str, object]]


def console_ask(
    questions: list[Question], input_func: Callable[[str], str] = input
) -> dict[str, str]:
    """
    Ask every question on the console and collect the answers.

    An empty answer takes the question's default. Answers that do not
    match the question's pattern are rejected and the question is asked
    again.

    Args:
        questions: Questions to ask, in order.
        input_func: Function reading one line of operator input.

    Returns:
        Mapping of question name to answer.
    """
    answers: dict[str, str] = {}
    for question in questions:
        while True:
            answer = input_func(f"{question.description} ({question.default}) ").strip()
            if not answer:
                answer = question.default
            if question.pattern.match(answer):
                answers[question.name] = answer
                break
            logger.warning(question.message)
    return answers


class BucketConfirmer(abc.ABC):
    """Decides which buckets the operator wants emptied."""

    @abc.abstractmethod
    def confirm(self, buckets: list[str]) -> set[str]:
        """Return the names of the confirmed buckets."""


class PromptConfirmer(BucketConfirmer):
    """Asks the operator about every bucket in one batch of questions."""

    def __init__(self, ask: Ask = console_ask) -> None:
        self.ask = ask

    def confirm(self, buckets: list[str]) -> set[str]:
        """
        Ask about each bucket and keep the ones answered with ``yes``.

        Args:
            buckets: Candidate bucket names.

        Returns:
            Names of the confirmed buckets.
        """
        questions = [
            Question(
                name=bucket,
                description=f"Empty bucket {bucket}. Are you sure? [yes/no]:",
            )
            for bucket in buckets
        ]
        try:
            answers = self.ask(questions)
        except EOFError:
            logger.warning("No input available to confirm buckets")
            answers = {}

        confirmed: set[str] = set()
        for bucket, answer in answers.items():
            if str(answer) == "yes":
                confirmed.add(bucket)
            else:
                logger.info(f"{bucket}: remove skipped")
        for bucket in buckets:
            if bucket not in answers:
                logger.info(f"{bucket}: remove skipped")
        return confirmed


def confirm_buckets(
    buckets: list[str], enabled: bool, confirmer: BucketConfirmer
) -> list[str]:
    """
    Filter buckets down to the ones the operator confirmed.

    Args:
        buckets: Candidate bucket names.
        enabled: Whether to ask at all; if not, ``buckets`` is returned as is.
        confirmer: Source of the operator's answers.

    Returns:
        The confirmed buckets, in candidate order.
    """
    if not enabled or not buckets:
        return buckets
    confirmed = confirmer.confirm(buckets)
    return [bucket for bucket in buckets if bucket in confirmed]
