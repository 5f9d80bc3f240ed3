"""回答バリデーションと入力サニタイズのロジック。"""

import re
from collections.abc import Mapping, Sequence

from sextant.models.errors import InvalidDescriptionError
from sextant.models.question import (
    Answer,
    AnswerValue,
    MultipleChoiceQuestion,
    Question,
    RangeQuestion,
    SingleChoiceQuestion,
    TextQuestion,
)

DESCRIPTION_MIN_LENGTH = 20
DESCRIPTION_MAX_LENGTH = 1000
REQUIREMENT_MIN_LENGTH = 10
PROMPT_INPUT_MAX_LENGTH = 5000

# HTML風タグ・JSON区切り文字・制御文字
_UNSAFE_PROMPT_CHARS = re.compile(r"[<>{}\x00-\x1f\x7f]")


def sanitize_prompt_input(text: str) -> str:
    """生成AIへ送るユーザー入力を正規化する。"""
    return _UNSAFE_PROMPT_CHARS.sub("", text)[:PROMPT_INPUT_MAX_LENGTH].strip()


def check_description(text: str) -> str:
    """説明文をサニタイズし、長さ制約を検証する。

    Args:
        text: 利用者が入力した説明文。

    Returns:
        サニタイズ済みの説明文。

    Raises:
        InvalidDescriptionError: サニタイズ後の長さが制約外の場合。
    """
    sanitized = sanitize_prompt_input(text)
    if not DESCRIPTION_MIN_LENGTH <= len(sanitized) <= DESCRIPTION_MAX_LENGTH:
        raise InvalidDescriptionError(len(sanitized), DESCRIPTION_MIN_LENGTH, DESCRIPTION_MAX_LENGTH)
    return sanitized


def is_blank(value: AnswerValue | None) -> bool:
    """回答が未入力とみなせるかを判定する。"""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, list):
        return all(isinstance(v, str) and not v.strip() for v in value)
    return False


def _check_single_choice(question: SingleChoiceQuestion, value: AnswerValue) -> str | None:
    if not isinstance(value, str):
        return f"'{question.label}' expects a single option"
    if not question.options or question.allows_other:
        return None
    if value not in {o.id for o in question.options}:
        return f"'{question.label}' has an unknown option: {value}"
    return None


def _check_multiple_choice(question: MultipleChoiceQuestion, value: AnswerValue) -> str | None:
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        return f"'{question.label}' expects a list of options"
    if not question.options:
        return None
    option_ids = {o.id for o in question.options}
    unknown = [v for v in value if v not in option_ids]
    # 「その他」選択時は自由記述を1件だけ許容する
    if question.allows_other and len(unknown) <= 1:
        return None
    if unknown:
        return f"'{question.label}' has unknown options: {', '.join(unknown)}"
    return None


def _check_text(question: TextQuestion, value: AnswerValue) -> str | None:
    if not isinstance(value, str):
        return f"'{question.label}' expects text"
    if question.max_length is not None and len(value) > question.max_length:
        return f"'{question.label}' exceeds {question.max_length} characters"
    return None


def _check_range(question: RangeQuestion, value: AnswerValue) -> str | None:
    if isinstance(value, bool) or not isinstance(value, int | float):
        return f"'{question.label}' expects a number"
    if not question.min <= value <= question.max:
        return f"'{question.label}' must be between {question.min:g} and {question.max:g}"
    return None


def check_answer(question: Question, value: AnswerValue) -> str | None:
    """回答値を質問種別ごとに構造検証する。

    Returns:
        違反メッセージ。問題がない場合はNone。
    """
    match question:
        case SingleChoiceQuestion():
            return _check_single_choice(question, value)
        case MultipleChoiceQuestion():
            return _check_multiple_choice(question, value)
        case TextQuestion():
            return _check_text(question, value)
        case RangeQuestion():
            return _check_range(question, value)
    raise TypeError(f"Unsupported question kind: {type(question).__name__}")


def is_valid_answer(question: Question, value: AnswerValue | None) -> bool:
    """回答が入力済みかつ構造的に妥当かを判定する。"""
    if value is None or is_blank(value):
        return False
    return check_answer(question, value) is None


def validate(answers: Mapping[str, Answer], questions: Sequence[Question]) -> list[str]:
    """回答全体を検証し、全ての違反を集約して返す。

    必須質問の未回答は質問ごとに1件、構造違反は回答ごとに1件のメッセージを返す。
    入力は変更しない。

    Args:
        answers: 質問IDをキーとする回答。
        questions: 現在の質問セット。

    Returns:
        違反メッセージのリスト。全ての必須質問が妥当に回答されていれば空リスト。
    """
    errors: list[str] = []
    for question in questions:
        answer = answers.get(question.id)
        if answer is None or is_blank(answer.value):
            if question.required:
                errors.append(f"'{question.label}' is required")
            continue
        message = check_answer(question, answer.value)
        if message is not None:
            errors.append(message)
    return errors
