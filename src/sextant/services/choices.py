"""選択式質問の回答値を組み立てるヘルパー。

「その他」選択肢は自由記述を伴う。複数選択では自由記述の要素を1件だけ持ち、
空文字列はテキスト未入力のまま「その他」が選択されている状態を表す。
"""

from sextant.models.question import OTHER_OPTION_ID, MultipleChoiceQuestion, SingleChoiceQuestion

# 「その他」選択直後・テキスト消去後に残すプレースホルダー
OTHER_PLACEHOLDER = ""


def _standard_ids(question: MultipleChoiceQuestion) -> set[str]:
    return {o.id for o in question.options if o.id != OTHER_OPTION_ID}


def custom_entries(question: MultipleChoiceQuestion, value: list[str]) -> list[str]:
    """標準選択肢以外の値（自由記述）を返す。"""
    standard = _standard_ids(question)
    return [v for v in value if v not in standard]


def is_other_selected(question: MultipleChoiceQuestion, value: list[str]) -> bool:
    return bool(custom_entries(question, value))


def toggle_option(question: MultipleChoiceQuestion, value: list[str], option_id: str) -> list[str]:
    """標準選択肢の選択状態を反転する。"""
    if option_id == OTHER_OPTION_ID:
        return toggle_other(question, value)
    if option_id in value:
        return [v for v in value if v != option_id]
    return [*value, option_id]


def toggle_other(question: MultipleChoiceQuestion, value: list[str]) -> list[str]:
    """「その他」の選択状態を反転する。

    選択時はプレースホルダーを追加し、解除時は自由記述を全て取り除く。
    """
    standard = _standard_ids(question)
    if is_other_selected(question, value):
        return [v for v in value if v in standard]
    return [*value, OTHER_PLACEHOLDER]


def set_other_text(question: MultipleChoiceQuestion, value: list[str], text: str) -> list[str]:
    """「その他」の自由記述を差し替える。

    テキストを消去しても選択は解除せず、プレースホルダーに戻す。
    """
    standard = _standard_ids(question)
    kept = [v for v in value if v in standard]
    return [*kept, text if text.strip() else OTHER_PLACEHOLDER]


def set_single_other_text(question: SingleChoiceQuestion, text: str) -> str:
    """単一選択で「その他」の自由記述を回答値に変換する。"""
    if not question.allows_other:
        raise ValueError(f"Question {question.id} has no '{OTHER_OPTION_ID}' option")
    return text if text.strip() else OTHER_OPTION_ID
