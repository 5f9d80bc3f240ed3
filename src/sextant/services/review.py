"""生成プリセットのレビュー・編集ロジック。"""

from pydantic import BaseModel, ConfigDict

from sextant.models.artifact import HOURS_PER_DAY, GeneratedPreset, SuggestedActivity
from sextant.models.errors import ReviewEditError

NAME_MIN_LENGTH = 3
DESCRIPTION_MIN_LENGTH = 10
MIN_ACTIVITIES_TO_SAVE = 3


def estimated_days(activities: list[SuggestedActivity]) -> float:
    """アクティビティの合計見積もり日数を返す。"""
    return sum(a.base_hours for a in activities) / HOURS_PER_DAY


def group_by_priority(activities: list[SuggestedActivity]) -> dict[str, list[SuggestedActivity]]:
    """表示用に優先度ごとにアクティビティをまとめる。"""
    grouped: dict[str, list[SuggestedActivity]] = {"core": [], "recommended": [], "optional": []}
    for activity in activities:
        grouped[activity.priority].append(activity)
    return grouped


class ReviewDraft(BaseModel):
    """レビュー中のプリセット。

    ``original`` は生成直後の値で、差分表示のために保持する。
    ``candidates`` は生成された候補と手動追加したアクティビティで、再追加元になる。
    編集は常に新しい ReviewDraft を返し、既存の値は変更しない。
    """

    model_config = ConfigDict(frozen=True)

    original: GeneratedPreset
    current: GeneratedPreset
    candidates: list[SuggestedActivity]

    @classmethod
    def start(cls, preset: GeneratedPreset) -> "ReviewDraft":
        return cls(original=preset, current=preset, candidates=list(preset.activities))

    def rename(self, name: str) -> "ReviewDraft":
        """プリセット名を変更する。

        Raises:
            ReviewEditError: 前後の空白を除いた長さが3文字未満の場合。
        """
        name = name.strip()
        if len(name) < NAME_MIN_LENGTH:
            raise ReviewEditError(f"Name must be at least {NAME_MIN_LENGTH} characters")
        return self._replace(self.current.model_copy(update={"name": name}))

    def redescribe(self, description: str) -> "ReviewDraft":
        """プリセットの説明を変更する。

        Raises:
            ReviewEditError: 前後の空白を除いた長さが10文字未満の場合。
        """
        description = description.strip()
        if len(description) < DESCRIPTION_MIN_LENGTH:
            raise ReviewEditError(f"Description must be at least {DESCRIPTION_MIN_LENGTH} characters")
        return self._replace(self.current.model_copy(update={"description": description}))

    def toggle_activity(self, code: str) -> "ReviewDraft":
        """アクティビティの採用・除外を切り替える。

        除外済みのアクティビティは候補から同一の値を元の位置に戻すため、
        除外して再追加すると元の状態に一致する。

        Raises:
            ReviewEditError: 候補に存在しないコードの場合。
        """
        included = {a.code for a in self.current.activities}
        if code in included:
            included.discard(code)
        elif any(a.code == code for a in self.candidates):
            included.add(code)
        else:
            raise ReviewEditError(f"Unknown activity code: {code}")
        return self._include(included)

    def add_activity(self, activity: SuggestedActivity) -> "ReviewDraft":
        """候補にないアクティビティを追加して採用する。

        既に候補にあるコードの場合は、その候補を採用する。

        Raises:
            ReviewEditError: 既に採用済みのコードの場合。
        """
        included = {a.code for a in self.current.activities}
        if activity.code in included:
            raise ReviewEditError(f"Activity already included: {activity.code}")
        draft = self
        if not any(a.code == activity.code for a in self.candidates):
            draft = self.model_copy(update={"candidates": [*self.candidates, activity]})
        return draft._include(included | {activity.code})

    def _include(self, codes: set[str]) -> "ReviewDraft":
        activities = [a for a in self.candidates if a.code in codes]
        return self._replace(self.current.model_copy(update={"activities": activities}))

    def _replace(self, preset: GeneratedPreset) -> "ReviewDraft":
        return self.model_copy(update={"current": preset})

    @property
    def total_days(self) -> float:
        return estimated_days(self.current.activities)

    @property
    def grouped(self) -> dict[str, list[SuggestedActivity]]:
        return group_by_priority(self.current.activities)

    @property
    def excluded(self) -> list[SuggestedActivity]:
        """除外中で再追加できるアクティビティ。"""
        included = {a.code for a in self.current.activities}
        return [a for a in self.candidates if a.code not in included]

    @property
    def can_save(self) -> bool:
        return len(self.current.activities) >= MIN_ACTIVITIES_TO_SAVE

    @property
    def is_modified(self) -> bool:
        return self.current != self.original
