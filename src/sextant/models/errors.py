"""Sextantのカスタム例外クラス。"""


class SextantError(Exception):
    """Sextantの基底例外クラス。"""


class SessionNotFoundError(SextantError):
    """ウィザードセッションが見つからない場合の例外。"""

    def __init__(self, wizard_id: str) -> None:
        super().__init__(f"Wizard session not found: {wizard_id}")
        self.wizard_id = wizard_id


class InvalidDescriptionError(SextantError):
    """説明文が長さ制約を満たさない場合の例外。"""

    def __init__(self, length: int, min_length: int, max_length: int) -> None:
        super().__init__(
            f"Description must be between {min_length} and {max_length} characters after sanitizing (got {length})."
        )
        self.length = length


class GenerationError(SextantError):
    """生成アダプターが失敗・空・不正な結果を返した場合の例外。"""


class TransportError(SextantError):
    """アダプター呼び出し中に送出された通信系の例外。"""


class PersistenceError(SextantError):
    """個別アイテムの永続化に失敗した場合の例外。"""

    def __init__(self, item_id: str, reason: str) -> None:
        super().__init__(f"Failed to persist {item_id}: {reason}")
        self.item_id = item_id
        self.reason = reason


class ReviewEditError(SextantError):
    """レビュー中の編集がローカル制約を満たさない場合の例外。"""


class SaveBlockedError(SextantError):
    """保存条件を満たしていない場合の例外。"""

    def __init__(self, wizard_id: str, reason: str) -> None:
        super().__init__(f"Save blocked for wizard {wizard_id}: {reason}")
        self.wizard_id = wizard_id


class WizardModeError(SextantError):
    """ウィザードのモードに対応しない操作が要求された場合の例外。"""

    def __init__(self, wizard_id: str, mode: str) -> None:
        super().__init__(f"Operation not available for {mode} wizard: {wizard_id}")
        self.wizard_id = wizard_id
        self.mode = mode


class StorageError(SextantError):
    """ストレージ操作のエラー。"""


class CatalogError(SextantError):
    """アクティビティカタログの読み込み・参照に失敗した場合の例外。"""


class NoValidRequirementsError(SextantError):
    """見積もり対象として有効な要件が1件もない場合の例外。"""
