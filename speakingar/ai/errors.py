from __future__ import annotations


class GenerationError(Exception):
    """Base for reply / pronunciation generation failures. `user_message` is shown as-is."""

    user_message = "AI の応答を取得できませんでした。"

    def __str__(self) -> str:
        return self.user_message


class EmptyInput(GenerationError):
    user_message = "入力が空です。テキストを入力してください。"


class InvalidResponse(GenerationError):
    user_message = "AI からの応答を解釈できませんでした。"


class MissingCredential(GenerationError):
    user_message = "AI 応答を利用するには OPENAI_API_KEY を環境変数に設定してください。"


class ServerError(GenerationError):
    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    @property
    def user_message(self) -> str:  # type: ignore[override]
        return f"AI サービスからエラーが返されました: {self.message}"


class HTTPError(GenerationError):
    def __init__(self, status_code: int) -> None:
        super().__init__(status_code)
        self.status_code = int(status_code)

    @property
    def user_message(self) -> str:  # type: ignore[override]
        return f"AI サービスとの通信に失敗しました (ステータスコード: {self.status_code})。"
