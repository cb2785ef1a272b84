"""
Ошибки, по которым обработчик решает, что делать с соединением.

- RequestAborted: запроса нет (клиент отвалился, пустая строка),
  отвечать некому, просто закрываем
- ClientDisconnected: клиент ушёл, пока мы писали ответ
- SpawnError: CGI-программу не удалось запустить
"""


class RequestAborted(ConnectionError):
    """Не удалось прочитать запрос, ответ не отправляется."""


class ClientDisconnected(ConnectionError):
    """
    Запись в закрытое соединение.

    Только "peer ушёл" (EPIPE, ECONNRESET), остальные ошибки
    записи пробрасываются как есть.
    """


class SpawnError(RuntimeError):
    """posix_spawn() не смог запустить CGI-программу."""

    def __init__(self, path: str, reason: str):
        super().__init__(f"cannot spawn {path}: {reason}")
        self.path = path
        self.reason = reason
