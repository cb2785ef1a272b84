"""
Проверка ресурса перед ответом.

Порядок проверок важен, первая сработавшая решает статус:
метод -> существование -> обычный файл -> права (x для CGI, r для статики).
stat() делаем на каждый запрос: файл мог поменяться между запросами.
"""
import os
import stat
from dataclasses import dataclass
from typing import Union

from tinyhttpd.utils.http import HttpRequest, HttpStatus, IMPLEMENTED_METHODS


@dataclass(frozen=True)
class ResourceMeta:
    """Результат stat() в том виде, который нужен для решения."""
    exists: bool
    is_regular_file: bool = False
    size: int = 0
    readable: bool = False
    executable: bool = False


@dataclass(frozen=True)
class Rejection:
    """Отказ: что отправить в странице ошибки."""
    status: HttpStatus
    message: str
    cause: str


def stat_resource(path: str) -> ResourceMeta:
    """
    Метаданные файла.

    Любая ошибка stat() (нет файла, ENOTDIR, нет прав на каталог)
    считается "не существует". Права смотрим по битам владельца.
    """
    try:
        st = os.stat(path)
    except OSError:
        return ResourceMeta(exists=False)

    return ResourceMeta(
        exists=True,
        is_regular_file=stat.S_ISREG(st.st_mode),
        size=st.st_size,
        readable=bool(st.st_mode & stat.S_IRUSR),
        executable=bool(st.st_mode & stat.S_IXUSR),
    )


def resolve(request: HttpRequest) -> Union[ResourceMeta, Rejection]:
    """ResourceMeta если можно отвечать, иначе Rejection."""
    if request.method not in IMPLEMENTED_METHODS:
        return Rejection(
            HttpStatus.NOT_IMPLEMENTED,
            "Method not implemented by Tiny",
            request.method,
        )

    meta = stat_resource(request.target_path)
    if not meta.exists:
        return Rejection(
            HttpStatus.NOT_FOUND,
            "Tiny couldn't find this file",
            request.target_path,
        )

    if not meta.is_regular_file:
        return Rejection(
            HttpStatus.FORBIDDEN,
            "Tiny couldn't access the file",
            request.target_path,
        )

    if request.is_dynamic:
        if not meta.executable:
            return Rejection(
                HttpStatus.FORBIDDEN,
                "Tiny couldn't run the CGI program",
                request.target_path,
            )
    elif not meta.readable:
        return Rejection(
            HttpStatus.FORBIDDEN,
            "Tiny couldn't read the file",
            request.target_path,
        )

    return meta
