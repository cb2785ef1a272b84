"""
Конфигурация сервера.

Все настройки описаны как dataclasses: это проще Pydantic
и не тянет лишние зависимости.
"""
from dataclasses import dataclass, field
import yaml


@dataclass
class TimeoutConfig:
    """
    Таймауты на операции с клиентским сокетом.

    Храним в миллисекундах (так удобнее в конфиге),
    но properties возвращают секунды для asyncio.wait_for()
    """
    read_ms: int = 15000        # на чтение запроса целиком
    write_ms: int = 15000       # на каждый drain() при отправке

    @property
    def read(self) -> float:
        return self.read_ms / 1000

    @property
    def write(self) -> float:
        return self.write_ms / 1000


@dataclass
class LimitsConfig:
    """Лимиты на размеры входящих данных."""
    max_line: int = 8192     # строка запроса или заголовка
    max_body: int = 8192     # тело POST, оно целиком уходит в QUERY_STRING
    backlog: int = 16        # очередь accept(), всё равно обслуживаем по одному


@dataclass
class ReaperConfig:
    """
    Сборщик завершившихся CGI-процессов.

    Интервал нужен только когда SIGCHLD-обработчик поставить нельзя
    (не главный поток) и приходится опрашивать waitpid() по таймеру.
    """
    poll_interval_ms: int = 1000

    @property
    def poll_interval(self) -> float:
        return self.poll_interval_ms / 1000


@dataclass
class ServerConfig:
    """
    Корневой конфиг приложения.

    Можно создать через from_yaml() или default() для разработки.
    """
    listen_host: str = "0.0.0.0"
    listen_port: int = 8080
    root: str = "."
    default_file: str = "home.html"
    cgi_prefix: str = "/cgi-bin/"
    server_name: str = "Tiny Web Server"
    timeouts: TimeoutConfig = field(default_factory=TimeoutConfig)
    limits: LimitsConfig = field(default_factory=LimitsConfig)
    reaper: ReaperConfig = field(default_factory=ReaperConfig)
    log_level: str = "info"

    @classmethod
    def from_yaml(cls, path: str) -> "ServerConfig":
        """
        Парсит YAML-конфиг.

        Формат см. в config.example.yaml
        """
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}

        # listen может быть "127.0.0.1:8080" или просто "0.0.0.0"
        listen = str(data.get("listen", "0.0.0.0:8080"))
        if ":" in listen:
            host, port = listen.rsplit(":", 1)  # rsplit на случай IPv6
            listen_host = host
            listen_port = int(port)
        else:
            listen_host = listen
            listen_port = 8080

        timeouts_data = data.get("timeouts", {})
        timeouts = TimeoutConfig(
            read_ms=timeouts_data.get("read_ms", 15000),
            write_ms=timeouts_data.get("write_ms", 15000),
        )

        limits_data = data.get("limits", {})
        limits = LimitsConfig(
            max_line=limits_data.get("max_line", 8192),
            max_body=limits_data.get("max_body", 8192),
            backlog=limits_data.get("backlog", 16),
        )

        reaper_data = data.get("reaper", {})
        reaper = ReaperConfig(
            poll_interval_ms=reaper_data.get("poll_interval_ms", 1000),
        )

        return cls(
            listen_host=listen_host,
            listen_port=listen_port,
            root=data.get("root", "."),
            default_file=data.get("default_file", "home.html"),
            cgi_prefix=data.get("cgi_prefix", "/cgi-bin/"),
            server_name=data.get("server_name", "Tiny Web Server"),
            timeouts=timeouts,
            limits=limits,
            reaper=reaper,
            log_level=data.get("logging", {}).get("level", "info"),
        )

    @classmethod
    def default(cls) -> "ServerConfig":
        """Дефолтный конфиг: отдаём текущую директорию."""
        return cls()
