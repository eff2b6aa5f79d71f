class RegistryError(Exception):
    """Базовая ошибка реестра ingestion job'ов."""


class ValidationError(RegistryError, ValueError):
    """Некорректный или дублирующийся идентификатор, неразрешённая ссылка при создании."""


class StateError(RegistryError):
    """Недопустимый переход статуса или конфликт external id. Мутация не применяется."""


class ConcurrentUpdateError(StateError):
    """Запись job'а была изменена параллельным писателем между чтением и сохранением."""


class NotFoundError(RegistryError):
    pass


class RunnerError(RegistryError):
    pass


class RunnerUnavailableError(RunnerError):
    """Временная ошибка связи с раннером (таймаут, сеть, 5xx). Ретраится."""


class RunnerFatalError(RunnerError):
    """Раннер сообщил о невосстановимой ошибке. Job уходит в ERROR."""
