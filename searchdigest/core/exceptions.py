"""Централизованные исключения приложения.

Этот модуль содержит ВСЕ кастомные исключения проекта.
Удобный импорт: `from searchdigest.core.exceptions import SomeError`

Организация исключений по доменам:
- Database: Ошибки работы с БД (хранилище подписок)
- Digest: Ошибки очереди и воркера дайджестов сохранённых поисков
- Discovery: Ошибки провайдера поиска
- Subscriptions: Ошибки поиска подписок по ID

Политика обработки:
- DigestValidationError и CapacityExceededError выбрасывает очередь,
  воркер ловит их в фазе A и логирует как предупреждение.
- ExecutionError ловится воркером на уровне одной задачи в фазе B.
- Ни одна ошибка этого модуля не должна останавливать планировщик.
"""

# =============================================================================
# DATABASE EXCEPTIONS
# =============================================================================
# Исключения для работы с базой данных.
# Иерархия: DatabaseError -> DatabaseOperationError
# =============================================================================


class DatabaseError(Exception):
    """Базовое исключение для ошибок работы с БД.

    Может быть потенциально восстановимым (retry) в зависимости от причины.
    """

    def __init__(self, message: str, retryable: bool = False) -> None:
        """Создать исключение БД.

        Args:
            message: Описание ошибки.
            retryable: Можно ли повторить операцию (True для временных сбоев).
        """
        super().__init__(message)
        self.message = message
        self.retryable = retryable


class DatabaseOperationError(DatabaseError):
    """Ошибка выполнения операции с БД.

    Может быть восстановимой (deadlock, timeout) или невосстановимой
    (constraint violation).
    """

    def __init__(
        self, operation: str, original_error: Exception, retryable: bool = False
    ) -> None:
        """Создать исключение об ошибке операции БД.

        Args:
            operation: Название операции (find_due, update_schedule, и т.д.).
            original_error: Оригинальное исключение от SQLAlchemy.
            retryable: Можно ли повторить операцию.
        """
        super().__init__(
            f"Ошибка выполнения операции '{operation}': {original_error}",
            retryable=retryable,
        )
        self.operation = operation
        self.original_error = original_error


# =============================================================================
# DIGEST EXCEPTIONS
# =============================================================================
# Исключения очереди дайджестов и воркера.
# Иерархия: DigestError -> DigestValidationError, CapacityExceededError,
#           ExecutionError, SubscriptionNotFoundError
# =============================================================================


class DigestError(Exception):
    """Базовое исключение для ошибок подсистемы дайджестов."""

    def __init__(self, message: str, retryable: bool = False) -> None:
        """Создать исключение подсистемы дайджестов.

        Args:
            message: Описание ошибки.
            retryable: Будет ли операция повторена на следующем тике.
        """
        super().__init__(message)
        self.message = message
        self.retryable = retryable


class DigestValidationError(DigestError, ValueError):
    """Некорректные входные данные: идентификаторы, причина, размер очереди."""

    def __init__(self, field: str, value: object) -> None:
        """Создать исключение валидации.

        Args:
            field: Имя некорректного поля.
            value: Полученное значение.
        """
        super().__init__(f"Некорректное значение {field}: {value!r}")
        self.field = field
        self.value = value


class CapacityExceededError(DigestError):
    """Очередь заполнена, а подписки с таким ID в ней ещё нет.

    Повторная постановка уже присутствующей подписки никогда
    не вызывает эту ошибку — она перезаписывает существующий слот.
    """

    def __init__(self, subscription_id: int, max_size: int) -> None:
        """Создать исключение о переполнении очереди.

        Args:
            subscription_id: ID подписки, которую не удалось поставить.
            max_size: Текущая ёмкость очереди.
        """
        super().__init__(
            f"Очередь дайджестов заполнена ({max_size}), "
            f"подписка id={subscription_id} не поставлена",
            retryable=True,
        )
        self.subscription_id = subscription_id
        self.max_size = max_size


class ExecutionError(DigestError):
    """Ошибка Discovery Provider при выполнении сохранённого поиска.

    Расписание подписки при этом не меняется, поэтому она остаётся
    "просроченной" и будет поставлена в очередь на следующем тике.
    """

    def __init__(
        self,
        subscription_id: int,
        category: str | None,
        reason: str,
    ) -> None:
        """Создать исключение выполнения поиска.

        Args:
            subscription_id: ID подписки.
            category: Категория поиска (job, gig, ...).
            reason: Описание причины.
        """
        super().__init__(
            f"Не удалось выполнить поиск подписки id={subscription_id} "
            f"(category={category}): {reason}",
            retryable=True,
        )
        self.subscription_id = subscription_id
        self.category = category
        self.reason = reason


# =============================================================================
# DISCOVERY PROVIDER EXCEPTIONS
# =============================================================================
# Ошибки конкретного провайдера поиска (HTTP, формат ответа).
# Воркер оборачивает их в ExecutionError.
# =============================================================================


class DiscoveryError(Exception):
    """Ошибка Discovery Provider.

    Attributes:
        message: Описание ошибки.
        provider: Название провайдера (для логов).
        category: Категория поиска.
        status_code: HTTP-статус ответа (если был ответ).
        is_retryable: Имеет ли смысл повторять запрос.
    """

    def __init__(  # noqa: PLR0913
        self,
        message: str,
        *,
        provider: str,
        category: str | None = None,
        status_code: int | None = None,
        is_retryable: bool = True,
        original_error: Exception | None = None,
    ) -> None:
        """Создать исключение провайдера поиска.

        Args:
            message: Описание ошибки.
            provider: Название провайдера.
            category: Категория поиска.
            status_code: HTTP-статус ответа.
            is_retryable: Имеет ли смысл повторять запрос.
            original_error: Исходное исключение.
        """
        super().__init__(message)
        self.message = message
        self.provider = provider
        self.category = category
        self.status_code = status_code
        self.is_retryable = is_retryable
        self.original_error = original_error


# =============================================================================
# SUBSCRIPTION EXCEPTIONS
# =============================================================================


class SubscriptionNotFoundError(DigestError):
    """Подписка на сохранённый поиск не найдена."""

    def __init__(self, subscription_id: int) -> None:
        self.subscription_id = subscription_id
        super().__init__(f"Подписка с id={subscription_id} не найдена")
