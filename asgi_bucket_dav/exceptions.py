"""
异常设计规则

    - 以模块(逻辑概念的)做一级分割
    - 如果需要再做二级分割
    - 需要映射为 HTTP 状态码的异常, 继承 DAVExceptionHTTP
"""


class DAVException(Exception):
    pass


class DAVExceptionConfig(DAVException):
    pass


class DAVExceptionStoreInitFailed(DAVException):
    pass


class DAVExceptionXMLParseFailed(DAVException):
    pass


# HTTP ---


class DAVExceptionHTTP(DAVException):
    status: int = 500

    def __init__(self, message: str | None = None):
        if message is None:
            message = self.__class__.__name__

        super().__init__(message)
        self.message = message


class DAVExceptionBadRequest(DAVExceptionHTTP):
    status = 400


class DAVExceptionUnauthorized(DAVExceptionHTTP):
    status = 401


class DAVExceptionForbidden(DAVExceptionHTTP):
    status = 403


class DAVExceptionNotFound(DAVExceptionHTTP):
    status = 404


class DAVExceptionMethodNotAllowed(DAVExceptionHTTP):
    status = 405


class DAVExceptionConflict(DAVExceptionHTTP):
    status = 409


class DAVExceptionPreconditionFailed(DAVExceptionHTTP):
    status = 412


class DAVExceptionUnsupportedMediaType(DAVExceptionHTTP):
    status = 415


class DAVExceptionLocked(DAVExceptionHTTP):
    status = 423


class DAVExceptionMalformedRequest(DAVExceptionHTTP):
    """428, the lock body is incomplete or unreadable"""

    status = 428
