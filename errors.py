"""Exceptions raised by the AptiLab services and mapped to JSON responses by the API."""


class AptiLabError(Exception):
    status_code = 500

    def __init__(self, message, detail=None):
        super().__init__(message)
        self.message = message
        self.detail = detail

    def to_dict(self):
        body = {"error": self.message}
        if self.detail:
            body["detail"] = self.detail
        return body


class ValidationError(AptiLabError):
    status_code = 400


class DuplicateUserError(AptiLabError):
    status_code = 400


class AuthError(AptiLabError):
    status_code = 401


class NotFoundError(AptiLabError):
    status_code = 404


class StorageError(AptiLabError):
    status_code = 500


class GenerationError(AptiLabError):
    status_code = 502


class InsufficientQuestions(GenerationError):
    pass


class MailConfigError(AptiLabError):
    status_code = 500


class MailSendError(AptiLabError):
    status_code = 500
