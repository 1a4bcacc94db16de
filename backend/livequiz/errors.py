from __future__ import annotations


class QuizError(Exception):
    """Base class for errors surfaced to API clients."""

    status_code = 400
    default_detail = "Request could not be completed"

    def __init__(self, detail: str | None = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class AuthRequired(QuizError):
    status_code = 401
    default_detail = "Please log in to continue"


class InvalidCredentials(QuizError):
    status_code = 401
    default_detail = "Invalid email or password"


class NoActiveQuestion(QuizError):
    status_code = 409
    default_detail = "No active question at the moment. Please wait for the next question."


class AlreadyAnswered(QuizError):
    status_code = 409
    default_detail = "You have already answered this question"


class InvalidOption(QuizError):
    status_code = 422
    default_detail = "Selected option is not valid for this question"


class QuestionNotFound(QuizError):
    status_code = 404
    default_detail = "Question not found"


class UserNotFound(QuizError):
    status_code = 404
    default_detail = "User not found"


class RegistrationError(QuizError):
    status_code = 400
    default_detail = "Registration failed"


class StoreUnavailable(QuizError):
    status_code = 503
    default_detail = "Quiz data is temporarily unavailable, please try again"


class GenerationError(QuizError):
    status_code = 502
    default_detail = "Failed to generate content from AI"


class GenerationUnavailable(GenerationError):
    status_code = 503
    default_detail = "AI generation is not configured"
