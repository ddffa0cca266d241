from studyaid.models.user import User
from studyaid.models.quiz import Quiz, QuizQuestion
from studyaid.models.quiz_attempt import QuizAttempt
from studyaid.models.flashcard_set import Flashcard, FlashcardSet

__all__ = [
    "User",
    "Quiz",
    "QuizQuestion",
    "QuizAttempt",
    "FlashcardSet",
    "Flashcard",
]
