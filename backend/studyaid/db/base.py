from studyaid.db.base_class import Base

# Import all models so Base.metadata knows every table
from studyaid.models.user import User
from studyaid.models.quiz import Quiz, QuizQuestion
from studyaid.models.quiz_attempt import QuizAttempt
from studyaid.models.flashcard_set import Flashcard, FlashcardSet
