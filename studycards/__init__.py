"""Study Cards: personal flashcards with interval reviews and rapid fire quizzes."""

__version__ = "0.1.0"
