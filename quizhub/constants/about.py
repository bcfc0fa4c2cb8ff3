"""Static metadata describing QuizHub."""

APP_NAME = "QuizHub"
APP_VERSION = "0.2"
APP_LICENSE = "MIT License"
APP_ABOUT_TEXT = (
    "QuizHub is a classroom assessment service built with FastAPI. "
    "Teachers publish timed quizzes, students join by code, and both sides get score analytics."
)
