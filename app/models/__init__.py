"""
Database models package
"""
from app.models.organization import Project, User, UserProject
from app.models.exam import Exam, ExamQuestion, ExamChoice, ExamAssignment
from app.models.exam_attempt import ExamAttempt, ExamAttemptAnswer
from app.models.training import Training, TrainingAssignment, TrainingProgress

__all__ = [
    "Project", "User", "UserProject",
    "Exam", "ExamQuestion", "ExamChoice", "ExamAssignment",
    "ExamAttempt", "ExamAttemptAnswer",
    "Training", "TrainingAssignment", "TrainingProgress",
]
