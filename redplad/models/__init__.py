"""
ReDPlAD — ORM model registry.

Importing every model here ensures that Alembic (and any other tool that
inspects ``Base.metadata``) discovers all tables automatically.
"""

from redplad.models.profile import (
    CulturalBackground,
    PersonalityAssessment,
    Profile,
    UserPreferences,
)
from redplad.models.match import Conversation, Match, Message
from redplad.models.community import CulturalEvent, Endorsement, EventAttendee
from redplad.models.quiz import CulturalQuizResult, QuizQuestion
from redplad.models.activity import UserActivity, VerificationDocument

__all__ = [
    "Profile",
    "CulturalBackground",
    "PersonalityAssessment",
    "UserPreferences",
    "Match",
    "Conversation",
    "Message",
    "Endorsement",
    "CulturalEvent",
    "EventAttendee",
    "QuizQuestion",
    "CulturalQuizResult",
    "UserActivity",
    "VerificationDocument",
]
