from .tutor_service import TutorService

__all__ = ["TutorService"]
