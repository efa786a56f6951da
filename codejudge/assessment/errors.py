"""Contains assessment exceptions"""


class AssessmentError(Exception):
    """Base class for errors that cross the assessment boundary"""


class UnsupportedLanguage(AssessmentError):
    """No sandbox mapping (or challenge support) for the requested language"""

    def __init__(self, language: str):
        super().__init__(f"Unsupported language: {language}")
        self.language = language


class ChallengeNotFound(AssessmentError):
    """Unknown challenge slug"""

    def __init__(self, slug: str):
        super().__init__(f"Challenge not found: {slug}")
        self.slug = slug


class SubmissionConflict(AssessmentError):
    """Submission id already graded for a different challenge or source"""

    def __init__(self, submission_id: str):
        super().__init__(f"Submission {submission_id} was already graded with different content")
        self.submission_id = submission_id


class StorageUnavailable(AssessmentError):
    """Repository could not be reached"""
