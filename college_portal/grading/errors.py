class GradeCardError(Exception):
    """Base class for grade card pipeline failures."""


class NotFoundError(GradeCardError):
    """Nothing to process for the requested batch or record."""


class GradeValidationError(GradeCardError):
    """
    One or more student/subject combinations failed a precondition.
    Carries every message collected for the batch; nothing was written.
    """

    def __init__(self, errors):
        self.errors = list(errors)
        super().__init__(f"{len(self.errors)} validation error(s)")


class InternalImportError(GradeCardError):
    """Rejected internal marks workbook; nothing was written."""

    def __init__(self, errors=None, missing_students=None, existing_records=None):
        self.errors = errors or []
        self.missing_students = missing_students or []
        self.existing_records = existing_records or []
        super().__init__("Internal marks import rejected")

    def to_dict(self):
        return {
            "errors": self.errors,
            "missingStudents": self.missing_students,
            "existingRecords": self.existing_records,
        }
