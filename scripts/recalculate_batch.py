import sys
import argparse

from college_portal import create_app, db
from college_portal.models import Batch, StudentGradeCard
from college_portal.grading.errors import NotFoundError, GradeValidationError
from college_portal.grading.services import calculate_external_marks, generate_grade_details


def main(argv=None):
    parser = argparse.ArgumentParser(description="Derive external marks and recalculate grade cards for a batch.")
    parser.add_argument("batch_id", type=int, help="Batch to process")
    parser.add_argument("--skip-external", action="store_true", help="Only recalculate grades from the stored marks")
    parser.add_argument("--exam-type-id", type=int, help="Semester exam type to read marks from (default: latest)")
    args = parser.parse_args(argv)

    app = create_app()
    with app.app_context():
        batch = db.session.get(Batch, args.batch_id)
        if not batch:
            print(f"ERROR: No batch found with id={args.batch_id}.")
            return 1

        print(f"--- Batch {batch.batch_id} ({batch.name}) ---")
        try:
            if not args.skip_external:
                updated = calculate_external_marks(batch.batch_id, batch.college_id_fk, args.exam_type_id)
                print(f"External marks written for {updated} subject rows.")
            cards = generate_grade_details(batch.batch_id, batch.college_id_fk)
            print(f"Grades calculated for {cards} grade cards.")
        except NotFoundError as e:
            print(f"ERROR: {e}")
            return 1
        except GradeValidationError as e:
            print(f"Rejected with {len(e.errors)} error(s); nothing was written:")
            for msg in e.errors:
                print(f"  - {msg}")
            return 2

        rows = db.session.query(StudentGradeCard).filter_by(batch_id_fk=batch.batch_id).limit(5).all()
        print(f"{'Card':<14} | {'Credits':<8} | {'GPA':<6} | {'CGPA':<6}")
        print("-" * 44)
        for card in rows:
            print(f"{card.card_no or '-':<14} | {card.total_graded_credit or 0:<8} | {card.gpa or 0:<6} | {card.cgpa if card.cgpa is not None else '-':<6}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
