import io
from datetime import datetime
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER, TA_RIGHT
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import inch
from reportlab.platypus import SimpleDocTemplate, Table, TableStyle, Paragraph, Spacer

NA = "N/A"

SUBJECT_HEADER = [
    "Subject", "Credit", "Internal Marks", "External Marks", "Grade", "Grade Point", "Quality Point",
]


def grade_card_filename(card):
    return f"GradeCard_{card.student.enrollment_no}_Sem{card.semester.numerical}.pdf"


def _or_na(value):
    return NA if value is None else f"{value:g}" if isinstance(value, float) else str(value)


def _two_places(value):
    # zero reads as not computed yet
    return f"{value:.2f}" if value else NA


def render_grade_card(card):
    """Grade card as PDF bytes: student details, GPA/CGPA summary and the subject table."""
    buffer = io.BytesIO()
    doc = SimpleDocTemplate(buffer, pagesize=A4, rightMargin=54, leftMargin=54, topMargin=54, bottomMargin=36)

    styles = getSampleStyleSheet()
    title_style = ParagraphStyle(
        "CardTitle", parent=styles["Heading1"], fontSize=18, alignment=TA_CENTER, spaceAfter=16,
    )
    right_style = ParagraphStyle("CardRight", parent=styles["Normal"], alignment=TA_RIGHT)

    student = card.student
    semester = card.semester
    story = [
        Paragraph("STUDENT GRADE CARD", title_style),
        Paragraph(f"Card No: {card.card_no or NA}", right_style),
        Paragraph(f"Date: {datetime.now().strftime('%d/%m/%Y')}", right_style),
        Spacer(1, 12),
        Paragraph("<b>Student Details</b>", styles["Heading3"]),
        Paragraph(f"Name: {escape(student.name)}", styles["Normal"]),
        Paragraph(f"Enrollment No: {student.enrollment_no or NA}", styles["Normal"]),
        Paragraph(f"Batch: {escape(card.batch.name)}", styles["Normal"]),
        Paragraph(f"Semester: {escape(semester.name)} (Sem {semester.numerical})", styles["Normal"]),
        Spacer(1, 12),
        Paragraph("<b>Grade Summary</b>", styles["Heading3"]),
    ]

    total_credits = sum(d.credit or 0 for d in card.subject_grades)
    summary = Table(
        [[f"Total Credits: {total_credits:g}", f"GPA: {_two_places(card.gpa)}", f"CGPA: {_two_places(card.cgpa)}"]],
        colWidths=[2.2 * inch, 2.2 * inch, 2.2 * inch],
    )
    summary.setStyle(TableStyle([("FONTSIZE", (0, 0), (-1, -1), 10)]))
    story += [summary, Spacer(1, 12)]

    table_data = [SUBJECT_HEADER]
    for d in card.subject_grades:
        table_data.append([
            d.batch_subject.subject.name,
            _or_na(d.credit),
            _or_na(d.internal_marks),
            _or_na(d.external_marks),
            d.grade or NA,
            _or_na(d.grade_point),
            _or_na(d.quality_point),
        ])

    table = Table(table_data, repeatRows=1)
    table.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (-1, 0), colors.Color(66 / 255, 66 / 255, 66 / 255)),
        ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("FONTSIZE", (0, 0), (-1, -1), 9),
        ("ALIGN", (1, 0), (-1, -1), "CENTER"),
        ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, colors.Color(240 / 255, 240 / 255, 240 / 255)]),
        ("GRID", (0, 0), (-1, -1), 0.5, colors.grey),
        ("TOPPADDING", (0, 0), (-1, -1), 3),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 3),
    ]))
    story += [table, Spacer(1, 24)]

    story.append(Paragraph(
        "This document is electronically generated and does not require signature.", styles["Normal"]
    ))
    story.append(Spacer(1, 24))
    signatures = Table([["Academic Coordinator", "Principal"]], colWidths=[3.3 * inch, 3.3 * inch])
    signatures.setStyle(TableStyle([
        ("ALIGN", (0, 0), (0, 0), "LEFT"),
        ("ALIGN", (1, 0), (1, 0), "RIGHT"),
    ]))
    story.append(signatures)

    doc.build(story)
    pdf_data = buffer.getvalue()
    buffer.close()
    return pdf_data
