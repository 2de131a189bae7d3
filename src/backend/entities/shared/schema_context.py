"""School database schema description embedded in LLM prompts.

Column descriptions are written so the model can match phrases such as
"contact numbers" or "parents" to the right columns.
"""

from __future__ import annotations

import json
from functools import cache
from typing import Any

TABLE_NAMES = (
    "schools",
    "students",
    "classes",
    "attendances",
    "fees",
    "exams",
    "exam_results",
    "staff",
    "subjects",
)

DATABASE_SCHEMA: dict[str, Any] = {
    "description": (
        "School records database. CRITICAL: all table names are PLURAL. Use 'attendances' "
        "(NOT 'attendance'), 'students', 'classes', 'fees', 'exams', 'exam_results', 'staff', "
        "'subjects', 'schools'. Every table except schools has a school_id column."
    ),
    "tables": {
        "schools": {
            "description": "School information (table name: 'schools')",
            "columns": {
                "id": "UUID primary key",
                "name": "School name",
                "code": "Unique school code",
                "address": "School address",
                "city": "City where the school is located",
                "state": "State where the school is located",
                "pincode": "Postal code",
                "phone": "School contact phone",
                "email": "School email",
                "principal_name": "Principal's name",
                "board": "Education board (CBSE, ICSE, State Board, etc.)",
                "is_active": "Whether the school is currently active",
            },
            "relationships": ["has many classes", "has many students", "has many staff"],
        },
        "students": {
            "description": "Student records and personal information",
            "columns": {
                "id": "UUID primary key",
                "school_id": "Foreign key to schools table",
                "admission_number": "Unique admission number",
                "roll_number": "Roll number in class",
                "first_name": "Student's first name",
                "middle_name": "Student's middle name",
                "last_name": "Student's last name",
                "date_of_birth": "Date of birth",
                "gender": "Gender (male, female, other)",
                "class_id": "Foreign key to classes table",
                "section": "Section (A, B, C, etc.)",
                "academic_year": "Academic year (e.g., 2024-2025)",
                "father_name": "Father's name",
                "mother_name": "Mother's name",
                "father_phone": "Father's phone number",
                "mother_phone": "Mother's phone number",
                "address": "Home address",
                "city": "City",
                "state": "State",
                "emergency_contact_name": "Emergency contact name",
                "emergency_contact_phone": "Emergency contact phone",
                "is_active": "Whether the student is currently enrolled",
                "created_at": "When the student was admitted into the system",
            },
            "relationships": [
                "belongs to school",
                "belongs to class",
                "has many attendance records",
                "has many fees",
                "has many exam results",
            ],
        },
        "classes": {
            "description": "Class/grade information",
            "columns": {
                "id": "UUID primary key",
                "school_id": "Foreign key to schools table",
                "name": "Class name (e.g., Class I, Class XII, Grade 10)",
                "level": "Class level (1-12)",
                "academic_year": "Academic year",
                "class_teacher_id": "Foreign key to staff table (class teacher)",
                "max_students": "Maximum students allowed",
                "is_active": "Whether the class is currently active",
            },
            "relationships": ["belongs to school", "has many students", "has class teacher"],
        },
        "attendances": {
            "description": "Student attendance records (table name: 'attendances' - note: plural)",
            "columns": {
                "id": "UUID primary key",
                "school_id": "Foreign key to schools table",
                "student_id": "Foreign key to students table",
                "class_id": "Foreign key to classes table",
                "date": "Date of attendance",
                "status": "Status: present, absent, late, excused",
                "marked_by": "Foreign key to staff table (who marked attendance)",
                "remarks": "Additional remarks",
            },
            "relationships": ["belongs to student", "belongs to class", "marked by staff"],
        },
        "fees": {
            "description": "Fee records and payments",
            "columns": {
                "id": "UUID primary key",
                "school_id": "Foreign key to schools table",
                "student_id": "Foreign key to students table",
                "fee_type": "Type: tuition, library, transport, hostel",
                "amount": "Fee amount",
                "due_date": "Due date for payment",
                "paid_date": "Date when payment was made",
                "status": "Status: pending, paid, partial",
                "payment_method": "Payment method: cash, online, cheque",
                "receipt_number": "Receipt number if paid",
                "academic_year": "Academic year",
            },
            "relationships": ["belongs to student", "belongs to school"],
        },
        "exams": {
            "description": "Exam information",
            "columns": {
                "id": "UUID primary key",
                "school_id": "Foreign key to schools table",
                "name": "Exam name",
                "exam_type": "Type: unit_test, mid_term, final, assignment",
                "academic_year": "Academic year",
                "start_date": "Exam start date",
                "end_date": "Exam end date",
                "max_marks": "Maximum marks",
                "passing_marks": "Passing marks",
                "class_id": "Foreign key to classes table (optional, if class-specific)",
                "subject_id": "Foreign key to subjects table (optional, if subject-specific)",
            },
            "relationships": ["belongs to school", "has many exam results"],
        },
        "exam_results": {
            "description": "Student exam results (table name: 'exam_results')",
            "columns": {
                "id": "UUID primary key",
                "school_id": "Foreign key to schools table",
                "exam_id": "Foreign key to exams table",
                "student_id": "Foreign key to students table",
                "subject_id": "Foreign key to subjects table",
                "marks_obtained": "Marks obtained by the student",
                "max_marks": "Maximum marks for the exam",
                "grade": "Grade (A+, A, B+, B, C, D, F)",
                "remarks": "Remarks",
            },
            "relationships": ["belongs to exam", "belongs to student", "belongs to subject"],
        },
        "staff": {
            "description": "Staff and teacher information",
            "columns": {
                "id": "UUID primary key",
                "school_id": "Foreign key to schools table",
                "employee_id": "Employee ID",
                "first_name": "First name",
                "last_name": "Last name",
                "designation": "Designation: Administrator, Principal, Teacher, etc.",
                "email": "Email address",
                "phone": "Phone number",
                "is_active": "Whether the staff member is currently employed",
                "created_at": "When the staff member joined",
            },
            "relationships": ["belongs to school", "can be class teacher"],
        },
        "subjects": {
            "description": "Subject information",
            "columns": {
                "id": "UUID primary key",
                "school_id": "Foreign key to schools table",
                "name": "Subject name (e.g., Mathematics, English, Science)",
                "code": "Subject code",
                "academic_year": "Academic year",
            },
            "relationships": ["belongs to school"],
        },
    },
}


@cache
def get_schema_context() -> str:
    """Return the schema as pretty-printed JSON for prompts."""
    return json.dumps(DATABASE_SCHEMA, indent=2)
