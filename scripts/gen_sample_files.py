#!/usr/bin/env python3
"""Generate sample registration workbooks.

Produces one file per supported layout so the CLI (and manual probing) can be
exercised without real exports:

- exams.xlsx              flat exam schedule, Arabic headers, Hijri dates
- enrollments_flat.xlsx   flat enrollment table, English headers
- students_blocks.xlsx    per-student blocks separated by blank rows
- students_sections.xlsx  course/section rosters

Usage:
    python scripts/gen_sample_files.py --out data --students 50 --seed 7
"""
from __future__ import annotations

import argparse
import sys
from pathlib import Path

import numpy as np
import pandas as pd
from openpyxl import Workbook

COURSES = [
    ("CS 101", "Programming I"),
    ("CS 102", "Programming II"),
    ("MATH 201", "Calculus II"),
    ("PHYS 110", "General Physics"),
    ("ARAB 100", "Arabic Language"),
    ("281 QURN", "Quran Recitation"),
]
ROOMS = ["A-101", "A-102", "B-201", "Main Hall"]


def _student_ids(count: int, rng: np.random.Generator) -> list[str]:
    ids = rng.choice(np.arange(441000000, 441999999), size=count, replace=False)
    return [str(i) for i in ids]


def write_exams(path: Path, rng: np.random.Generator) -> None:
    rows = []
    for idx, (code, name) in enumerate(COURSES):
        rows.append({
            "رمز المقرر": code,
            "اسم المقرر": name,
            "الشعبة": int(rng.integers(1, 5)),
            "التاريخ": f"1446/09/{10 + idx:02d}",
            "بداية الفترة": "08:00 ص" if idx % 2 == 0 else "01:30 م",
            "القاعة": ROOMS[idx % len(ROOMS)],
            "فترة الاختبار": "نهائي",
            "العمود": f"{idx + 1} - {idx + 4}",
            "عدد الطلاب": int(rng.integers(10, 60)),
        })
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        pd.DataFrame(rows).to_excel(writer, sheet_name="Exams", index=False)


def write_flat_enrollments(path: Path, students: list[str], rng: np.random.Generator) -> None:
    rows = []
    for sid in students:
        for course_idx in rng.choice(len(COURSES), size=2, replace=False):
            rows.append({
                "Student ID": sid,
                "Course Code": COURSES[int(course_idx)][0],
                "Class No": str(int(rng.integers(1, 5))),
            })
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        pd.DataFrame(rows).to_excel(writer, sheet_name="Enrollments", index=False)


def write_blocks(path: Path, students: list[str], rng: np.random.Generator) -> None:
    wb = Workbook()
    ws = wb.active
    ws.title = "Students"
    for sid in students:
        ws.append(["الطالب", sid, "اسم الطالب"])
        ws.append(["", "رقم المقرر", "اسم المقرر", "الشعبة"])
        for course_idx in rng.choice(len(COURSES), size=3, replace=False):
            code, name = COURSES[int(course_idx)]
            ws.append(["", code, name, str(int(rng.integers(1, 5)))])
        ws.append([])
    wb.save(path)


def write_sections(path: Path, students: list[str], rng: np.random.Generator) -> None:
    wb = Workbook()
    ws = wb.active
    ws.title = "Rosters"
    chunks = np.array_split(np.array(students), len(COURSES) * 2)
    for idx, chunk in enumerate(chunks):
        code, name = COURSES[(idx // 2) % len(COURSES)]
        if idx % 2 == 0:
            ws.append(["المقرر", code, name])
        ws.append(["الشعبة", str(idx % 2 + 1)])
        ws.append(["", "رقم الطالب", "اسم الطالب"])
        for sid in chunk:
            ws.append(["", str(sid), "طالب"])
        ws.append([])
    wb.save(path)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Generate sample registration workbooks")
    parser.add_argument("--out", type=Path, default=Path("data"), help="Output directory")
    parser.add_argument("--students", type=int, default=30, help="Number of students")
    parser.add_argument("--seed", type=int, default=42, help="Random seed")
    args = parser.parse_args(argv)

    if args.students < 1:
        print("students must be positive", file=sys.stderr)
        return 1

    rng = np.random.default_rng(args.seed)
    args.out.mkdir(parents=True, exist_ok=True)
    students = _student_ids(args.students, rng)

    write_exams(args.out / "exams.xlsx", rng)
    write_flat_enrollments(args.out / "enrollments_flat.xlsx", students, rng)
    write_blocks(args.out / "students_blocks.xlsx", students, rng)
    write_sections(args.out / "students_sections.xlsx", students, rng)
    print(f"wrote 4 workbooks to {args.out}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
