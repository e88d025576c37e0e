"""Write a sample template.docx / template.xlsx pair matching the packaged layout."""

from __future__ import annotations

import argparse
from pathlib import Path

from docx import Document
from docx.document import Document as DocxDocument
from openpyxl import Workbook

from droneops.layout.loader import load_layout
from droneops.layout.models import ReportLayout
from droneops.records.models import CELLS_PER_BATTERY


def build_word_template(layout: ReportLayout) -> DocxDocument:
    document = Document()
    document.add_heading("Drone inspection report: {title}", level=1)
    document.sections[0].header.paragraphs[0].text = "{owner} / {serial_no}"

    table = document.add_table(rows=0, cols=2)
    for placeholder in layout.word.fields:
        if placeholder in {"title", "owner"}:
            continue
        cells = table.add_row().cells
        cells[0].text = placeholder.replace("_", " ").capitalize()
        cells[1].text = "{" + placeholder + "}"

    document.add_heading("Photos", level=2)
    for placeholder in layout.image_placeholders():
        document.add_paragraph("{%" + placeholder + "}")

    battery = layout.word.battery
    if battery.max_rows:
        document.add_heading("Battery health", level=2)
        grid = document.add_table(rows=battery.max_rows, cols=3 + CELLS_PER_BATTERY)
        for index, row in enumerate(grid.rows, start=1):
            row.cells[0].text = "{" + battery.name.format(row=index) + "}"
            row.cells[1].text = "{" + battery.serial_number.format(row=index) + "}"
            for cell in range(1, CELLS_PER_BATTERY + 1):
                row.cells[1 + cell].text = "{" + battery.cell.format(row=index, cell=cell) + "}"
            row.cells[-1].text = "{" + battery.cycle_count.format(row=index) + "}"

    return document


def build_sheet_template(layout: ReportLayout) -> Workbook:
    workbook = Workbook()
    workbook.active.title = "Sheet1"
    worksheet = workbook.create_sheet(layout.sheet.sheet_name)
    for address, selector in layout.sheet.cells.items():
        column = address.rstrip("0123456789")
        row = int(address[len(column) :])
        label_row = row - 1 if row > 1 else row + 1
        worksheet[f"{column}{label_row}"] = selector.replace("_", " ").capitalize()

    block = layout.sheet.battery_block
    header_row = block.start_row - 1
    headers = ["Battery", "Serial", *(f"Cell {i}" for i in range(1, CELLS_PER_BATTERY + 1)), "Cycles"]
    for column, header in zip(block.columns(), headers, strict=False):
        worksheet[f"{column}{header_row}"] = header
    return workbook


def main() -> int:
    parser = argparse.ArgumentParser(description="Create sample report templates.")
    parser.add_argument("--out-dir", type=Path, default=Path("templates"))
    parser.add_argument("--layout", type=Path, default=None)
    args = parser.parse_args()

    layout = load_layout(args.layout)
    args.out_dir.mkdir(parents=True, exist_ok=True)

    word_path = args.out_dir / layout.word.template
    sheet_path = args.out_dir / layout.sheet.template
    build_word_template(layout).save(str(word_path))
    build_sheet_template(layout).save(str(sheet_path))

    print(f"wrote {word_path}")
    print(f"wrote {sheet_path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
