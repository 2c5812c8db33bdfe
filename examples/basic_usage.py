#!/usr/bin/env python3
"""
Basic OCRFuse Usage Example

This example demonstrates the core workflow:
1. Render a scanned PDF page to a page image
2. Build the page structure from the layout pass's word boxes
3. Reconcile recognizer output with the layout, block by block
4. Re-run stubborn lines through separator-delimited strips
5. Load custom corrections from YAML
"""

import json
import logging
from pathlib import Path

import fitz

from ocrfuse import (
    BlockNode,
    BoundingBox,
    CorrectionConfig,
    FusionConfig,
    LineNode,
    Page,
    PageImage,
    Recognizer,
    Reconciler,
    StaticLayoutAnalyzer,
    TextCorrectionEngine,
    WordNode,
)
from ocrfuse.imaging import Compositor


def load_page_structure(image: PageImage, layout_path: Path) -> tuple[Page, list[BoundingBox]]:
    """
    Build a page tree from a layout dump.

    The dump lists blocks of lines of word boxes in the
    ``[left,right,top,bottom]`` string form.
    """
    data = json.loads(layout_path.read_text(encoding="utf-8"))
    blocks = []
    all_boxes = []
    for block_data in data["blocks"]:
        lines = []
        for line_data in block_data["lines"]:
            boxes = [BoundingBox.parse(b) for b in line_data["words"]]
            all_boxes.extend(boxes)
            lines.append(LineNode(BoundingBox.aggregate(boxes), [WordNode(b) for b in boxes]))
        blocks.append(BlockNode(BoundingBox.parse(block_data["box"]), lines))
    return Page(image, blocks), all_boxes


def main():
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    # ─────────────────────────────────────────────────────────────────────────
    # 1. Page Image
    # ─────────────────────────────────────────────────────────────────────────

    config = FusionConfig.from_yaml("ocrfuse.yaml")
    with fitz.open("path/to/scan.pdf") as pdf:
        image = PageImage.from_pdf_page(pdf[0], dpi=config.reconcile.dpi)

    # ─────────────────────────────────────────────────────────────────────────
    # 2. Page Structure
    # ─────────────────────────────────────────────────────────────────────────

    page, boxes = load_page_structure(image, Path("path/to/layout.json"))
    print(f"Layout: {len(page.blocks)} blocks, {len(page.words)} words")

    # ─────────────────────────────────────────────────────────────────────────
    # 3. Block Reconciliation
    # ─────────────────────────────────────────────────────────────────────────

    recognizer = Recognizer(config.recognizer, Compositor(config.compositor))
    if not recognizer.is_available():
        print("Tesseract not found; install it or set recognizer.command")
        return

    reconciler = Reconciler(recognizer, StaticLayoutAnalyzer(boxes), config=config.reconcile)
    stats = reconciler.reconcile_page(page)

    print(f"Recognized: {stats.words_recognized}, recovered: {stats.words_recovered}")
    print(f"  Corrected: {stats.words_corrected}, missing: {stats.words_missing}")
    for orphan in stats.orphans:
        print(f"  Unclaimed: {orphan.text!r} at {orphan.box}")

    for word in page.words:
        if word.ocr_text is not None:
            print(f"  {word.ocr_text!r} -> {word.text!r} at {word.box}")

    # ─────────────────────────────────────────────────────────────────────────
    # 4. Line Mode for Missing Words
    # ─────────────────────────────────────────────────────────────────────────

    # Lines with missing words often read better word by word
    for block in page.blocks:
        for line in block.lines:
            if any(w.missing for w in line.words):
                line_stats = reconciler.reconcile_line(line, page)
                print(f"Line {line.box}: {line.text!r} ({line_stats.words_joined} joined)")
        block.update_text()

    # ─────────────────────────────────────────────────────────────────────────
    # 5. Custom Corrections
    # ─────────────────────────────────────────────────────────────────────────

    # corrections.yaml:
    #   whole_token:
    #     tbe: the
    #   rules:
    #     - name: rn-to-m
    #       pattern: '[a-z]rn[a-z]'
    #       replacements: {r: '', n: m}
    corrections = TextCorrectionEngine(CorrectionConfig.from_yaml("corrections.yaml"))
    reconciler = Reconciler(
        recognizer, StaticLayoutAnalyzer(boxes), corrections=corrections, config=config.reconcile
    )
    reconciler.reconcile_page(page)

    for block in page.blocks:
        print(block.text)


if __name__ == "__main__":
    # Note: This example uses placeholder paths.
    # Replace with an actual scan and layout dump to run.
    main()
