"""Shared fixtures: sample payloads and a canvas that records draw calls."""

from collections import defaultdict

import pytest

from models import CompanyInfo, DocumentKind, DocumentPayload, LineItem


class RecordingCanvas:
    """Stands in for reportlab's Canvas; keeps every primitive in order."""

    def __init__(self):
        self.calls = []
        self.font = ("Helvetica", 12)
        self.fill = (0, 0, 0)
        self.line_width = 1

    def setFont(self, name, size):
        self.font = (name, size)

    def setFillColorRGB(self, r, g, b):
        self.fill = (r, g, b)

    def setStrokeColorRGB(self, r, g, b):
        pass

    def setLineWidth(self, width):
        self.line_width = width

    def drawString(self, x, y, text):
        self.calls.append(("text", x, y, text, self.font, self.fill))

    def rect(self, x, y, w, h, stroke=1, fill=0):
        self.calls.append(("rect", x, y, w, h, stroke, fill, self.line_width))

    def line(self, x1, y1, x2, y2):
        self.calls.append(("line", x1, y1, x2, y2))

    # helpers used by tests
    def texts(self):
        return [c[3] for c in self.calls if c[0] == "text"]

    def text_calls(self, value):
        return [c for c in self.calls if c[0] == "text" and c[3] == value]

    def rects(self):
        return [c for c in self.calls if c[0] == "rect"]

    def table_rows(self):
        """Item rows are the only text drawn at size 10; group them by baseline."""
        rows = defaultdict(list)
        for c in self.calls:
            if c[0] == "text" and c[4][1] == 10:
                rows[c[2]].append(c[3])
        return [rows[y] for y in sorted(rows, reverse=True)]


@pytest.fixture
def recording_canvas() -> RecordingCanvas:
    return RecordingCanvas()


@pytest.fixture
def company() -> CompanyInfo:
    return CompanyInfo(
        name="Creative Home Decor",
        address1="1831 Utica Ave",
        address2="Brooklyn, NY 11234",
        phone="347-628-1812",
        fax="347-628-1813",
        email="sales@example.com",
        website="www.example.com",
    )


@pytest.fixture
def widget_payload(company) -> DocumentPayload:
    return DocumentPayload(
        kind=DocumentKind.BILL,
        company=company,
        document_number="B-100",
        date="2025-03-01",
        bill_to="Jane Doe\n12 Main St\nBrooklyn, NY 11234",
        items=(
            LineItem(label="Widget", quantity=3, description="Blue widget", rate=10.0),
            LineItem(label="", quantity=0, description="", rate=0),
        ),
    )


@pytest.fixture
def make_canvas():
    return RecordingCanvas
