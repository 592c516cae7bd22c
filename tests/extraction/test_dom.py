"""Tests for the DOM snapshot wrapper."""

import pytest

from bankfeed.extraction.dom import SelectorError, parse_html


HTML = """
<div id="root" class="page main">
  <table>
    <tbody>
      <tr data-testid="transaction-row-1" class="row"><td>A1</td><td>A2</td></tr>
      <tr data-testid="summary" class="row total pending"><td>B1</td><td>B2</td></tr>
    </tbody>
  </table>
  <ul><li>one</li><li>two</li></ul>
  <div role="grid">
    <div role="row"><span role="cell">x</span><br><span role="gridcell">y</span></div>
  </div>
  <!-- hidden note -->
  <script>var ignored = "<td>";</script>
</div>
"""


class TestParsing:
    """Tests for building the node tree."""

    def test_document_node(self):
        root = parse_html(HTML)
        assert root.is_document
        assert root.tag == "#document"

    def test_text_concatenates_without_separator(self):
        """Adjacent elements join like textContent."""
        root = parse_html("<td><span>Feb 04, 2026</span><span>February 04 2026</span></td>")
        assert root.select_one("td").text == "Feb 04, 2026February 04 2026"

    def test_script_and_comment_text_excluded(self):
        text = parse_html(HTML).select_one("#root").text
        assert "ignored" not in text
        assert "hidden note" not in text

    def test_void_elements_have_no_children(self):
        root = parse_html(HTML)
        row = root.select_one('[role="row"]')
        assert [c.get("role") for c in row.select("span")] == ["cell", "gridcell"]

    def test_class_attribute_joined(self):
        row = parse_html(HTML).select_one('[data-testid="summary"]')
        assert row.get("class") == "row total pending"
        assert row.classes == ["row", "total", "pending"]

    def test_empty_document(self):
        assert parse_html("").select("div") == []
        assert parse_html(None).select_one("div") is None


class TestSelectors:
    """Tests for CSS selection on snapshots."""

    @pytest.fixture
    def root(self):
        return parse_html(HTML)

    def test_id_and_class(self, root):
        assert root.select_one("#root").get("id") == "root"
        assert len(root.select("div.page.main")) == 1
        assert len(root.select(".row")) == 2
        assert len(root.select(".row.total")) == 1

    def test_attribute_operators(self, root):
        assert len(root.select('tr[data-testid*="transaction-row"]')) == 1
        assert len(root.select('tr[data-testid^="summ"]')) == 1
        assert len(root.select('tr[data-testid$="-1"]')) == 1
        assert len(root.select("tr[data-testid]")) == 2
        assert len(root.select("[role=grid]")) == 1

    def test_descendant_and_child(self, root):
        assert len(root.select("table tbody tr")) == 2
        assert len(root.select("table > tr")) == 0
        assert len(root.select("tbody > tr > td")) == 4

    def test_scope_child(self, root):
        row = root.select_one('[role="row"]')
        assert [n.text for n in row.select(":scope > span")] == ["x", "y"]

    def test_comma_group_in_document_order(self, root):
        cells = root.select('[role="gridcell"], [role="cell"]')
        assert [c.text for c in cells] == ["x", "y"]

    @pytest.mark.parametrize(
        "selector,expected",
        [
            ("tr:not(.pending) td", ["A1", "A2"]),
            ("tbody > tr:nth-child(2) td", ["B1", "B2"]),
            ("tr ~ tr td", ["B1", "B2"]),
            ("td:first-child", ["A1", "B1"]),
        ],
    )
    def test_standard_pseudo_classes_and_sibling_combinator(self, root, selector, expected):
        assert [n.text for n in root.select(selector)] == expected

    @pytest.mark.parametrize("selector", ["tr[", "td:no-such-pseudo"])
    def test_invalid_selector_raises(self, root, selector):
        with pytest.raises(SelectorError):
            root.select(selector)
