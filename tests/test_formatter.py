"""Tests for tool output formatting and truncation."""

from pathlib import Path

import pytest

from minimax_mcp.mcp.formatter import (
    extract_text,
    format_bytes,
    format_tool_output,
    truncate_text,
    write_temp_file,
)


def text_result(text):
    return {"content": [{"type": "text", "text": text}]}


def numbered_lines(count, width=99):
    """Lines of exactly ``width`` characters (``width + 1`` bytes with newline)."""
    return [f"{i:09d}" + "y" * (width - 9) for i in range(count)]


class TestExtractText:
    def test_joins_text_blocks(self):
        """Test that text blocks are joined by a blank line."""
        result = {
            "content": [
                {"type": "text", "text": "first"},
                {"type": "image", "data": "..."},
                {"type": "text", "text": "second"},
            ]
        }
        assert extract_text(result) == "first\n\nsecond"

    def test_falls_back_to_json_dump(self):
        """Test the JSON dump used when no text block exists."""
        result = {"content": [{"type": "image", "data": "abc"}], "isError": False}
        text = extract_text(result)
        assert '"type": "image"' in text
        assert text.startswith("{\n  ")

    def test_ignores_malformed_blocks(self):
        """Test that malformed content blocks are skipped."""
        result = {"content": ["plain string", {"type": "text", "text": 42}, {"type": "text", "text": "ok"}]}
        assert extract_text(result) == "ok"

    def test_missing_content(self):
        assert extract_text({}) == "{}"


class TestTruncateText:
    def test_within_budget_is_unchanged(self):
        """Test that text within both budgets is returned as is."""
        text = "abc\ndef\ngh"  # 3 lines, 10 bytes
        result = truncate_text(text, max_bytes=51200, max_lines=2000)

        assert result.content == text
        assert result.truncated is False
        assert result.total_lines == 3
        assert result.total_bytes == 10
        assert result.output_lines == 3

    def test_line_budget_keeps_tail(self):
        """Test that the line budget keeps the last lines."""
        lines = [f"line {i}" for i in range(50)]
        result = truncate_text("\n".join(lines), max_lines=10)

        assert result.truncated is True
        assert result.content == "\n".join(lines[-10:])
        assert result.output_lines == 10
        assert result.total_lines == 50

    def test_byte_budget_drops_partial_line(self):
        """Test that the byte budget drops the leading partial line."""
        lines = numbered_lines(1000)
        result = truncate_text("\n".join(lines), max_bytes=1050, max_lines=2000)

        assert result.truncated is True
        assert result.first_line_exceeds_limit is False
        assert result.content == "\n".join(lines[-10:])
        assert result.output_bytes <= 1050

    def test_byte_window_on_line_boundary_keeps_first_line(self):
        """Test that a window starting on a line boundary keeps that line."""
        result = truncate_text("aaaa\nbbbb\ncccc", max_bytes=9)
        assert result.content == "bbbb\ncccc"

    def test_both_budgets_exceeded(self):
        """Test that bytes are cut first, then lines."""
        lines = numbered_lines(1000)
        result = truncate_text("\n".join(lines), max_bytes=5000, max_lines=10)

        assert result.content == "\n".join(lines[-10:])
        assert result.output_bytes <= 5000
        assert result.output_lines <= 10

    def test_single_line_exceeding_byte_budget(self):
        """Test that one oversized line is cut to the budget and flagged."""
        result = truncate_text("x" * 100000)

        assert result.truncated is True
        assert result.first_line_exceeds_limit is True
        assert result.output_bytes == 51200
        assert result.content == "x" * 51200

    def test_single_line_with_trailing_newline(self):
        """Test that a newline ending the oversized line does not empty the output."""
        result = truncate_text("z" * 100000 + "\n")

        assert result.first_line_exceeds_limit is True
        assert result.content
        assert result.content == "z" * 51199 + "\n"
        assert result.output_bytes <= 51200

    def test_complete_last_line_after_oversized_line(self):
        """Test that a complete line fitting the window is kept on its own."""
        result = truncate_text("z" * 100000 + "\nok")

        assert result.content == "ok"
        assert result.first_line_exceeds_limit is False

    def test_multibyte_characters_are_not_split(self):
        """Test that the byte cut never splits a UTF-8 sequence."""
        result = truncate_text("é" * 30000, max_bytes=101)

        assert result.content == "é" * 50
        assert result.output_bytes == 100

    @pytest.mark.parametrize(
        "max_bytes,max_lines",
        [(1, 1), (64, 3), (500, 2000), (4096, 7), (51200, 2000)],
    )
    def test_output_respects_budgets(self, max_bytes, max_lines):
        """Test that both budgets hold across sizes."""
        text = "\n".join(f"{'ü' * (i % 37)}row {i}" for i in range(3000))
        result = truncate_text(text, max_bytes=max_bytes, max_lines=max_lines)

        assert len(result.content.encode("utf-8")) <= max_bytes
        assert result.content.count("\n") + 1 <= max_lines
        assert text.endswith(result.content)


class TestFormatToolOutput:
    def test_small_output_untouched(self, tmp_path):
        """Test that small output is untouched and writes no file."""
        formatted = format_tool_output(text_result("abc\ndef\ngh"), temp_dir=str(tmp_path))

        assert formatted.text == "abc\ndef\ngh"
        assert formatted.details.truncated is False
        assert formatted.details.temp_file is None
        assert list(tmp_path.iterdir()) == []

    def test_many_lines_keep_last_2000(self, tmp_path):
        """Test the default line budget and the saved full output."""
        lines = [f"line {i}" for i in range(5000)]
        original = "\n".join(lines)

        formatted = format_tool_output(text_result(original), temp_dir=str(tmp_path))
        content, notice = formatted.text.split("\n\n[Output truncated: ", 1)

        assert content == "\n".join(lines[-2000:])
        assert notice.startswith("2000 of 5000 lines")
        assert formatted.details.truncated is True
        assert formatted.details.total_lines == 5000

        temp_file = Path(formatted.details.temp_file)
        assert temp_file.parent == tmp_path
        assert temp_file.read_text(encoding="utf-8") == original
        assert str(temp_file) in notice

    def test_huge_single_line(self, tmp_path):
        """Test the notice for a single line over the byte budget."""
        formatted = format_tool_output(text_result("z" * 100000), temp_dir=str(tmp_path))
        content, notice = formatted.text.split("\n\n[Output truncated: ", 1)

        assert len(content.encode("utf-8")) <= 51200
        assert formatted.details.first_line_exceeds_limit is True
        assert notice.startswith("line exceeds 50.0KB limit")

    def test_huge_single_line_ending_in_newline(self, tmp_path):
        """Test the oversized-line notice when the text block ends with a newline."""
        formatted = format_tool_output(text_result("z" * 100000 + "\n"), temp_dir=str(tmp_path))
        content, notice = formatted.text.split("\n\n[Output truncated: ", 1)

        assert content.startswith("z")
        assert len(content.encode("utf-8")) <= 51200
        assert formatted.details.first_line_exceeds_limit is True
        assert notice.startswith("line exceeds 50.0KB limit")

    def test_output_metrics_describe_returned_text(self, tmp_path):
        """Test that output metrics count the returned text."""
        formatted = format_tool_output(
            text_result("\n".join(numbered_lines(100))),
            max_bytes=2000,
            max_lines=50,
            temp_dir=str(tmp_path),
        )

        assert formatted.details.output_bytes == len(formatted.text.encode("utf-8"))
        assert formatted.details.output_lines == formatted.text.count("\n") + 1
        assert formatted.details.total_bytes == 100 * 100 - 1

    def test_full_output_round_trip(self, tmp_path):
        """Test that the temp file holds the original text exactly."""
        original = "\n".join(f"résultat {i} — ✓" for i in range(300))
        formatted = format_tool_output(text_result(original), max_lines=20, temp_dir=str(tmp_path))

        with open(formatted.details.temp_file, encoding="utf-8", newline="") as f:
            assert f.read() == original


class TestHelpers:
    @pytest.mark.parametrize(
        "num_bytes,expected",
        [(0, "0B"), (1023, "1023B"), (1536, "1.5KB"), (51200, "50.0KB"), (2 * 1024 * 1024, "2.0MB")],
    )
    def test_format_bytes(self, num_bytes, expected):
        assert format_bytes(num_bytes) == expected

    def test_temp_files_are_unique(self, tmp_path):
        """Test that temp files never collide."""
        first = write_temp_file("same", directory=str(tmp_path))
        second = write_temp_file("same", directory=str(tmp_path))

        assert first != second
        assert Path(first).name.startswith("minimax-mcp-")
        assert Path(first).read_text(encoding="utf-8") == "same"
