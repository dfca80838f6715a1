# tests/test_directives.py
import pytest

from chatpatch.core.directives import (
    MAX_REQUESTED_PATHS,
    extract_directives,
    find_open_fence,
    parse_fenced_blocks,
    parse_path_directive,
    parse_requested_paths,
    parse_tool_call,
    strip_tool_blocks,
)
from chatpatch.core.errors import InvalidPath, ParseError
from chatpatch.core.models import (
    ApplyEdit, DeleteFile, DirectiveKind, RequestFiles, ToolCall, WriteFile,
)
from chatpatch.core.paths import normalize_rel_path


# --- parse_fenced_blocks ---

def test_blocks_returned_in_document_order():
    text = "intro\n```File \npath: a.py\nx = 1\n```\nmiddle\n```python\nprint(1)\n```\n"
    blocks = parse_fenced_blocks(text)
    assert [b.lang for b in blocks] == ["file", "python"]
    assert blocks[0].body == "path: a.py\nx = 1"
    assert blocks[1].body == "print(1)"


def test_unterminated_trailing_block_is_dropped():
    text = "```file\npath: a.py\nok\n```\n```edit\npath: b.py\n<<<<<<< SEARCH\n"
    blocks = parse_fenced_blocks(text)
    assert len(blocks) == 1
    assert blocks[0].lang == "file"


def test_crlf_is_normalized_and_body_trimmed():
    blocks = parse_fenced_blocks("```file\r\npath: a.py\r\nline1\r\nline2\r\n\r\n```")
    assert blocks[0].body == "path: a.py\nline1\nline2"


def test_no_fences_returns_empty_list():
    assert parse_fenced_blocks("just prose") == []
    assert parse_fenced_blocks("") == []


# --- parse_path_directive ---

def test_path_directive_splits_header_and_payload():
    parsed = parse_path_directive("\n\npath: 'src/app.py'\nline1\nline2")
    assert parsed.path == "src/app.py"
    assert parsed.payload == "line1\nline2"


def test_path_header_is_case_insensitive_and_strips_dot_slash():
    assert parse_path_directive("PATH: ./src/x.ts\n").path == "src/x.ts"


def test_missing_path_header_raises_parse_error():
    with pytest.raises(ParseError):
        parse_path_directive("print('no header')")
    with pytest.raises(ParseError):
        parse_path_directive("   \n  ")


@pytest.mark.parametrize("raw", ["/etc/passwd", "../secret", "a/../../b", "~/x", "C:\\x", "a\\b", "http://x"])
def test_paths_escaping_root_are_rejected(raw):
    with pytest.raises(InvalidPath):
        parse_path_directive(f"path: {raw}\ncontent")
    assert normalize_rel_path(raw) is None


# --- request / tool ---

def test_requested_paths_dedup_and_skip_invalid():
    body = "paths:\n- src/a.py\n- src/a.py\n- ../etc/passwd\n- \"src/b.py\"\n# comment\n"
    assert parse_requested_paths(body) == ["src/a.py", "src/b.py"]


def test_requested_paths_are_capped():
    body = "paths:\n" + "\n".join(f"- f{i}.txt" for i in range(MAX_REQUESTED_PATHS + 5))
    assert len(parse_requested_paths(body)) == MAX_REQUESTED_PATHS


def test_tool_call_parsing():
    call = parse_tool_call('{"name": "read_file", "args": {"path": "a.py"}}')
    assert call == ToolCall(name="read_file", args={"path": "a.py"})
    assert parse_tool_call('{"name": "list_files", "args": [1]}').args == {}
    assert parse_tool_call("{not json") is None
    assert parse_tool_call('{"args": {}}') is None


# --- extract_directives ---

def test_file_block_becomes_write_file():
    batch = extract_directives("Here:\n```file\npath: src/x.ts\nexport const x = 1;\n```\n")
    assert batch.errors == []
    assert batch.directives == [WriteFile(path="src/x.ts", content="export const x = 1;")]
    assert batch.directives[0].kind is DirectiveKind.WRITE_FILE


def test_all_directive_kinds_are_recognized():
    text = (
        "```edit\npath: a.py\n<<<<<<< SEARCH\nx\n=======\ny\n>>>>>>> REPLACE\n```\n"
        "```delete\npath: old.py\n```\n"
        "```request\npaths:\n- b.py\n```\n"
        "```tool\n{\"name\": \"list_files\", \"args\": {}}\n```\n"
        "```python\nprint('example only')\n```\n"
    )
    batch = extract_directives(text)
    kinds = [type(d) for d in batch.directives]
    assert kinds == [ApplyEdit, DeleteFile, RequestFiles, ToolCall]
    assert batch.directives[0].edits.startswith("<<<<<<< SEARCH")
    assert [d.path for d in batch.file_changes] == ["a.py", "old.py"]
    assert [c.name for c in batch.tool_calls] == ["list_files"]


def test_one_bad_block_does_not_lose_the_others():
    text = (
        "```file\nno header here\n```\n"
        "```file\npath: ../escape.txt\nboom\n```\n"
        "```file\npath: good.txt\nfine\n```\n"
        "```tool\nnot json\n```\n"
    )
    batch = extract_directives(text)
    assert batch.directives == [WriteFile(path="good.txt", content="fine")]
    assert [e.reason for e in batch.errors] == ["parse", "invalid-path"]
    assert batch.errors[0].message.startswith("Could not parse file block.")


def test_empty_request_block_is_reported():
    batch = extract_directives("```request\npaths:\n- /abs/path\n```")
    assert batch.directives == []
    assert batch.errors[0].lang == "request"


# --- display helpers ---

def test_strip_tool_blocks_keeps_prose():
    text = 'Let me look.\n```tool\n{"name": "list_files"}\n```\nDone.'
    assert strip_tool_blocks(text) == "Let me look.\n\nDone."


def test_find_open_fence_reports_lang_and_path():
    fence = find_open_fence("text\n```file\npath: src/a.py\npartial content")
    assert fence.lang == "file"
    assert fence.path == "src/a.py"
    assert find_open_fence("```file\npath: a\n```\n") is None
    assert find_open_fence("```\nloose").lang == "text"
