# tests/test_cli.py
import json
import os
import shutil
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from click.testing import CliRunner

from chatedit.cli import cli

FILE_RESPONSE = "Creating the module.\n```file\npath: src/x.ts\nexport const x = 1;\n```\n"
EDIT_RESPONSE = "```edit\npath: a.txt\n<<<<<<< SEARCH\nb\n=======\nB\n>>>>>>> REPLACE\n```\n"


class TestChatEditCLI(unittest.TestCase):

    def setUp(self):
        """Set up an isolated project directory before each test."""
        self.test_dir = tempfile.mkdtemp()
        self.original_cwd = Path.cwd()
        os.chdir(self.test_dir)
        self.runner = CliRunner()
        Path("a.txt").write_text("a\nb\nc\n", encoding="utf-8")

    def tearDown(self):
        os.chdir(self.original_cwd)
        shutil.rmtree(self.test_dir, ignore_errors=True)

    def write_response(self, name: str, text: str) -> str:
        Path(name).write_text(text, encoding="utf-8")
        return name

    # --- init / validate ---
    def test_init_with_defaults_and_validate(self):
        result = self.runner.invoke(cli, ['init', '--defaults'])
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertTrue(Path(".chatedit/config.yaml").exists())
        self.assertIn("Generated", result.output)

        result = self.runner.invoke(cli, ['validate'])
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("配置内容验证通过", result.output)

    def test_init_does_not_overwrite_without_confirmation(self):
        Path(".chatedit").mkdir()
        Path(".chatedit/config.yaml").write_text("max_undo_batches: 3\n", encoding="utf-8")
        result = self.runner.invoke(cli, ['init', '--defaults'], input='n\n')
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertEqual(Path(".chatedit/config.yaml").read_text(encoding="utf-8"), "max_undo_batches: 3\n")

    def test_validate_without_config_aborts(self):
        result = self.runner.invoke(cli, ['validate'])
        self.assertNotEqual(result.exit_code, 0)
        self.assertIn("not found", result.output)

    # --- parse ---
    def test_parse_lists_directives_and_errors(self):
        name = self.write_response("resp.md", FILE_RESPONSE + "```file\npath: /etc/passwd\nx\n```\n")
        result = self.runner.invoke(cli, ['parse', name])
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("src/x.ts", result.output)
        self.assertIn("[invalid-path]", result.output)

    # --- apply / undo / status ---
    def test_apply_then_undo(self):
        name = self.write_response("resp.md", FILE_RESPONSE + EDIT_RESPONSE)
        result = self.runner.invoke(cli, ['apply', name, '--yes'])
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertEqual(Path("src/x.ts").read_text(encoding="utf-8"), "export const x = 1;")
        self.assertEqual(Path("a.txt").read_text(encoding="utf-8"), "a\nB\nc\n")
        self.assertIn("Apply 2 file(s)", result.output)

        result = self.runner.invoke(cli, ['status'])
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("Undo stack", result.output)

        result = self.runner.invoke(cli, ['undo'])
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertFalse(Path("src/x.ts").exists())
        self.assertEqual(Path("a.txt").read_text(encoding="utf-8"), "a\nb\nc\n")

        result = self.runner.invoke(cli, ['undo'])
        self.assertIn("Nothing to undo", result.output)

    def test_apply_prompts_and_respects_refusal(self):
        name = self.write_response("resp.md", FILE_RESPONSE)
        result = self.runner.invoke(cli, ['apply', name], input='n\n')
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertFalse(Path("src/x.ts").exists())
        self.assertIn("Skipped src/x.ts", result.output)

    def test_dry_run_writes_nothing(self):
        name = self.write_response("resp.md", EDIT_RESPONSE)
        result = self.runner.invoke(cli, ['apply', name, '--dry-run'])
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("+B", result.output)
        self.assertEqual(Path("a.txt").read_text(encoding="utf-8"), "a\nb\nc\n")
        self.assertFalse(Path(".chatedit/undo.json").exists())

    def test_apply_reports_failed_edit(self):
        name = self.write_response("resp.md", EDIT_RESPONSE.replace("SEARCH\nb", "SEARCH\nzzz"))
        result = self.runner.invoke(cli, ['apply', name, '--yes'])
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("[search-not-found]", result.output)

    # --- agent ---
    def test_agent_apply_writes_staged_changes(self):
        step1 = self.write_response("step1.md", '```tool\n{"name": "read_file", "args": {"path": "a.txt"}}\n```')
        step2 = self.write_response("step2.md", EDIT_RESPONSE)
        result = self.runner.invoke(cli, ['agent', step1, step2, '--apply'])
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertEqual(Path("a.txt").read_text(encoding="utf-8"), "a\nB\nc\n")
        self.assertIn("Agent apply (1 file(s))", result.output)

        undo_data = json.loads(Path(".chatedit/undo.json").read_text(encoding="utf-8"))
        self.assertEqual(undo_data["batches"][0]["label"], "Agent apply (1 file(s))")

    def test_agent_discard_leaves_disk_untouched(self):
        name = self.write_response("resp.md", FILE_RESPONSE)
        result = self.runner.invoke(cli, ['agent', name, '--discard'])
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("Agent staged 1 file(s)", result.output)
        self.assertFalse(Path("src/x.ts").exists())

    def test_agent_rejects_conflicting_flags(self):
        name = self.write_response("resp.md", FILE_RESPONSE)
        result = self.runner.invoke(cli, ['agent', name, '--apply', '--discard'])
        self.assertNotEqual(result.exit_code, 0)

    @patch('chatedit.core.confirm.console.choose')
    @patch('chatedit.core.confirm.console.confirm')
    def test_agent_review_apply_all(self, mock_confirm, mock_choose):
        mock_choose.return_value = "Apply all"
        mock_confirm.return_value = True
        name = self.write_response("resp.md", FILE_RESPONSE)
        result = self.runner.invoke(cli, ['agent', name])
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertTrue(Path("src/x.ts").exists())
        options = mock_choose.call_args[0][1]
        self.assertEqual(options, ["Apply all", "Discard all", "Preview src/x.ts"])
        mock_confirm.assert_not_called()

    # --- history ---
    def test_history_list_and_restore(self):
        name = self.write_response("resp.md", EDIT_RESPONSE)
        self.runner.invoke(cli, ['apply', name, '--yes'])
        history = json.loads(Path(".chatedit/session-history.json").read_text(encoding="utf-8"))
        snapshot_id = history[0]["id"]

        result = self.runner.invoke(cli, ['history', 'list'])
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("Apply a.txt", result.output)

        result = self.runner.invoke(cli, ['history', 'restore', snapshot_id, '--yes'])
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertEqual(Path("a.txt").read_text(encoding="utf-8"), "a\nb\nc\n")
        self.assertIn("Restored snapshot", result.output)

        result = self.runner.invoke(cli, ['history', 'restore', 'no-such-id', '--yes'])
        self.assertIn("not found", result.output)


if __name__ == '__main__':
    unittest.main()
