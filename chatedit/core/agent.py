# chatedit/core/agent.py
"""
Agent 循环: 每一步先在暂存区打检查点，再向模型请求回复，
把回复中的 file/edit 块和工具调用全部暂存，直到模型不再调用工具。

所有变更都停留在暂存区，由调用方决定审阅、应用、回滚或丢弃。
取消后已暂存的变更保留，不会被静默丢弃。
"""

import logging
import threading
from typing import List, Optional

from chatpatch.core.directives import extract_directives, find_open_fence, strip_tool_blocks
from chatpatch.core.errors import ChatPatchError
from chatpatch.core.models import (
    ApplyEdit, DeleteFile, Directive, RequestFiles, ToolCall, WriteFile,
)
from chatpatch.storage.staging import StagedMutationStore

from .client import ChatMessage, ModelClient
from .models import AgentRunResult
from .prompts import PromptRenderer
from .tools import ToolExecutor

logger = logging.getLogger(__name__)


class AgentRunner:
    def __init__(
        self,
        store: StagedMutationStore,
        client: ModelClient,
        tools: Optional[ToolExecutor] = None,
        prompts: Optional[PromptRenderer] = None,
        max_steps: int = 6,
        max_continuations: int = 1,
    ):
        self.store = store
        self.client = client
        self.tools = tools or ToolExecutor(store)
        self.prompts = prompts or PromptRenderer()
        self.max_steps = max(1, max_steps)
        self.max_continuations = max(0, max_continuations)

    def _complete(self, messages: List[ChatMessage]) -> str:
        """请求回复；末尾有未闭合的围栏时请求续写"""
        text = self.client.complete(messages)
        for _ in range(self.max_continuations):
            if not find_open_fence(text):
                break
            logger.info("Response ended inside an open fence; requesting continuation")
            more = self.client.complete(messages + [
                {"role": "assistant", "content": text},
                {"role": "user", "content": self.prompts.continuation(text)},
            ])
            if not more:
                break
            text += more
        return text

    def _dispatch(self, directive: Directive, result: AgentRunResult, requested: List[str]) -> Optional[str]:
        """执行单条指令，返回要反馈给模型的结果文本（None 表示无反馈）"""
        if isinstance(directive, WriteFile):
            try:
                change = self.store.stage_write(directive.path, directive.content)
            except ChatPatchError as e:
                return f"file failed: {e}"
            logger.info("Staged file block for %s", change.path)
            return f"file: staged {change.path}"
        if isinstance(directive, ApplyEdit):
            return self.tools.execute(ToolCall(name="apply_edit", args={"path": directive.path, "edits": directive.edits}))
        if isinstance(directive, DeleteFile):
            result.skipped_deletes.append(directive.path)
            logger.info("Skipping delete of %s in agent mode", directive.path)
            return f"delete: skipped {directive.path} (deletes must be applied directly)"
        if isinstance(directive, RequestFiles):
            requested.extend(p for p in directive.paths if p not in requested)
            return None
        if isinstance(directive, ToolCall):
            return self.tools.execute(directive)
        raise TypeError(f"Unhandled directive: {directive!r}")

    def run(self, user_text: str, cancel_event: Optional[threading.Event] = None) -> AgentRunResult:
        result = AgentRunResult()
        messages: List[ChatMessage] = [
            {"role": "system", "content": self.prompts.agent_system_prompt(self.tools.specs)},
            {"role": "user", "content": user_text},
        ]
        display_chunks: List[str] = []

        def cancelled() -> bool:
            return cancel_event is not None and cancel_event.is_set()

        for step in range(1, self.max_steps + 1):
            if cancelled():
                result.cancelled = True
                break

            self.store.begin_step(f"Step {step}")
            assistant_text = self._complete(messages)
            result.steps = step

            display = strip_tool_blocks(assistant_text)
            if display:
                display_chunks.append(display)

            batch = extract_directives(assistant_text)
            for err in batch.errors:
                result.errors.append(f"{err.lang}: {err.message}")

            step_results: List[str] = [f"{err.lang} failed: {err.message}" for err in batch.errors]
            requested: List[str] = []
            for directive in batch.directives:
                if cancelled():
                    result.cancelled = True
                    break
                outcome = self._dispatch(directive, result, requested)
                if outcome is not None:
                    step_results.append(outcome)
            result.tool_results.extend(step_results)

            if result.cancelled:
                logger.info("Agent run cancelled at step %d; staged changes kept", step)
                break
            if not batch.tool_calls and not requested:
                logger.info("Step %d: no tool calls required; finishing", step)
                break

            logger.info("Step %d: executed %d tool call(s)", step, len(batch.tool_calls))
            messages.append({"role": "assistant", "content": assistant_text})
            feedback: List[str] = []
            if step_results:
                feedback.append(self.prompts.tool_results(step, step_results))
            if requested:
                files = [
                    {"path": p, "content": self.store.read_file(p, self.tools.max_read_chars)}
                    for p in requested
                ]
                feedback.append(self.prompts.requested_files(files))
            messages.append({"role": "user", "content": "\n\n".join(feedback)})

        result.display = "\n\n".join(display_chunks)
        result.staged = self.store.list_staged()
        return result
