"""Tests for pure message operations."""

from __future__ import annotations

import pytest

from wavecore.conversation import operations as ops
from wavecore.types.blocks import (
    CommandOutputBlock,
    CompressBlock,
    DiffBlock,
    ErrorBlock,
    ImageBlock,
    MemoryBlock,
    MemoryType,
    MessageRole,
    Messages,
    TextBlock,
    TextSource,
    ToolBlock,
    ToolImage,
)


def _with_assistant() -> Messages:
    messages = ops.add_user_message((), "hello")
    messages = ops.add_assistant_message(messages)
    return ops.add_answer_block(messages)


class TestMessages:
    def test_user_message_with_images(self) -> None:
        messages = ops.add_user_message((), "look", ["a.png"])
        (message,) = messages
        assert message.role == MessageRole.USER
        assert message.blocks == (TextBlock(content="look"), ImageBlock(image_urls=("a.png",)))

    def test_operations_do_not_mutate_input(self) -> None:
        before = _with_assistant()
        after = ops.update_answer_block(before, "hi")
        assert before[-1].blocks[0].content == ""
        assert after[-1].blocks[0].content == "hi"
        assert before[0] is after[0]

    def test_update_answer_block_without_assistant_is_noop(self) -> None:
        messages = ops.add_user_message((), "x")
        assert ops.update_answer_block(messages, "y") is messages


class TestToolBlocks:
    def test_lifecycle(self) -> None:
        messages = ops.add_tool_block(_with_assistant(), "t1", "read", '{"path": "a"}')
        block = messages[-1].blocks[-1]
        assert isinstance(block, ToolBlock)
        assert not block.is_running and not block.is_finished

        messages = ops.update_tool_block(messages, "t1", is_running=True)
        messages = ops.update_tool_block(messages, "t1", is_running=False, success=True, result="data")
        block = messages[-1].blocks[-1]
        assert block.is_finished
        assert block.result == "data"

    def test_finished_block_is_not_updated_again(self) -> None:
        messages = ops.add_tool_block(_with_assistant(), "t1", "read")
        messages = ops.update_tool_block(messages, "t1", success=True, result="first")
        again = ops.update_tool_block(messages, "t1", success=False, result="second")
        assert again is messages

    def test_unknown_id_is_noop(self) -> None:
        messages = _with_assistant()
        assert ops.update_tool_block(messages, "missing", success=True) is messages

    def test_unknown_field_rejected(self) -> None:
        with pytest.raises(TypeError):
            ops.update_tool_block(_with_assistant(), "t1", colour="red")

    def test_add_refreshes_pending_block(self) -> None:
        messages = ops.add_tool_block(_with_assistant(), "t1", "read", '{"pa')
        messages = ops.add_tool_block(messages, "t1", "read", '{"path": "a"}')
        tool_blocks = [b for b in messages[-1].blocks if isinstance(b, ToolBlock)]
        assert len(tool_blocks) == 1
        assert tool_blocks[0].parameters == '{"path": "a"}'

    def test_images_coerced(self) -> None:
        messages = ops.add_tool_block(_with_assistant(), "t1", "shot")
        messages = ops.update_tool_block(
            messages, "t1", success=True, images=[{"data": "AAA", "media_type": "image/jpeg"}],
        )
        assert messages[-1].blocks[-1].images == (ToolImage(data="AAA", media_type="image/jpeg"),)


class TestOtherBlocks:
    def test_error_block_creates_assistant_message(self) -> None:
        messages = ops.add_error_block(ops.add_user_message((), "x"), "boom")
        assert messages[-1].role == MessageRole.ASSISTANT
        assert messages[-1].blocks == (ErrorBlock(content="boom"),)

    def test_error_block_appends_to_assistant(self) -> None:
        messages = ops.add_error_block(_with_assistant(), "boom")
        assert len(messages) == 2
        assert messages[-1].blocks[-1] == ErrorBlock(content="boom")

    def test_diff_block(self) -> None:
        messages = ops.add_diff_block(_with_assistant(), "a.py", [{"op": "+"}], "old", "new")
        assert messages[-1].blocks[-1] == DiffBlock(path="a.py", diff_result=[{"op": "+"}], original="old", modified="new")

    def test_memory_block_is_new_message(self) -> None:
        messages = ops.add_memory_block(_with_assistant(), "Project Memory: x", True, MemoryType.PROJECT, "/p/AGENTS.md")
        assert len(messages) == 3
        assert isinstance(messages[-1].blocks[0], MemoryBlock)

    def test_compress_block_inserted(self) -> None:
        messages = ops.add_user_message((), "a")
        messages = ops.add_user_message(messages, "b")
        messages = ops.add_compress_block(messages, 1, "summary")
        assert [type(m.blocks[0]) for m in messages] == [TextBlock, CompressBlock, TextBlock]
        assert len(messages) == 3


class TestCommandOutput:
    def test_flow(self) -> None:
        messages = ops.add_command_output_message((), "ls")
        messages = ops.update_command_output(messages, "ls", "a\nb\n\n")
        messages = ops.complete_command(messages, "ls", 0)
        assert messages[-1].blocks[0] == CommandOutputBlock(command="ls", output="a\nb", is_running=False, exit_code=0)

    def test_targets_latest_running_block(self) -> None:
        messages = ops.add_command_output_message((), "ls")
        messages = ops.complete_command(messages, "ls", 0)
        messages = ops.add_command_output_message(messages, "ls")
        messages = ops.update_command_output(messages, "ls", "second")
        assert messages[0].blocks[0].output == ""
        assert messages[1].blocks[0].output == "second"


class TestCompressionBoundary:
    def _users(self, count: int) -> Messages:
        messages: Messages = ()
        for i in range(count):
            messages = ops.add_user_message(messages, f"m{i}")
        return messages

    def test_keeps_last_seven(self) -> None:
        prefix, index = ops.get_messages_to_compress(self._users(10))
        assert index == 3
        assert [m.blocks[0].content for m in prefix] == ["m0", "m1", "m2"]

    def test_short_history(self) -> None:
        prefix, index = ops.get_messages_to_compress(self._users(5))
        assert prefix == ()
        assert index == 0

    def test_does_not_resummarize(self) -> None:
        messages = ops.add_compress_block(self._users(10), 3, "summary")
        prefix, _ = ops.get_messages_to_compress(messages)
        assert prefix == ()

    def test_new_material_after_summary(self) -> None:
        messages = ops.add_compress_block(self._users(10), 3, "summary")
        for i in range(3):
            messages = ops.add_user_message(messages, f"n{i}")
        prefix, index = ops.get_messages_to_compress(messages)
        assert index == len(messages) - 7
        assert prefix[-1].blocks[0].content == "m5"


def test_extract_user_input_history() -> None:
    messages = ops.add_user_message((), "first")
    messages = ops.add_user_message(messages, "hook text", source=TextSource.HOOK)
    messages = ops.add_user_message(messages, "   ")
    messages = ops.add_user_message(messages, "second")
    assert ops.extract_user_input_history(messages) == ["first", "second"]
