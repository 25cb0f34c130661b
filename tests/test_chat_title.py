"""Unit tests for chat title derivation."""

import pytest

from cybertrace.services.chat_title import generate_chat_title, should_update_title


class TestGenerateChatTitle:
    @pytest.mark.parametrize(
        "message",
        ["Show devices", "x", "List all interfaces with MTU above 9000", "a" * 40],
    )
    def test_short_messages_are_used_verbatim(self, message):
        """Test messages of up to 40 characters become the title unchanged."""
        assert generate_chat_title(message) == message

    def test_surrounding_whitespace_is_stripped(self):
        """Test surrounding whitespace is stripped."""
        assert generate_chat_title("   Show devices \n") == "Show devices"

    @pytest.mark.parametrize("message", [None, "", "   "])
    def test_blank_message_gets_placeholder(self, message):
        """Test blank messages get the placeholder title."""
        assert generate_chat_title(message) == "New Chat"

    def test_long_message_cut_at_word_boundary_near_35(self):
        """Test long messages are cut at a word boundary with an ellipsis."""
        message = "Show me BGP sessions in NotEstd state across namespace suzieq-demo please"
        assert len(message) > 40

        title = generate_chat_title(message)

        assert title == "Show me BGP sessions in NotEstd..."
        assert message.startswith(title[:-3])

    def test_sentence_break_inside_window_wins(self):
        """Test a sentence break inside the window ends the title."""
        message = "Check the spine switches. Then look at every leaf in the fabric"
        assert generate_chat_title(message) == "Check the spine switches"

    def test_question_break_inside_window(self):
        """Test a question mark inside the window ends the title."""
        message = "Which devices are down right now? I need a report for the team"
        assert generate_chat_title(message) == "Which devices are down right now"

    def test_break_too_early_is_ignored(self):
        """Test a break in the first few characters is ignored."""
        message = "Hi. Please show me the OSPF neighbors on leaf01 and their states"
        title = generate_chat_title(message)
        assert title != "Hi"
        assert title.endswith("...")

    def test_conjunction_break(self):
        """Test the title stops before a conjunction."""
        message = "Compare the BGP peers and the OSPF adjacencies on all spines today"
        assert generate_chat_title(message) == "Compare the BGP peers"

    def test_no_space_falls_back_to_hard_cut(self):
        """Test text without spaces is cut hard."""
        message = "x" * 60
        assert generate_chat_title(message) == "x" * 35 + "..."

    def test_long_title_stays_short(self):
        """Test a derived title never exceeds the cut plus the ellipsis."""
        message = "interfaces " * 20
        assert len(generate_chat_title(message)) <= 38


class TestShouldUpdateTitle:
    @pytest.mark.parametrize("title", ["New Chat", "new chat", "Chat", "chat", "", "  ", None])
    def test_placeholder_titles_are_replaced(self, title):
        """Test placeholder titles may be replaced."""
        assert should_update_title(title) is True

    @pytest.mark.parametrize("title", ["BGP issues", "New Chat about BGP", "Chats"])
    def test_real_titles_are_kept(self, title):
        """Test real titles are kept."""
        assert should_update_title(title) is False
