"""信号解析器测试。

覆盖：
- 多行块与自闭合块
- 属性解析（重复键、格式错误）
- 旧版完成标记
- 块内再次出现开标记
- reset() 幂等性
- Signal 模型与 SignalType
"""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from cli_agent_signals.signals import (
    Signal,
    SignalParser,
    SignalType,
    make_signal,
    parse_attrs,
    parse_signals,
)


@pytest.fixture
def parser() -> SignalParser:
    return SignalParser()


class TestMultiLineBlocks:
    """测试多行信号块。"""

    def test_returns_signal_only_on_close(self, parser: SignalParser):
        """开标记和正文行返回 None，闭标记行返回信号。"""
        assert parser.feed('<!-- SIGNAL:TASK_COMPLETE task="T1" -->') is None
        assert parser.pending
        assert parser.feed("Done") is None

        signal = parser.feed("<!-- /SIGNAL -->")
        assert signal == Signal(
            type=SignalType.TASK_COMPLETE,
            attrs={"task": "T1"},
            body="Done",
        )
        assert not parser.pending

    def test_body_joined_and_trimmed(self, parser: SignalParser):
        """正文按换行拼接，只去除首尾空白。"""
        lines = [
            "<!-- SIGNAL:PLAN_COMPLETE plans=\"3\" waves=\"2\" -->",
            "",
            "  first",
            "    nested",
            "",
            "<!-- /SIGNAL -->",
        ]
        signals = list(parser.feed_lines(lines))
        assert len(signals) == 1
        assert signals[0].body == "first\n    nested"
        assert signals[0].attrs == {"plans": "3", "waves": "2"}

    def test_empty_body(self, parser: SignalParser):
        parser.feed("<!-- SIGNAL:CHECKPOINT type=\"decision\" -->")
        signal = parser.feed("<!-- /SIGNAL -->")
        assert signal is not None
        assert signal.body == ""

    def test_close_marker_with_surrounding_text(self, parser: SignalParser):
        """闭标记可以出现在行内任意位置。"""
        parser.feed("<!-- SIGNAL:VERIFICATION status=\"passed\" score=\"5/5\" -->")
        parser.feed("all checks green")
        signal = parser.feed("end of report <!-- /SIGNAL --> trailing")
        assert signal is not None
        assert signal.type is SignalType.VERIFICATION
        assert signal.body == "all checks green"

    def test_close_without_open_is_ignored(self, parser: SignalParser):
        assert parser.feed("<!-- /SIGNAL -->") is None
        assert not parser.pending

    def test_plain_lines_ignored(self, parser: SignalParser):
        assert parser.feed("just some agent chatter") is None
        assert parser.feed("") is None
        assert not parser.pending

    def test_nested_open_is_body_text(self, parser: SignalParser):
        """块未闭合时出现的开标记被当作正文。"""
        parser.feed("<!-- SIGNAL:BLOCKED reason=\"outer\" -->")
        assert parser.feed("<!-- SIGNAL:ERROR code=\"inner\" -->") is None
        signal = parser.feed("<!-- /SIGNAL -->")

        assert signal is not None
        assert signal.type is SignalType.BLOCKED
        assert signal.attrs == {"reason": "outer"}
        assert signal.body == '<!-- SIGNAL:ERROR code="inner" -->'

    def test_whitespace_tolerant_markers(self, parser: SignalParser):
        parser.feed("<!--SIGNAL:COMPLETE-->")
        signal = parser.feed("<!--   /SIGNAL   -->")
        assert signal is not None
        assert signal.type is SignalType.COMPLETE


class TestSelfClosingBlocks:
    """测试同一行的自闭合块。"""

    def test_self_closing_with_body(self, parser: SignalParser):
        signal = parser.feed(
            '<!-- SIGNAL:BLOCKED reason="missing credentials" -->  Need an API key  <!-- /SIGNAL -->'
        )
        assert signal is not None
        assert signal.type is SignalType.BLOCKED
        assert signal.attrs == {"reason": "missing credentials"}
        assert signal.body == "Need an API key"
        assert not parser.pending

    def test_self_closing_empty_body(self, parser: SignalParser):
        signal = parser.feed('<!-- SIGNAL:REVIEW_COMPLETE findings="0" --><!-- /SIGNAL -->')
        assert signal is not None
        assert signal.body == ""
        assert signal.attrs == {"findings": "0"}

    def test_self_closing_does_not_touch_state(self, parser: SignalParser):
        """自闭合块不影响后续行。"""
        parser.feed('<!-- SIGNAL:CHECKPOINT type="human-verify" --><!-- /SIGNAL -->')
        assert parser.feed("<!-- /SIGNAL -->") is None

    def test_close_before_open_starts_block(self, parser: SignalParser):
        """闭标记出现在开标记之前时，不算自闭合。"""
        assert parser.feed('<!-- /SIGNAL --> <!-- SIGNAL:ERROR code="E2" -->') is None
        assert parser.pending
        signal = parser.feed("<!-- /SIGNAL -->")
        assert signal is not None
        assert signal.attrs == {"code": "E2"}

    def test_text_before_open_marker(self, parser: SignalParser):
        signal = parser.feed('prefix <!-- SIGNAL:ERROR code="E1" -->boom<!-- /SIGNAL -->')
        assert signal is not None
        assert signal.body == "boom"


class TestAttributes:
    """测试属性解析。"""

    def test_duplicate_keys_last_wins(self, parser: SignalParser):
        signal = parser.feed('<!-- SIGNAL:TASK_COMPLETE task="T1" task="T2" --><!-- /SIGNAL -->')
        assert signal is not None
        assert signal.attrs == {"task": "T2"}

    def test_values_with_spaces_and_punctuation(self):
        attrs = parse_attrs(' files="src/a.py, src/b.py" commit="abc123" reasoning="it\'s big"')
        assert attrs == {
            "files": "src/a.py, src/b.py",
            "commit": "abc123",
            "reasoning": "it's big",
        }

    def test_empty_value(self):
        assert parse_attrs(' summary=""') == {"summary": ""}

    def test_unquoted_attribute_is_not_a_signal(self, parser: SignalParser):
        """格式错误的属性不会抛出异常，只是识别不到信号。"""
        assert parser.feed("<!-- SIGNAL:TASK_COMPLETE task=T1 -->") is None
        assert not parser.pending

    def test_no_attributes(self, parser: SignalParser):
        signal = parser.feed("<!-- SIGNAL:COMPLETE --><!-- /SIGNAL -->")
        assert signal is not None
        assert signal.attrs == {}


class TestLegacyMarker:
    """测试旧版 <promise>COMPLETE</promise> 标记。"""

    def test_legacy_marker_anywhere_in_line(self, parser: SignalParser):
        signal = parser.feed("I am done <promise>COMPLETE</promise> bye")
        assert signal == Signal(type=SignalType.COMPLETE)
        assert signal.attrs == {}
        assert signal.body == ""

    def test_legacy_marker_takes_priority_over_markers(self, parser: SignalParser):
        signal = parser.feed(
            '<!-- SIGNAL:ERROR code="x" --><promise>COMPLETE</promise><!-- /SIGNAL -->'
        )
        assert signal is not None
        assert signal.type is SignalType.COMPLETE

    def test_legacy_marker_mid_block_keeps_block_open(self, parser: SignalParser):
        """块未闭合时遇到旧版标记：产生 COMPLETE，块保持打开。"""
        parser.feed('<!-- SIGNAL:TASK_COMPLETE task="T3" -->')
        parser.feed("step one")

        legacy = parser.feed("<promise>COMPLETE</promise>")
        assert legacy is not None
        assert legacy.type is SignalType.COMPLETE
        assert parser.pending

        parser.feed("step two")
        signal = parser.feed("<!-- /SIGNAL -->")
        assert signal is not None
        assert signal.type is SignalType.TASK_COMPLETE
        assert signal.body == "step one\nstep two"


class TestReset:
    """测试 reset()。"""

    def test_reset_discards_pending(self, parser: SignalParser):
        parser.feed("<!-- SIGNAL:BLOCKED reason=\"r\" -->")
        parser.feed("partial")
        parser.reset()

        assert not parser.pending
        assert parser.feed("<!-- /SIGNAL -->") is None

    def test_reset_then_refeed_is_idempotent(self):
        """中断后 reset 再完整喂入，结果与不中断一致。"""
        block = [
            '<!-- SIGNAL:ITERATION_ESTIMATE suggested="4" complexity="medium" -->',
            "Two modules, one migration.",
            "<!-- /SIGNAL -->",
        ]

        uninterrupted = list(SignalParser().feed_lines(block))

        parser = SignalParser()
        parser.feed(block[0])
        parser.feed(block[1])
        parser.reset()
        refed = list(parser.feed_lines(block))

        assert refed == uninterrupted
        assert len(refed) == 1

    def test_reset_when_idle(self, parser: SignalParser):
        parser.reset()
        assert not parser.pending


class TestParseSignals:
    """测试整段文本解析。"""

    def test_order_preserved(self):
        findings = "\n".join(
            f'<!-- SIGNAL:REVIEW_FINDING id="F{i}" -->\nfinding {i}\n<!-- /SIGNAL -->'
            for i in range(1, 6)
        )
        text = (
            "review starting\n"
            + findings
            + '\n<!-- SIGNAL:REVIEW_COMPLETE findings="5" --><!-- /SIGNAL -->\n'
        )

        signals = parse_signals(text)

        assert len(signals) == 6
        assert [s.get("id") for s in signals[:5]] == ["F1", "F2", "F3", "F4", "F5"]
        assert signals[-1].type is SignalType.REVIEW_COMPLETE

    def test_unterminated_block_yields_nothing(self):
        assert parse_signals('<!-- SIGNAL:BLOCKED reason="x" -->\nnever closed') == []

    def test_empty_text(self):
        assert parse_signals("") == []


class TestSignalType:
    """测试 SignalType。"""

    def test_known_tag(self):
        assert SignalType.from_tag("TASK_COMPLETE") is SignalType.TASK_COMPLETE

    def test_unknown_tag_maps_to_other(self):
        assert SignalType.from_tag("DEPLOY_DONE") is SignalType.OTHER

    def test_tags_are_case_sensitive(self):
        assert SignalType.from_tag("task_complete") is SignalType.OTHER

    def test_unknown_tag_preserved_on_signal(self, parser: SignalParser):
        signal = parser.feed('<!-- SIGNAL:DEPLOY_DONE env="prod" --><!-- /SIGNAL -->')
        assert signal is not None
        assert signal.type is SignalType.OTHER
        assert signal.tag == "DEPLOY_DONE"
        assert not signal.is_known


class TestSignalModel:
    """测试 Signal 模型。"""

    def test_tag_defaults_to_type_value(self):
        signal = Signal(type=SignalType.BLOCKED, attrs={"reason": "r"})
        assert signal.tag == "BLOCKED"
        assert signal.is_known

    def test_type_from_string(self):
        signal = Signal(type="CHECKPOINT")
        assert signal.type is SignalType.CHECKPOINT

    def test_invalid_type_rejected(self):
        with pytest.raises(ValidationError):
            Signal(type="NOT_A_TYPE")

    def test_frozen(self):
        signal = make_signal("ERROR", {"code": "E1"}, "boom")
        with pytest.raises((ValidationError, TypeError)):
            signal.body = "changed"  # type: ignore[misc]

    def test_get_attribute(self):
        signal = make_signal("TASK_COMPLETE", {"task": "T1"})
        assert signal.get("task") == "T1"
        assert signal.get("commit") is None
        assert signal.get("commit", "none") == "none"

    def test_model_dump(self):
        signal = make_signal("VERIFICATION", {"status": "passed"}, "ok")
        assert signal.model_dump(mode="json") == {
            "type": "VERIFICATION",
            "tag": "VERIFICATION",
            "attrs": {"status": "passed"},
            "body": "ok",
        }

    def test_str(self):
        signal = make_signal("TASK_COMPLETE", {"task": "T1"})
        assert str(signal) == 'Signal(TASK_COMPLETE task="T1")'
