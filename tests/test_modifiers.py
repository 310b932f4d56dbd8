"""Tests for modifier list decoding."""

import pytest

from rxtest.constants import (
    CTL_DEBUG,
    CompileOption as CO,
    Control as CTL,
    MatchOption as MO,
    Newline,
    Bsr,
)
from rxtest.errors import ModifierError
from rxtest.modifiers import (
    MODIFIERS,
    ContextSet,
    Ctx,
    DataControl,
    PatternControl,
    apply_modifiers,
    scan_modifiers,
)


@pytest.fixture
def contexts():
    return ContextSet()


def pattern_mods(text, contexts=None, pctl=None):
    pctl = pctl or PatternControl()
    apply_modifiers(text, Ctx.PAT, contexts or ContextSet(), pctl=pctl)
    return pctl


def data_mods(text, contexts=None, dctl=None):
    dctl = dctl or DataControl()
    apply_modifiers(text, Ctx.DAT, contexts or ContextSet(), dctl=dctl)
    return dctl


class TestTable:
    """The modifier table itself."""

    def test_sorted(self):
        """Names are in collating order for the binary chop."""
        names = [m.name for m in MODIFIERS]
        assert names == sorted(names)

    def test_lookup(self):
        """Every name can be found."""
        for index, modifier in enumerate(MODIFIERS):
            assert scan_modifiers(modifier.name) == index

    def test_lookup_agrees_with_linear_search(self):
        """Prefixes and suffixes of names are found only when they are names."""
        names = [m.name for m in MODIFIERS]
        for name in names:
            for cut in range(len(name) + 1):
                for part in (name[:cut], name[cut:]):
                    expected = names.index(part) if part in names else -1
                    assert scan_modifiers(part) == expected, part

    def test_missing(self):
        """Unknown names are not found."""
        assert scan_modifiers("nosuch") == -1
        assert scan_modifiers("") == -1


class TestPatternModifiers:
    """Modifiers on pattern lines."""

    def test_options(self):
        """Option modifiers set compile option bits."""
        pctl = pattern_mods("caseless,utf")
        assert pctl.options == CO.CASELESS | CO.UTF

    def test_controls(self):
        """Control modifiers set control bits."""
        pctl = pattern_mods("aftertext,info")
        assert pctl.control == CTL.AFTERTEXT | CTL.INFO

    def test_debug(self):
        """debug is info plus fullbytecode."""
        assert pattern_mods("debug").control == CTL_DEBUG

    def test_abbreviations(self):
        """Single letters can be run together."""
        pctl = pattern_mods("imsx")
        assert pctl.options == CO.CASELESS | CO.MULTILINE | CO.DOTALL | CO.EXTENDED

    def test_doubled_abbreviation(self):
        """A doubled letter is a different modifier."""
        assert pattern_mods("gg").control == CTL.ALTGLOBAL
        assert pattern_mods("BB").control == CTL.FULLBYTECODE

    def test_abbreviations_then_names(self):
        """Letters may be followed by full names."""
        pctl = pattern_mods("ig,aftertext")
        assert pctl.options == CO.CASELESS
        assert pctl.control == CTL.GLOBAL | CTL.AFTERTEXT

    def test_negation(self):
        """A leading minus clears a bit."""
        pctl = PatternControl(options=CO.CASELESS | CO.UTF)
        pattern_mods("-caseless", pctl=pctl)
        assert pctl.options == CO.UTF

    def test_negated_abbreviations(self):
        """A leading minus applies to a run of letters."""
        pctl = PatternControl(options=CO.CASELESS | CO.MULTILINE | CO.UTF)
        pattern_mods("-im", pctl=pctl)
        assert pctl.options == CO.UTF

    def test_jit_value(self):
        """jit takes a number."""
        assert pattern_mods("jit=2").jit == 2

    def test_jit_needs_value(self):
        """jit without a value is an error."""
        with pytest.raises(ModifierError) as exc_info:
            pattern_mods("jit")
        assert exc_info.value.message == "** '=' expected after 'jit'"

    def test_locale(self):
        """String modifiers keep their text."""
        assert pattern_mods("locale=fr_FR").locale == "fr_FR"

    def test_locale_too_long(self):
        """String values have a size limit."""
        with pytest.raises(ModifierError) as exc_info:
            pattern_mods("locale=" + "x" * 40)
        assert exc_info.value.message.startswith("** Invalid value in 'locale=")

    def test_newline(self, contexts):
        """newline sets the compile context."""
        pattern_mods("newline=crlf", contexts)
        assert contexts.pattern.newline_convention == Newline.CRLF
        assert contexts.default_pattern.newline_convention == Newline.DEFAULT

    def test_bad_newline(self):
        """Unknown newline names are rejected."""
        with pytest.raises(ModifierError) as exc_info:
            pattern_mods("newline=bogus")
        assert exc_info.value.message == "** Invalid value in 'newline=bogus'"

    def test_bsr(self, contexts):
        """bsr sets the compile context."""
        pattern_mods("bsr=unicode", contexts)
        assert contexts.pattern.bsr_convention == Bsr.UNICODE

    def test_parens_nest_limit(self, contexts):
        """Integer context fields."""
        pattern_mods("parens_nest_limit=10", contexts)
        assert contexts.pattern.parens_nest_limit == 10

    def test_white_space_separators(self):
        """Items may be separated by white space as well as commas."""
        pctl = pattern_mods("  caseless   aftertext\n")
        assert pctl.options == CO.CASELESS
        assert pctl.control == CTL.AFTERTEXT


class TestDefaultContexts:
    """Modifiers applied to the default records."""

    def test_default_pattern_context(self, contexts):
        """DEFPAT updates the default compile context."""
        apply_modifiers("newline=cr", Ctx.DEFPAT, contexts,
                        pctl=PatternControl())
        assert contexts.default_pattern.newline_convention == Newline.CR
        assert contexts.pattern.newline_convention == Newline.DEFAULT

    def test_default_match_context(self, contexts):
        """DEFDAT updates the default match context."""
        apply_modifiers("match_limit=99", Ctx.DEFDAT, contexts,
                        dctl=DataControl())
        assert contexts.default_match.match_limit == 99


class TestDataModifiers:
    """Modifiers on data lines."""

    def test_match_options(self):
        """Match option modifiers."""
        dctl = data_mods("notempty,partial_hard")
        assert dctl.options == MO.NOTEMPTY | MO.PARTIAL_HARD

    def test_shared_controls(self):
        """Controls allowed on either kind of line."""
        dctl = data_mods("global,aftertext")
        assert dctl.control == CTL.GLOBAL | CTL.AFTERTEXT

    def test_offset_and_ovector(self):
        """Integer fields of the data record."""
        dctl = data_mods("offset=3,ovector=20")
        assert dctl.offset == 3
        assert dctl.oveccount == 20

    def test_copy_and_get(self):
        """copy and get take numbers or names."""
        dctl = data_mods("copy=1,copy=two,get=3,get=four")
        assert dctl.copy_numbers == [1]
        assert dctl.copy_names == ["two"]
        assert dctl.get_numbers == [3]
        assert dctl.get_names == ["four"]

    def test_too_many_numbers(self):
        """At most ten numbered copies."""
        with pytest.raises(ModifierError) as exc_info:
            data_mods(",".join(["copy=1"] * 11))
        assert exc_info.value.message == "** Too many numeric 'copy' modifiers"

    def test_too_many_names(self):
        """Names share a fixed amount of space."""
        with pytest.raises(ModifierError) as exc_info:
            data_mods(",".join(["get=" + "n" * 20] * 4))
        assert exc_info.value.message == "** Too many named 'get' modifiers"

    def test_callout_fail(self):
        """callout_fail takes one or two numbers."""
        assert data_mods("callout_fail=3/4").cfail == [3, 4]
        assert data_mods("callout_fail=5").cfail == [5, 0]

    def test_match_limit(self, contexts):
        """match_limit sets the match context."""
        data_mods("match_limit=100", contexts)
        assert contexts.match.match_limit == 100

    def test_pattern_only_modifier(self):
        """Pattern modifiers are rejected on data lines."""
        with pytest.raises(ModifierError) as exc_info:
            data_mods("caseless")
        assert exc_info.value.message == "** 'caseless' is not valid here"

    def test_pattern_only_abbreviation(self):
        """The message for a letter names the letter."""
        with pytest.raises(ModifierError) as exc_info:
            data_mods("i")
        assert exc_info.value.message == "** /i is not valid here"

    def test_data_only_modifier_on_pattern(self):
        """Data modifiers are rejected on pattern lines."""
        with pytest.raises(ModifierError) as exc_info:
            pattern_mods("offset=1")
        assert exc_info.value.message == "** 'offset' is not valid here"

    def test_match_context_on_pattern(self):
        """Match context modifiers are rejected on pattern lines."""
        with pytest.raises(ModifierError) as exc_info:
            pattern_mods("match_limit=10")
        assert exc_info.value.message == "** 'match_limit' is not valid here"


class TestErrors:
    """Malformed modifier lists."""

    def test_unknown_letter(self):
        """An unknown letter in a run is named."""
        with pytest.raises(ModifierError) as exc_info:
            pattern_mods("zz")
        assert exc_info.value.message == "** Unrecognized modifier 'z' in 'zz'"

    def test_space_inside_letter_run(self):
        """Letters cannot be separated by white space alone."""
        with pytest.raises(ModifierError) as exc_info:
            pattern_mods("i g")
        assert exc_info.value.message == "** Unrecognized modifier ' ' in 'i'"

    def test_space_between_names(self):
        """Full names can still be separated by white space."""
        pctl = pattern_mods("caseless global")
        assert pctl.options == CO.CASELESS
        assert pctl.control == CTL.GLOBAL

    def test_letter_after_name(self):
        """Single letters must come first."""
        with pytest.raises(ModifierError) as exc_info:
            pattern_mods("aftertext,i")
        assert exc_info.value.message == (
            "** Unrecognized modifier 'i'\n"
            "** Single-character modifiers must come first")

    def test_value_on_flag(self):
        """Option and control modifiers take no value."""
        with pytest.raises(ModifierError) as exc_info:
            pattern_mods("aftertext=1")
        assert exc_info.value.message == "** Unrecognized modifier 'aftertext=1'"

    def test_minus_on_value(self):
        """Valued modifiers cannot be negated."""
        with pytest.raises(ModifierError) as exc_info:
            data_mods("-offset=1")
        assert exc_info.value.message == "** '-' is not valid for 'offset'"

    def test_non_numeric_value(self):
        """Integer modifiers need digits."""
        with pytest.raises(ModifierError) as exc_info:
            data_mods("offset=x")
        assert exc_info.value.message == "** Invalid value in 'offset=x'"

    def test_trailing_junk(self):
        """Nothing may follow a number in the same item."""
        with pytest.raises(ModifierError) as exc_info:
            data_mods("offset=1x")
        assert exc_info.value.message == "** Comma expected after modifier item 'offset'"

    def test_earlier_items_kept(self):
        """Items before an error have been applied."""
        pctl = PatternControl()
        with pytest.raises(ModifierError):
            pattern_mods("caseless,bogus", pctl=pctl)
        assert pctl.options == CO.CASELESS


class TestCopies:
    """Records are copied, not shared."""

    def test_pattern_control_copy(self):
        """Copies of pattern records are independent."""
        original = PatternControl(options=CO.UTF)
        copy = original.copy()
        copy.options |= CO.CASELESS
        assert original.options == CO.UTF

    def test_data_control_copy(self):
        """Lists in data records are not shared."""
        original = DataControl(copy_numbers=[1])
        copy = original.copy()
        copy.copy_numbers.append(2)
        copy.cfail[0] = 7
        assert original.copy_numbers == [1]
        assert original.cfail == [0, 0]
