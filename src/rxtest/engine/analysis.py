"""
Pattern analyser.

Parses a Perl-compatible pattern into a small AST and derives the facts that
pattern introspection reports: capture count, named groups, back reference
maximum, minimum subject length, first and last code unit hints, explicit
CR/LF and lookbehind lengths.

Grammar (simplified):
    Pattern     ::= Disjunction
    Disjunction ::= Alternative ('|' Alternative)*
    Alternative ::= Term*
    Term        ::= Assertion | Atom Quantifier?
    Atom        ::= Char | '.' | CharClass | Group | Escape | Verb
    Quantifier  ::= ('*' | '+' | '?' | '{' n (',' n?)? '}') ('?' | '+')?

The analyser is only run on patterns the engine has already accepted, so it
is lenient: anything it does not recognise becomes an opaque atom.
"""

from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional, Set, Tuple, Union


@dataclass
class Char:
    """Literal character."""
    code: int
    caseless: bool = False


@dataclass
class Dot:
    """Any character."""
    pass


@dataclass
class CharClass:
    """Character class like [a-z]. ranges is None when not enumerable."""
    ranges: Optional[List[Tuple[int, int]]]
    negated: bool = False
    caseless: bool = False


@dataclass
class Shorthand:
    """Escape that matches from a set, like \\d or \\p{L}."""
    type: str


@dataclass
class Anchor:
    """Zero-width item like ^, $, \\b or \\K."""
    type: str


@dataclass
class Backref:
    """Back reference by number or name."""
    group: Optional[int] = None
    name: Optional[str] = None


@dataclass
class Recurse:
    """Subroutine call or recursion."""
    target: str


@dataclass
class Verb:
    """Backtracking control verb such as (*SKIP)."""
    name: str


@dataclass
class Group:
    """Capturing, non-capturing, atomic or conditional group."""
    body: 'Node'
    capturing: bool = True
    group_index: int = 0
    name: Optional[str] = None
    conditional: bool = False


@dataclass
class Lookahead:
    """Lookahead assertion (?=...) or (?!...)."""
    body: 'Node'
    positive: bool = True


@dataclass
class Lookbehind:
    """Lookbehind assertion (?<=...) or (?<!...)."""
    body: 'Node'
    positive: bool = True


@dataclass
class Quantifier:
    """Quantifier like *, +, ?, {n,m}."""
    body: 'Node'
    min: int
    max: int  # -1 means unlimited
    greedy: bool = True


@dataclass
class Alternative:
    """Sequence of terms (AND)."""
    terms: List['Node']


@dataclass
class Disjunction:
    """Alternation (OR)."""
    alternatives: List['Node']


Node = Union[Char, Dot, CharClass, Shorthand, Anchor, Backref, Recurse, Verb,
             Group, Lookahead, Lookbehind, Quantifier, Alternative, Disjunction]

ZERO_WIDTH = (Anchor, Lookahead, Lookbehind, Verb)

SIMPLE_ESCAPES = {
    'a': 7, 'e': 27, 'f': 12, 'n': 10, 'r': 13, 't': 9,
}

SHORTHANDS = 'dDwWsShHvVNRX'
ANCHOR_ESCAPES = {
    'b': 'boundary', 'B': 'not_boundary', 'A': 'start_subject',
    'z': 'end_subject', 'Z': 'end_subject_nl', 'G': 'start_match',
    'K': 'keep',
}

OPTION_LETTERS = 'imsxJUXn'


@dataclass
class _Flags:
    caseless: bool = False
    multiline: bool = False
    extended: bool = False
    dupnames: bool = False


@dataclass
class PatternAnalysis:
    """What the analyser found out about a pattern."""

    ast: Node
    capture_count: int = 0
    names: List[Tuple[str, int]] = field(default_factory=list)
    backref_max: int = 0
    max_lookbehind: int = 0
    min_length: int = 0
    first_type: int = 0
    first_char: int = 0
    first_caseless: bool = False
    last_char: Optional[int] = None
    last_caseless: bool = False
    has_cr_or_lf: bool = False
    jchanged: bool = False
    start_chars: Optional[Set[int]] = None
    duplicate_name: Optional[Tuple[str, int]] = None
    leading_options: Dict[str, bool] = field(default_factory=dict)


class PatternParser:
    """Parser for Perl-compatible patterns."""

    def __init__(self, pattern: str, caseless: bool = False,
                 multiline: bool = False, extended: bool = False,
                 dupnames: bool = False, no_auto_capture: bool = False):
        self.pattern = pattern
        self.no_auto_capture = no_auto_capture
        self.pos = 0
        self.flags = _Flags(caseless, multiline, extended, dupnames)
        self.group_count = 0
        self.names: List[Tuple[str, int]] = []
        self.backref_max = 0
        self.has_cr_or_lf = False
        self.jchanged = False
        self.duplicate_name: Optional[Tuple[str, int]] = None
        self.leading_options: Dict[str, bool] = {}

    def parse(self) -> Node:
        self.pos = 0
        self.group_count = 0
        self._scan_leading_options()
        ast = self._parse_disjunction()
        # An unmatched ')' is a compile error, which the engine reports
        # before we get here; keep going anyway.
        while self.pos < len(self.pattern):
            self._advance()
            ast = Alternative([ast, self._parse_disjunction()])
        return ast

    def _peek(self, offset: int = 0) -> Optional[str]:
        """Look at a character without consuming."""
        if self.pos + offset < len(self.pattern):
            return self.pattern[self.pos + offset]
        return None

    def _advance(self) -> Optional[str]:
        """Consume and return current character."""
        if self.pos < len(self.pattern):
            ch = self.pattern[self.pos]
            self.pos += 1
            return ch
        return None

    def _match(self, text: str) -> bool:
        """Match and consume specific text."""
        if self.pattern.startswith(text, self.pos):
            self.pos += len(text)
            return True
        return False

    def _scan_leading_options(self) -> None:
        """Record option settings such as (?i) at the very start."""
        pos = 0
        while self.pattern.startswith('(?', pos):
            end = pos + 2
            on = True
            settings = {}
            while end < len(self.pattern) and (
                    self.pattern[end] in OPTION_LETTERS or
                    self.pattern[end] == '-'):
                if self.pattern[end] == '-':
                    on = False
                else:
                    settings[self.pattern[end]] = on
                end += 1
            if end >= len(self.pattern) or self.pattern[end] != ')' or \
                    end == pos + 2:
                break
            self.leading_options.update(settings)
            pos = end + 1

    def _skip_extended(self) -> None:
        """Skip white space and # comments in extended mode."""
        if not self.flags.extended:
            return
        while self.pos < len(self.pattern):
            ch = self.pattern[self.pos]
            if ch.isspace():
                self.pos += 1
            elif ch == '#':
                while self.pos < len(self.pattern) and \
                        self.pattern[self.pos] != '\n':
                    self.pos += 1
            else:
                break

    def _parse_disjunction(self, branch_reset: bool = False) -> Node:
        """Parse alternation (a|b|c)."""
        start_count = self.group_count
        highest = start_count
        alternatives = [self._parse_alternative()]

        while self._match('|'):
            if branch_reset:
                highest = max(highest, self.group_count)
                self.group_count = start_count
            alternatives.append(self._parse_alternative())

        if branch_reset:
            self.group_count = max(highest, self.group_count)
        if len(alternatives) == 1:
            return alternatives[0]
        return Disjunction(alternatives)

    def _parse_alternative(self) -> Node:
        """Parse sequence of terms."""
        terms = []

        while True:
            self._skip_extended()
            ch = self._peek()
            if ch is None or ch in '|)':
                break
            old_pos = self.pos
            term = self._parse_term()
            if term is not None:
                terms.append(term)
            elif self.pos == old_pos:
                # Stray quantifier; the engine has already judged it
                self._advance()

        if len(terms) == 1:
            return terms[0]
        return Alternative(terms)

    def _parse_term(self) -> Optional[Node]:
        """Parse a single term (assertion or atom with optional quantifier)."""
        ch = self._peek()
        if ch == '^':
            self._advance()
            return Anchor('start_line' if self.flags.multiline else 'start')
        if ch == '$':
            self._advance()
            return Anchor('end_line' if self.flags.multiline else 'end')

        atom = self._parse_atom()
        if atom is None:
            return None

        self._skip_extended()
        quantifier = self._try_parse_quantifier(atom)
        if quantifier is not None:
            return quantifier
        return atom

    def _char(self, code: int) -> Char:
        if code in (10, 13):
            self.has_cr_or_lf = True
        return Char(code, self.flags.caseless and _has_case(code))

    def _parse_atom(self) -> Optional[Node]:
        """Parse an atom (char, dot, class, group, escape)."""
        ch = self._peek()

        if ch is None:
            return None
        if ch == '.':
            self._advance()
            return Dot()
        if ch == '[':
            return self._parse_char_class()
        if ch == '(':
            return self._parse_group()
        if ch == '\\':
            return self._parse_escape()
        if ch in '*+?':
            return None
        if ch == '{' and self._is_quantifier_start():
            return None

        self._advance()
        return self._char(ord(ch))

    def _is_quantifier_start(self) -> bool:
        """Check if we're at the start of a {n,m} quantifier."""
        i = self.pos + 1
        start = i
        while i < len(self.pattern) and self.pattern[i].isdigit():
            i += 1
        if i == start or i >= len(self.pattern):
            return False
        if self.pattern[i] == '}':
            return True
        if self.pattern[i] == ',':
            i += 1
            while i < len(self.pattern) and self.pattern[i].isdigit():
                i += 1
            return i < len(self.pattern) and self.pattern[i] == '}'
        return False

    def _parse_number(self) -> int:
        start = self.pos
        while self._peek() is not None and self._peek().isdigit():
            self.pos += 1
        return int(self.pattern[start:self.pos] or '0')

    def _parse_braced(self, close: str) -> str:
        start = self.pos
        while self._peek() is not None and self._peek() != close:
            self.pos += 1
        text = self.pattern[start:self.pos]
        self._match(close)
        return text

    def _parse_hex(self) -> int:
        """Value of \\x{...} or \\xhh, after the x."""
        if self._match('{'):
            return int(self._parse_braced('}') or '0', 16)
        digits = ''
        while len(digits) < 2 and self._peek() is not None and \
                self._peek() in '0123456789abcdefABCDEF':
            digits += self._advance()
        return int(digits or '0', 16)

    def _parse_octal(self, first: str, limit: int) -> int:
        digits = first
        while len(digits) < limit and self._peek() is not None and \
                self._peek() in '01234567':
            digits += self._advance()
        return int(digits, 8)

    def _parse_quoted(self) -> Node:
        """Literal text between \\Q and \\E."""
        end = self.pattern.find('\\E', self.pos)
        if end < 0:
            end = len(self.pattern)
        chars = [self._char(ord(c)) for c in self.pattern[self.pos:end]]
        self.pos = min(end + 2, len(self.pattern))
        if len(chars) == 1:
            return chars[0]
        return Alternative(chars)

    def _parse_char_class(self) -> CharClass:
        """Parse character class [...]."""
        self._advance()  # consume '['

        negated = self._match('^')
        ranges: Optional[List[Tuple[int, int]]] = []
        first = True

        while self._peek() is not None:
            if self._peek() == ']' and not first:
                break
            first = False
            if self._match('[:') or self._match('[=') or self._match('[.'):
                end = self.pattern.find(']', self.pos)
                self.pos = len(self.pattern) if end < 0 else end + 1
                ranges = None
                continue
            start = self._parse_class_char()
            if start is None:
                ranges = None
                continue
            if self._peek() == '-' and self._peek(1) not in (None, ']'):
                self._advance()
                end = self._parse_class_char()
                if end is None:
                    ranges = None
                    continue
                if ranges is not None:
                    ranges.append((start, end))
                if start <= 13 and end >= 10:
                    self.has_cr_or_lf = True
            else:
                if ranges is not None:
                    ranges.append((start, start))
                if start in (10, 13):
                    self.has_cr_or_lf = True

        self._match(']')
        return CharClass(ranges, negated, self.flags.caseless)

    def _parse_class_char(self) -> Optional[int]:
        """Parse one character inside a class; None for a set escape."""
        ch = self._advance()
        if ch != '\\':
            return ord(ch)

        escaped = self._advance()
        if escaped is None:
            return ord('\\')
        if escaped in SIMPLE_ESCAPES:
            return SIMPLE_ESCAPES[escaped]
        if escaped == 'b':
            return 8
        if escaped == 'x':
            return self._parse_hex()
        if escaped == 'o' and self._match('{'):
            return int(self._parse_braced('}') or '0', 8)
        if escaped in '01234567':
            return self._parse_octal(escaped, 3)
        if escaped == 'c':
            ctrl = self._advance()
            return (ord(ctrl.upper()) ^ 0x40) if ctrl else ord('c')
        if escaped in 'dDwWsShHvVpPNRX':
            if escaped in 'pP' and self._match('{'):
                self._parse_braced('}')
            elif escaped in 'pP':
                self._advance()
            return None
        if escaped == 'Q':
            # Rare inside a class; give up on enumerating it
            end = self.pattern.find('\\E', self.pos)
            self.pos = len(self.pattern) if end < 0 else end + 2
            return None
        return ord(escaped)

    def _parse_escape(self) -> Optional[Node]:
        """Parse escape sequence."""
        self._advance()  # consume '\\'
        ch = self._advance()

        if ch is None:
            return self._char(ord('\\'))
        if ch == 'Q':
            return self._parse_quoted()
        if ch == 'E':
            return None
        if ch in SHORTHANDS:
            return Shorthand(ch)
        if ch in 'pP':
            if self._match('{'):
                self._parse_braced('}')
            else:
                self._advance()
            return Shorthand(ch)
        if ch in ANCHOR_ESCAPES:
            return Anchor(ANCHOR_ESCAPES[ch])

        if ch in '123456789':
            start = self.pos - 1
            while self._peek() is not None and self._peek().isdigit():
                self._advance()
            number = int(self.pattern[start:self.pos])
            if number < 10 or number <= self.group_count:
                return self._backref(number)
            # Not a back reference: an octal escape, or a literal digit
            self.pos = start + 1
            if ch in '89':
                return self._char(ord(ch))
            return self._char(self._parse_octal(ch, 3))

        if ch == '0':
            return self._char(self._parse_octal('0', 3))
        if ch == 'o' and self._match('{'):
            return self._char(int(self._parse_braced('}') or '0', 8))
        if ch == 'x':
            return self._char(self._parse_hex())
        if ch == 'c':
            ctrl = self._advance()
            if ctrl is None:
                return self._char(ord('c'))
            return self._char(ord(ctrl.upper()) ^ 0x40)
        if ch in SIMPLE_ESCAPES:
            return self._char(SIMPLE_ESCAPES[ch])

        if ch == 'g':
            if self._match('<'):
                return Recurse(self._parse_braced('>'))
            if self._match("'"):
                return Recurse(self._parse_braced("'"))
            if self._match('{'):
                ref = self._parse_braced('}')
            else:
                start = self.pos
                if self._peek() in ('-', '+'):
                    self._advance()
                self._parse_number()
                ref = self.pattern[start:self.pos]
            return self._reference(ref)

        if ch == 'k':
            for opener, closer in (('<', '>'), ("'", "'"), ('{', '}')):
                if self._match(opener):
                    return self._reference(self._parse_braced(closer))
            return self._char(ord('k'))

        # Identity escape (literal)
        return self._char(ord(ch))

    def _reference(self, ref: str) -> Backref:
        """Back reference given as a number, relative number or name."""
        if ref.lstrip('+-').isdigit():
            number = int(ref)
            if ref.startswith('-'):
                number = self.group_count + 1 + number
            elif ref.startswith('+'):
                number = self.group_count + number
            return self._backref(number)
        return Backref(None, ref)

    def _backref(self, number: int) -> Backref:
        self.backref_max = max(self.backref_max, number)
        return Backref(number)

    def _add_name(self, name: str, number: int, offset: int) -> None:
        for existing, existing_number in self.names:
            if existing == name:
                if existing_number == number:
                    return
                if not self.flags.dupnames and self.duplicate_name is None:
                    self.duplicate_name = (name, offset)
        self.names.append((name, number))

    def _apply_options(self, text: str) -> None:
        on = True
        for letter in text:
            if letter == '-':
                on = False
            elif letter == 'i':
                self.flags.caseless = on
            elif letter == 'm':
                self.flags.multiline = on
            elif letter == 'x':
                self.flags.extended = on
            elif letter == 'J':
                self.flags.dupnames = on
                self.jchanged = True

    def _parse_group(self) -> Optional[Node]:
        """Parse a parenthesized construct."""
        self._advance()  # consume '('

        if self._match('*'):
            return Verb(self._parse_braced(')'))

        saved = replace(self.flags)
        capturing = False
        name = None
        name_offset = 0
        kind = 'group'
        branch_reset = False

        if self._match('?'):
            if self._match('#'):
                self._parse_braced(')')
                return None
            if self._match(':'):
                pass
            elif self._match('|'):
                branch_reset = True
            elif self._match('>'):
                pass
            elif self._match('='):
                kind = 'lookahead'
            elif self._match('!'):
                kind = 'neg_lookahead'
            elif self._match('<='):
                kind = 'lookbehind'
            elif self._match('<!'):
                kind = 'neg_lookbehind'
            elif self._match('P<') or self._match('<'):
                capturing = True
                name_offset = self.pos
                name = self._parse_braced('>')
            elif self._match("'"):
                capturing = True
                name_offset = self.pos
                name = self._parse_braced("'")
            elif self._match('P='):
                return Backref(None, self._parse_braced(')'))
            elif self._match('P>') or self._match('&'):
                return Recurse(self._parse_braced(')'))
            elif self._match('R'):
                self._parse_braced(')')
                return Recurse('0')
            elif self._peek() is not None and (
                    self._peek().isdigit() or
                    (self._peek() in '+-' and
                     self._peek(1) is not None and self._peek(1).isdigit())):
                return Recurse(self._parse_braced(')'))
            elif self._peek() == '(':
                kind = 'conditional'
                self._parse_condition()
            else:
                start = self.pos
                while self._peek() is not None and (
                        self._peek() in OPTION_LETTERS or self._peek() == '-'):
                    self._advance()
                options = self.pattern[start:self.pos]
                if self._match(')'):
                    # Option setting that lasts to the end of the group
                    self._apply_options(options)
                    return None
                self._match(':')
                self._apply_options(options)
        else:
            capturing = not self.no_auto_capture

        group_index = 0
        if capturing:
            self.group_count += 1
            group_index = self.group_count
            if name is not None:
                self._add_name(name, group_index, name_offset)

        body = self._parse_disjunction(branch_reset)
        self._match(')')
        self.flags = saved

        if kind == 'lookahead':
            return Lookahead(body, True)
        if kind == 'neg_lookahead':
            return Lookahead(body, False)
        if kind == 'lookbehind':
            return Lookbehind(body, True)
        if kind == 'neg_lookbehind':
            return Lookbehind(body, False)
        return Group(body, capturing, group_index, name,
                     conditional=kind == 'conditional')

    def _parse_condition(self) -> None:
        """Skip the condition of a conditional group."""
        if self._peek(1) == '?' and self._peek(2) in ('=', '!', '<'):
            self._parse_group()
            return
        self._advance()
        self._parse_braced(')')

    def _try_parse_quantifier(self, atom: Node) -> Optional[Quantifier]:
        """Try to parse a quantifier after an atom."""
        ch = self._peek()

        if ch == '*':
            self._advance()
            min_count, max_count = 0, -1
        elif ch == '+':
            self._advance()
            min_count, max_count = 1, -1
        elif ch == '?':
            self._advance()
            min_count, max_count = 0, 1
        elif ch == '{' and self._is_quantifier_start():
            self._advance()
            min_count = self._parse_number()
            max_count = min_count
            if self._match(','):
                if self._peek() is not None and self._peek().isdigit():
                    max_count = self._parse_number()
                else:
                    max_count = -1
            self._match('}')
        else:
            return None

        greedy = not self._match('?')
        self._match('+')
        return Quantifier(atom, min_count, max_count, greedy)


def _has_case(code: int) -> bool:
    if code > 0x10ffff:
        return False
    ch = chr(code)
    return ch.lower() != ch.upper()


def _case_variants(code: int) -> Set[int]:
    if code > 0x10ffff:
        return {code}
    ch = chr(code)
    variants = {code}
    for other in (ch.lower(), ch.upper()):
        if len(other) == 1:
            variants.add(ord(other))
    return variants


# Derived facts

def min_length(node: Node, group_min: Dict[int, int]) -> int:
    """Lower bound on the number of characters a node matches."""
    if isinstance(node, (Char, Dot, CharClass, Shorthand)):
        return 1
    if isinstance(node, Group):
        if node.conditional:
            if isinstance(node.body, Disjunction):
                return min(min_length(alt, group_min)
                           for alt in node.body.alternatives)
            min_length(node.body, group_min)
            return 0
        length = min_length(node.body, group_min)
        if node.capturing:
            group_min[node.group_index] = length
        return length
    if isinstance(node, Quantifier):
        return node.min * min_length(node.body, group_min)
    if isinstance(node, Alternative):
        return sum(min_length(term, group_min) for term in node.terms)
    if isinstance(node, Disjunction):
        return min(min_length(alt, group_min) for alt in node.alternatives)
    if isinstance(node, Backref):
        return group_min.get(node.group, 0) if node.group else 0
    if isinstance(node, (Lookahead, Lookbehind)):
        min_length(node.body, group_min)
    return 0


def max_length(node: Node) -> Optional[int]:
    """Upper bound on the characters a node matches; None if unbounded."""
    if isinstance(node, (Char, Dot, CharClass)):
        return 1
    if isinstance(node, Shorthand):
        if node.type == 'R':
            return 2
        if node.type == 'X':
            return None
        return 1
    if isinstance(node, Group):
        return max_length(node.body)
    if isinstance(node, Quantifier):
        if node.max < 0:
            return None
        inner = max_length(node.body)
        return None if inner is None else inner * node.max
    if isinstance(node, Alternative):
        total = 0
        for term in node.terms:
            length = max_length(term)
            if length is None:
                return None
            total += length
        return total
    if isinstance(node, Disjunction):
        lengths = [max_length(alt) for alt in node.alternatives]
        return None if None in lengths else max(lengths)
    if isinstance(node, (Backref, Recurse)):
        return None
    return 0


def max_lookbehind(node: Node) -> int:
    """Longest lookbehind assertion in the pattern."""
    best = 0
    if isinstance(node, Lookbehind):
        length = max_length(node.body)
        if length is not None:
            best = length
    for child in _children(node):
        best = max(best, max_lookbehind(child))
    return best


def _children(node: Node) -> List[Node]:
    if isinstance(node, (Group, Lookahead, Lookbehind, Quantifier)):
        return [node.body]
    if isinstance(node, Alternative):
        return node.terms
    if isinstance(node, Disjunction):
        return node.alternatives
    return []


def first_char(node: Node):
    """Classify how a match must start.

    Returns ('char', code, caseless), ('start',) for a pattern anchored at
    the start of the subject, ('line',) for one that starts at the start of
    a line, or None.
    """
    if isinstance(node, Char):
        return ('char', node.code, node.caseless)
    if isinstance(node, Anchor):
        if node.type in ('start', 'start_subject', 'start_match'):
            return ('start',)
        if node.type == 'start_line':
            return ('line',)
        return None
    if isinstance(node, Group):
        if node.conditional:
            return None
        return first_char(node.body)
    if isinstance(node, Quantifier):
        return first_char(node.body) if node.min > 0 else None
    if isinstance(node, Alternative):
        for term in node.terms:
            if isinstance(term, Anchor) and term.type in (
                    'boundary', 'not_boundary', 'keep'):
                continue
            if isinstance(term, (Lookahead, Lookbehind, Verb)):
                continue
            return first_char(term)
        return None
    if isinstance(node, Disjunction):
        results = [first_char(alt) for alt in node.alternatives]
        if results[0] is not None and all(r == results[0] for r in results):
            return results[0]
        return None
    return None


def required_chars(node: Node) -> List[Tuple[int, bool]]:
    """Literal characters every match contains, in order."""
    if isinstance(node, Char):
        return [(node.code, node.caseless)]
    if isinstance(node, Group):
        return [] if node.conditional else required_chars(node.body)
    if isinstance(node, Quantifier):
        return required_chars(node.body) if node.min > 0 else []
    if isinstance(node, Alternative):
        chars = []
        for term in node.terms:
            chars.extend(required_chars(term))
        return chars
    if isinstance(node, Disjunction):
        lasts = [required_chars(alt) for alt in node.alternatives]
        if all(lasts) and all(chars[-1] == lasts[0][-1] for chars in lasts):
            return [lasts[0][-1]]
        return []
    return []


def start_chars(node: Node) -> Optional[Set[int]]:
    """The set of characters a match can start with, or None if unknown."""
    chars, can_be_empty = _start_set(node)
    if chars is None or can_be_empty:
        return None
    return chars


def _start_set(node: Node):
    """(characters, can be empty) for a node; characters None if unknown."""
    if isinstance(node, Char):
        if node.caseless:
            return _case_variants(node.code), False
        return {node.code}, False
    if isinstance(node, CharClass):
        if node.ranges is None or node.negated:
            return None, False
        chars = set()
        for low, high in node.ranges:
            if high - low > 255:
                return None, False
            for code in range(low, high + 1):
                chars.update(_case_variants(code) if node.caseless else (code,))
        return chars, False
    if isinstance(node, (Dot, Shorthand, Backref, Recurse)):
        return None, False
    if isinstance(node, Anchor):
        if node.type in ('start', 'start_subject', 'start_match', 'start_line'):
            return None, False
        return set(), True
    if isinstance(node, (Lookahead, Lookbehind, Verb)):
        return set(), True
    if isinstance(node, Group):
        if node.conditional:
            return None, False
        return _start_set(node.body)
    if isinstance(node, Quantifier):
        chars, empty = _start_set(node.body)
        return chars, empty or node.min == 0
    if isinstance(node, Alternative):
        chars: Set[int] = set()
        for term in node.terms:
            term_chars, empty = _start_set(term)
            if term_chars is None:
                return None, False
            chars |= term_chars
            if not empty:
                return chars, False
        return chars, True
    if isinstance(node, Disjunction):
        chars = set()
        any_empty = False
        for alt in node.alternatives:
            alt_chars, empty = _start_set(alt)
            if alt_chars is None:
                return None, False
            chars |= alt_chars
            any_empty = any_empty or empty
        return chars, any_empty
    return None, False


def describe(node: Node, depth: int = 0) -> List[str]:
    """An indented listing of the parsed pattern."""
    pad = '  ' * depth
    if isinstance(node, Char):
        text = chr(node.code) if 32 <= node.code < 127 else f'\\x{{{node.code:x}}}'
        return [f'{pad}{"/i " if node.caseless else ""}{text}']
    if isinstance(node, Dot):
        return [f'{pad}Any']
    if isinstance(node, CharClass):
        return [f'{pad}{"Not class" if node.negated else "Class"}']
    if isinstance(node, Shorthand):
        return [f'{pad}\\{node.type}']
    if isinstance(node, Anchor):
        return [f'{pad}{node.type.replace("_", " ").capitalize()}']
    if isinstance(node, Backref):
        return [f'{pad}\\{node.group if node.group else node.name}']
    if isinstance(node, Recurse):
        return [f'{pad}Recurse {node.target}']
    if isinstance(node, Verb):
        return [f'{pad}*{node.name}']
    if isinstance(node, Group):
        label = f'CBra {node.group_index}' if node.capturing else (
            'Cond' if node.conditional else 'Bra')
        return [f'{pad}{label}'] + describe(node.body, depth + 1) + [f'{pad}Ket']
    if isinstance(node, Lookahead):
        label = 'Assert' if node.positive else 'Assert not'
        return [f'{pad}{label}'] + describe(node.body, depth + 1) + [f'{pad}Ket']
    if isinstance(node, Lookbehind):
        label = 'Assert back' if node.positive else 'Assert back not'
        return [f'{pad}{label}'] + describe(node.body, depth + 1) + [f'{pad}Ket']
    if isinstance(node, Quantifier):
        upper = '' if node.max < 0 else str(node.max)
        lazy = '?' if not node.greedy else ''
        return describe(node.body, depth) + [f'{pad}{{{node.min},{upper}}}{lazy}']
    if isinstance(node, Alternative):
        lines = []
        for term in node.terms:
            lines.extend(describe(term, depth))
        return lines
    if isinstance(node, Disjunction):
        lines = []
        for i, alt in enumerate(node.alternatives):
            if i:
                lines.append(f'{pad}Alt')
            lines.extend(describe(alt, depth))
        return lines
    return []


def analyse(pattern: str, caseless: bool = False, multiline: bool = False,
            extended: bool = False, dupnames: bool = False,
            no_auto_capture: bool = False) -> PatternAnalysis:
    """
    Parse a pattern and collect the facts introspection reports.

    Args:
        pattern: The pattern as a string of characters
        caseless: Compile-time caseless option
        multiline: Compile-time multiline option
        extended: Compile-time extended option
        dupnames: Duplicate names are allowed
        no_auto_capture: Plain parentheses do not capture

    Returns:
        A PatternAnalysis
    """
    parser = PatternParser(pattern, caseless, multiline, extended, dupnames,
                           no_auto_capture)
    ast = parser.parse()

    result = PatternAnalysis(ast)
    result.capture_count = parser.group_count
    result.names = sorted(parser.names)
    result.backref_max = parser.backref_max
    result.has_cr_or_lf = parser.has_cr_or_lf
    result.jchanged = parser.jchanged
    result.duplicate_name = parser.duplicate_name
    result.leading_options = parser.leading_options
    result.min_length = min_length(ast, {})
    result.max_lookbehind = max_lookbehind(ast)

    first = first_char(ast)
    if first is not None and first[0] == 'char':
        result.first_type = 1
        result.first_char = first[1]
        result.first_caseless = first[2]
    elif first is not None and first[0] == 'line':
        result.first_type = 2
    elif first is None:
        result.start_chars = start_chars(ast)

    required = required_chars(ast)
    if len(required) >= 2:
        result.last_char, result.last_caseless = required[-1]

    return result
