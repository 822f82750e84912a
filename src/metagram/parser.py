"""Grammar parser: converts a token stream into a GrammarSource tree."""

from __future__ import annotations

from metagram.ast import (
    LEAF_TYPES,
    UNBOUND,
    Action,
    Assign,
    Attr,
    Binary,
    Block,
    Bool,
    Break,
    Call,
    Choice,
    Expr,
    Field,
    For,
    GrammarSource,
    If,
    Index,
    Leaf,
    Let,
    ListExpr,
    Literal,
    Not,
    Number,
    Pattern,
    RecordExpr,
    Repeat,
    Rule,
    RuleRef,
    Sequence,
    StartDecl,
    Stmt,
    String,
    Unary,
    Var,
)
from metagram.errors import GrammarSyntaxError
from metagram.lexer import tokenize
from metagram.tokens import Position, Span, Token, TokenType

_COMPARISONS = {
    TokenType.EQ: "==",
    TokenType.NE: "!=",
    TokenType.LT: "<",
    TokenType.LE: "<=",
    TokenType.GT: ">",
    TokenType.GE: ">=",
}

_ADDITIVE = {TokenType.PLUS: "+", TokenType.MINUS: "-"}
_MULTIPLICATIVE = {TokenType.STAR: "*", TokenType.SLASH: "/"}


class Parser:
    """Recursive descent parser for grammar token streams."""

    def __init__(self, tokens: list[Token], source: str, filename: str) -> None:
        self._tokens = tokens
        self._source = source
        self._filename = filename
        self._pos = 0
        self._loop_depth = 0

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    def _peek(self, offset: int = 0) -> Token:
        idx = self._pos + offset
        if idx < len(self._tokens):
            return self._tokens[idx]
        return self._tokens[-1]  # EOF

    def _at(self, *types: TokenType) -> bool:
        return self._peek().type in types

    def _at_keyword(self, word: str) -> bool:
        tok = self._peek()
        return tok.type == TokenType.KEYWORD and tok.value == word

    def _advance(self) -> Token:
        tok = self._tokens[self._pos]
        if tok.type != TokenType.EOF:
            self._pos += 1
        return tok

    def _expect(self, tt: TokenType, message: str) -> Token:
        tok = self._peek()
        if tok.type != tt:
            raise self._error(message, tok.span)
        return self._advance()

    def _expect_keyword(self, word: str) -> Token:
        if not self._at_keyword(word):
            raise self._error(f"expected '{word}'", self._peek().span)
        return self._advance()

    def _accept(self, tt: TokenType) -> bool:
        if self._at(tt):
            self._advance()
            return True
        return False

    def _prev_end(self) -> Position:
        """End position of the previously consumed token."""
        if self._pos > 0:
            return self._tokens[self._pos - 1].span.end
        return self._tokens[0].span.start

    def _span_from(self, start: Position) -> Span:
        return Span(start, self._prev_end())

    def _error(self, message: str, span: Span) -> GrammarSyntaxError:
        return GrammarSyntaxError(message, span, self._source, self._filename)

    # ------------------------------------------------------------------
    # Grammar level
    # ------------------------------------------------------------------

    def parse(self) -> GrammarSource:
        start = self._peek().span.start
        self._expect_keyword("meta")
        self._expect(TokenType.LBRACE, "expected '{' after 'meta'")

        rules: list[Rule] = []
        starts: list[StartDecl] = []
        while not self._at(TokenType.RBRACE):
            if self._at(TokenType.EOF):
                raise self._error("expected '}' to close 'meta' block", self._peek().span)
            if self._at(TokenType.SEPARATOR):
                starts.append(self._parse_start())
            elif starts:
                raise self._error(
                    "rule definitions must come before the start separator", self._peek().span
                )
            else:
                rules.append(self._parse_rule())

        self._advance()  # consume RBRACE
        if not self._at(TokenType.EOF):
            raise self._error("unexpected text after 'meta' block", self._peek().span)
        return GrammarSource(tuple(rules), tuple(starts), self._span_from(start))

    def _parse_rule(self) -> Rule:
        name_tok = self._expect(TokenType.IDENTIFIER, "expected rule name")
        self._expect(TokenType.DEFINE, f"expected ':=' after rule name '{name_tok.value}'")
        pattern = self._parse_pattern()
        self._expect(TokenType.SEMI, f"expected ';' to end rule '{name_tok.value}'")
        return Rule(name_tok.value, pattern, self._span_from(name_tok.span.start))

    def _parse_start(self) -> StartDecl:
        sep = self._advance()  # consume SEPARATOR
        if self._at(TokenType.RBRACE, TokenType.EOF):
            raise self._error("expected start expression after separator", self._peek().span)
        pattern = self._parse_pattern()
        self._accept(TokenType.SEMI)
        return StartDecl(pattern, self._span_from(sep.span.start))

    # ------------------------------------------------------------------
    # Patterns
    # ------------------------------------------------------------------

    def _parse_pattern(self) -> Pattern:
        start = self._peek().span.start
        alternatives = [self._parse_alternative()]
        while self._accept(TokenType.PIPE):
            alternatives.append(self._parse_alternative())
        if len(alternatives) == 1:
            return alternatives[0]
        return Choice(tuple(alternatives), self._span_from(start))

    def _parse_alternative(self) -> Pattern:
        start = self._peek().span.start
        if self._at_keyword("repeat"):
            self._advance()
            inner = self._parse_alternative()
            return Repeat(inner, self._span_from(start))
        if self._accept(TokenType.BANG):
            inner = self._parse_alternative()
            return Not(inner, self._span_from(start))
        return self._parse_primary()

    def _parse_primary(self) -> Pattern:
        tok = self._peek()
        start = tok.span.start

        if tok.type == TokenType.LPAREN:
            self._advance()
            inner = self._parse_pattern()
            self._expect(TokenType.RPAREN, "expected ')'")
            return inner

        if tok.type == TokenType.LBRACKET:
            sequence = self._parse_field_list()
            if self._accept(TokenType.ARROW):
                body = self._parse_action_body()
                return Action(sequence, body, self._span_from(start))
            return sequence

        if tok.type == TokenType.STRING:
            self._advance()
            if tok.value == "":
                raise self._error("empty literal pattern", tok.span)
            return Literal(tok.value, tok.span)

        if tok.type == TokenType.IDENTIFIER:
            self._advance()
            if tok.value in LEAF_TYPES:
                return Leaf(tok.value, tok.span)
            override = None
            if self._at(TokenType.COLON) and self._peek(1).type == TokenType.STRING:
                self._advance()
                override = self._advance().value
                if not override:
                    raise self._error("empty capture name", self._prev_span())
            return RuleRef(tok.value, override, self._span_from(start))

        raise self._error("expected pattern", tok.span)

    def _prev_span(self) -> Span:
        return self._tokens[self._pos - 1].span

    def _parse_field_list(self) -> Sequence:
        start = self._advance().span.start  # consume LBRACKET
        fields: list[Field] = []
        names: list[str] = []
        while not self._at(TokenType.RBRACKET):
            field = self._parse_field(len(names))
            if field.key is not None:
                names.append(field.key)
            fields.append(field)
            if not self._accept(TokenType.COMMA):
                break
        self._expect(TokenType.RBRACKET, "expected ',' or ']' in field list")
        return Sequence(tuple(fields), tuple(names), self._span_from(start))

    def _parse_field(self, next_slot: int) -> Field:
        tok = self._peek()
        start = tok.span.start

        if tok.type == TokenType.IDENTIFIER:
            nxt = self._peek(1)
            # label: type / label: rule
            if nxt.type == TokenType.COLON and self._peek(2).type == TokenType.IDENTIFIER:
                self._advance()
                self._advance()
                target = self._advance()
                pattern: Pattern
                if target.value in LEAF_TYPES:
                    pattern = Leaf(target.value, target.span)
                else:
                    pattern = RuleRef(target.value, None, target.span)
                return Field(pattern, tok.value, None, next_slot, self._span_from(start))
            # label <- pattern
            if nxt.type == TokenType.BIND:
                self._advance()
                self._advance()
                pattern = self._parse_pattern()
                if isinstance(pattern, RuleRef) and pattern.override is not None:
                    key, alias = pattern.override, tok.value
                    if alias == key:
                        alias = None
                else:
                    key, alias = tok.value, None
                return Field(pattern, key, alias, next_slot, self._span_from(start))

        pattern = self._parse_pattern()
        if isinstance(pattern, RuleRef):
            key = pattern.override or pattern.name
            return Field(pattern, key, None, next_slot, self._span_from(start))
        return Field(pattern, None, None, UNBOUND, self._span_from(start))

    # ------------------------------------------------------------------
    # Action bodies
    # ------------------------------------------------------------------

    def _parse_action_body(self) -> Expr:
        return self._parse_expr()

    def _parse_brace(self) -> Expr:
        """A record literal or a block, both introduced by '{'."""
        start = self._advance().span.start  # consume LBRACE
        if self._accept(TokenType.RBRACE):
            return RecordExpr((), self._span_from(start))
        if self._at(TokenType.IDENTIFIER) and self._peek(1).type == TokenType.COLON:
            return self._parse_record(start)
        # 'break' cannot escape a block expression
        saved_depth, self._loop_depth = self._loop_depth, 0
        try:
            return self._parse_block(start)
        finally:
            self._loop_depth = saved_depth

    def _parse_record(self, start: Position) -> RecordExpr:
        fields: list[tuple[str, Expr]] = []
        while not self._at(TokenType.RBRACE):
            name_tok = self._expect(TokenType.IDENTIFIER, "expected field name in record")
            self._expect(TokenType.COLON, "expected ':' after record field name")
            fields.append((name_tok.value, self._parse_expr()))
            if not self._accept(TokenType.COMMA):
                break
        self._expect(TokenType.RBRACE, "expected ',' or '}' in record")
        return RecordExpr(tuple(fields), self._span_from(start))

    def _parse_block(self, start: Position) -> Block:
        body: list[Stmt] = []
        while True:
            if self._at(TokenType.RBRACE):
                raise self._error("block must end with a value expression", self._peek().span)
            stmt = self._parse_statement()
            if stmt is None:
                break
            body.append(stmt)
        result = self._parse_expr()
        self._expect(TokenType.RBRACE, "expected '}' after block value")
        return Block(tuple(body), result, self._span_from(start))

    def _parse_stmt_block(self) -> tuple[Stmt, ...]:
        """Braced statement list for loop and branch bodies (no trailing value)."""
        self._expect(TokenType.LBRACE, "expected '{'")
        body: list[Stmt] = []
        while not self._at(TokenType.RBRACE):
            stmt = self._parse_statement()
            if stmt is None:
                raise self._error("expected statement", self._peek().span)
            body.append(stmt)
        self._advance()  # consume RBRACE
        return tuple(body)

    def _parse_statement(self) -> Stmt | None:
        """Parse one statement, or return None when an expression starts here."""
        tok = self._peek()
        start = tok.span.start

        if self._at_keyword("let"):
            self._advance()
            name_tok = self._expect(TokenType.IDENTIFIER, "expected variable name after 'let'")
            self._expect(TokenType.ASSIGN, "expected '=' in 'let'")
            value = self._parse_expr()
            self._expect(TokenType.SEMI, "expected ';' after 'let'")
            return Let(name_tok.value, value, self._span_from(start))

        if self._at_keyword("for"):
            self._advance()
            name_tok = self._expect(TokenType.IDENTIFIER, "expected loop variable after 'for'")
            self._expect_keyword("in")
            lo = self._parse_expr()
            self._expect(TokenType.DOTDOT, "expected '..' in loop range")
            hi = self._parse_expr()
            self._loop_depth += 1
            try:
                body = self._parse_stmt_block()
            finally:
                self._loop_depth -= 1
            self._accept(TokenType.SEMI)
            return For(name_tok.value, lo, hi, body, self._span_from(start))

        if self._at_keyword("if"):
            return self._parse_if()

        if self._at_keyword("break"):
            self._advance()
            if self._loop_depth == 0:
                raise self._error("'break' outside of a loop", tok.span)
            self._expect(TokenType.SEMI, "expected ';' after 'break'")
            return Break(self._span_from(start))

        if tok.type == TokenType.IDENTIFIER and self._peek(1).type in (
            TokenType.ASSIGN,
            TokenType.PLUS_ASSIGN,
        ):
            self._advance()
            op = "=" if self._advance().type == TokenType.ASSIGN else "+="
            value = self._parse_expr()
            self._expect(TokenType.SEMI, "expected ';' after assignment")
            return Assign(tok.value, op, value, self._span_from(start))

        return None

    def _parse_if(self) -> If:
        start = self._advance().span.start  # consume 'if'
        condition = self._parse_expr()
        then = self._parse_stmt_block()
        orelse: tuple[Stmt, ...] = ()
        if self._at_keyword("else"):
            self._advance()
            if self._at_keyword("if"):
                orelse = (self._parse_if(),)
            else:
                orelse = self._parse_stmt_block()
        self._accept(TokenType.SEMI)
        return If(condition, then, orelse, self._span_from(start))

    # ------------------------------------------------------------------
    # Expressions
    # ------------------------------------------------------------------

    def _parse_expr(self) -> Expr:
        start = self._peek().span.start
        left = self._parse_additive()
        op = _COMPARISONS.get(self._peek().type)
        if op is not None:
            self._advance()
            right = self._parse_additive()
            return Binary(op, left, right, self._span_from(start))
        return left

    def _parse_additive(self) -> Expr:
        start = self._peek().span.start
        left = self._parse_term()
        while self._peek().type in _ADDITIVE:
            op = _ADDITIVE[self._advance().type]
            right = self._parse_term()
            left = Binary(op, left, right, self._span_from(start))
        return left

    def _parse_term(self) -> Expr:
        start = self._peek().span.start
        left = self._parse_unary()
        while self._peek().type in _MULTIPLICATIVE:
            op = _MULTIPLICATIVE[self._advance().type]
            right = self._parse_unary()
            left = Binary(op, left, right, self._span_from(start))
        return left

    def _parse_unary(self) -> Expr:
        start = self._peek().span.start
        if self._at(TokenType.MINUS, TokenType.BANG):
            op = "-" if self._advance().type == TokenType.MINUS else "!"
            operand = self._parse_unary()
            return Unary(op, operand, self._span_from(start))
        return self._parse_postfix()

    def _parse_postfix(self) -> Expr:
        start = self._peek().span.start
        expr = self._parse_atom()
        while True:
            if self._accept(TokenType.LBRACKET):
                index = self._parse_expr()
                self._expect(TokenType.RBRACKET, "expected ']' after index")
                expr = Index(expr, index, self._span_from(start))
            elif self._accept(TokenType.DOT):
                name_tok = self._expect(TokenType.IDENTIFIER, "expected field name after '.'")
                expr = Attr(expr, name_tok.value, self._span_from(start))
            else:
                return expr

    def _parse_atom(self) -> Expr:
        tok = self._peek()
        start = tok.span.start

        if tok.type == TokenType.NUMBER:
            self._advance()
            if any(c in tok.value for c in ".eE"):
                return Number(float(tok.value), tok.span)
            return Number(int(tok.value), tok.span)

        if tok.type == TokenType.STRING:
            self._advance()
            return String(tok.value, tok.span)

        if tok.type == TokenType.KEYWORD and tok.value in ("true", "false"):
            self._advance()
            return Bool(tok.value == "true", tok.span)

        if tok.type == TokenType.IDENTIFIER:
            self._advance()
            if self._accept(TokenType.LPAREN):
                args: list[Expr] = []
                while not self._at(TokenType.RPAREN):
                    args.append(self._parse_expr())
                    if not self._accept(TokenType.COMMA):
                        break
                self._expect(TokenType.RPAREN, "expected ',' or ')' in call")
                return Call(tok.value, tuple(args), self._span_from(start))
            return Var(tok.value, tok.span)

        if tok.type == TokenType.LBRACKET:
            self._advance()
            items: list[Expr] = []
            while not self._at(TokenType.RBRACKET):
                items.append(self._parse_expr())
                if not self._accept(TokenType.COMMA):
                    break
            self._expect(TokenType.RBRACKET, "expected ',' or ']' in list")
            return ListExpr(tuple(items), self._span_from(start))

        if tok.type == TokenType.LBRACE:
            return self._parse_brace()

        if tok.type == TokenType.LPAREN:
            self._advance()
            inner = self._parse_expr()
            self._expect(TokenType.RPAREN, "expected ')'")
            return inner

        raise self._error("expected expression", tok.span)


def parse(source: str, filename: str = "grammar.meta") -> GrammarSource:
    """Convenience function: tokenize and parse grammar source text."""
    tokens = tokenize(source, filename)
    return Parser(tokens, source, filename).parse()
