"""Tests for the LSP server: diagnostic generation."""

from __future__ import annotations

import pytest
from lsprotocol.types import (
    DiagnosticSeverity,
    PublishDiagnosticsParams,
    TextDocumentItem,
    TextDocumentSyncKind,
)
from pygls.lsp.server import LanguageServer
from pygls.workspace import Workspace

from metagram.lsp import _validate

from .conftest import PERSON_GRAMMAR

URI = "file:///test.meta"


@pytest.fixture
def lsp_env():
    """Create a LanguageServer with an initialized workspace and captured diagnostics."""
    ls = LanguageServer("test", "v0", text_document_sync_kind=TextDocumentSyncKind.Full)
    ws = Workspace(None)
    ls.protocol._workspace = ws

    published: list[PublishDiagnosticsParams] = []
    ls.text_document_publish_diagnostics = lambda params: published.append(params)

    def put(source: str, uri: str = URI) -> None:
        ws.put_text_document(
            TextDocumentItem(uri=uri, language_id="metagram", version=0, text=source)
        )

    return ls, published, put


class TestSyntaxErrors:
    def test_unexpected_character(self, lsp_env) -> None:
        ls, published, put = lsp_env
        put("meta {\n  a := @;\n}")
        _validate(ls, URI)

        assert len(published) == 1
        diags = published[0].diagnostics
        assert len(diags) == 1
        d = diags[0]
        assert d.severity == DiagnosticSeverity.Error
        assert "unexpected character" in d.message
        assert d.source == "metagram"
        # '@' is at line 2 column 8 (1-based)
        assert d.range.start.line == 1
        assert d.range.start.character == 7
        assert d.range.end.character > d.range.start.character

    def test_missing_semicolon(self, lsp_env) -> None:
        ls, published, put = lsp_env
        put("meta { a := str b := str; --- a }")
        _validate(ls, URI)

        d = published[0].diagnostics[0]
        assert "expected ';'" in d.message


class TestSemanticErrors:
    def test_undefined_rule(self, lsp_env) -> None:
        ls, published, put = lsp_env
        put("meta {\n  a := [b];\n---\n  a\n}")
        _validate(ls, URI)

        diags = published[0].diagnostics
        assert len(diags) == 1
        assert diags[0].severity == DiagnosticSeverity.Error
        assert "undefined rule 'b'" in diags[0].message
        assert diags[0].range.start.line == 1

    def test_missing_start(self, lsp_env) -> None:
        ls, published, put = lsp_env
        put("meta { a := str; b := str; }")
        _validate(ls, URI)

        assert "no start rule" in published[0].diagnostics[0].message


class TestCleanDocument:
    def test_valid_grammar(self, lsp_env) -> None:
        ls, published, put = lsp_env
        put(PERSON_GRAMMAR)
        _validate(ls, URI)

        assert len(published) == 1
        assert published[0].diagnostics == []
        assert published[0].uri == URI
