"""Minimal LSP server for grammar files: diagnostics only."""

from __future__ import annotations

from lsprotocol.types import (
    TEXT_DOCUMENT_DID_CHANGE,
    TEXT_DOCUMENT_DID_OPEN,
    Diagnostic,
    DiagnosticSeverity,
    DidChangeTextDocumentParams,
    DidOpenTextDocumentParams,
    Position,
    PublishDiagnosticsParams,
    Range,
    TextDocumentSyncKind,
)
from pygls.lsp.server import LanguageServer

from metagram.compiler import Compiler
from metagram.errors import GrammarSemanticError, GrammarSyntaxError
from metagram.parser import parse

server = LanguageServer("metagram-lsp", "0.1.0", text_document_sync_kind=TextDocumentSyncKind.Full)


def _range(exc: GrammarSyntaxError | GrammarSemanticError) -> Range:
    start_line = exc.span.start.line - 1
    start_col = exc.span.start.column - 1
    end_line = exc.span.end.line - 1
    end_col = exc.span.end.column - 1
    if (end_line, end_col) <= (start_line, start_col):
        end_line, end_col = start_line, start_col + 1
    return Range(
        start=Position(line=start_line, character=start_col),
        end=Position(line=end_line, character=end_col),
    )


def _validate(ls: LanguageServer, uri: str) -> None:
    """Compile the grammar document and publish diagnostics."""
    doc = ls.workspace.get_text_document(uri)
    source = doc.source
    filename = uri.rsplit("/", 1)[-1] if "/" in uri else uri
    diagnostics: list[Diagnostic] = []

    try:
        tree = parse(source, filename)
    except GrammarSyntaxError as exc:
        diagnostics.append(
            Diagnostic(
                range=_range(exc),
                message=exc.message,
                severity=DiagnosticSeverity.Error,
                source="metagram",
            )
        )
    else:
        try:
            Compiler(tree, source, filename).compile()
        except GrammarSemanticError as exc:
            diagnostics.append(
                Diagnostic(
                    range=_range(exc),
                    message=exc.message,
                    severity=DiagnosticSeverity.Error,
                    source="metagram",
                )
            )

    ls.text_document_publish_diagnostics(
        PublishDiagnosticsParams(uri=uri, diagnostics=diagnostics)
    )


@server.feature(TEXT_DOCUMENT_DID_OPEN)
def did_open(ls: LanguageServer, params: DidOpenTextDocumentParams) -> None:
    _validate(ls, params.text_document.uri)


@server.feature(TEXT_DOCUMENT_DID_CHANGE)
def did_change(ls: LanguageServer, params: DidChangeTextDocumentParams) -> None:
    _validate(ls, params.text_document.uri)


def main() -> None:
    server.start_io()
