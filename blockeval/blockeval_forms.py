"""
Source synthesis: wraps a code block in its variable bindings and, for
one-shot value capture, in a program that writes the result to a sink file.

All language-specific text lives in a Dialect (a set of Mustache templates
plus a literal renderer), so the dispatcher stays language neutral.
"""
from __future__ import annotations

import json
import math
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

import pystache

from blockeval.blockeval_datatypes import List, Scalar


@dataclass(frozen=True)
class Markers:
    """Sentinel lines that frame one session request on stdout."""
    start: str
    value: str
    done: str


class Dialect:
    """Templates and literal rendering for one foreign language.

    Required templates:
      - let:     {{#bindings}}{{name}} {{value}}{{/bindings}} around {{body}}
      - wrapper: defines a writer and an entry point around {{body}},
                 writes the printed return value to {{sink}}
      - request: prints {{start}}, evaluates {{body}} / {{body_literal}},
                 prints {{value}}, the value, then {{done}}
      - ready:   prints {{marker}}
    """

    name = "generic"
    suffix = ".txt"
    templates: Dict[str, str] = {}

    def __init__(self, name: Optional[str] = None, suffix: Optional[str] = None,
                 templates: Optional[Mapping[str, str]] = None):
        if name is not None:
            self.name = name
        if suffix is not None:
            self.suffix = suffix
        merged = dict(type(self).templates)
        merged.update(templates or {})
        self.templates = merged
        self._renderer = pystache.Renderer(escape=lambda u: u)

    def render(self, template_name: str, context: Dict[str, Any]) -> str:
        try:
            template = self.templates[template_name]
        except KeyError:
            raise KeyError(f"Dialect {self.name!r} has no {template_name!r} template") from None
        return self._renderer.render(template, context)

    def quote_string(self, text: str) -> str:
        return json.dumps(str(text), ensure_ascii=False)

    def render_value(self, value: Any) -> str:
        return str(value)

    def __repr__(self):
        return f"<Dialect {self.name}>"


class ClojureDialect(Dialect):
    name = "clojure"
    suffix = ".clj"
    templates = {
        "let": "(let [{{#bindings}}{{name}} {{value}}{{^last}} {{/last}}{{/bindings}}]\n{{body}})",
        "wrapper": (
            "(defn blockeval-write-result [path text]\n"
            "  (spit path text))\n"
            "\n"
            "(defn blockeval-main []\n"
            "{{body}})\n"
            "\n"
            "(blockeval-write-result {{sink}} (pr-str (blockeval-main)))\n"
            "(shutdown-agents)\n"
        ),
        "request": (
            "(do (println {{start}})"
            " (let [blockeval-value (try (do {{body}}\n) (catch Throwable t t))]"
            " (println {{value}}) (prn blockeval-value) (println {{done}})))\n"
        ),
        "ready": "(println {{marker}})\n",
    }

    def render_value(self, value: Any) -> str:
        # Collections are passed as quoted data, everything else as its printed form
        if isinstance(value, (list, tuple, dict, List)):
            return "'" + self._literal(value)
        return self._literal(value)

    def _literal(self, value: Any) -> str:
        match value:
            case None:
                return "nil"
            case bool():
                return "true" if value else "false"
            case float() if math.isnan(value):
                return "##NaN"
            case float() if math.isinf(value):
                return "##Inf" if value > 0 else "##-Inf"
            case int() | float():
                return repr(value)
            case str():
                return self.quote_string(value)
            case Scalar():
                return value.text
            case List():
                return "(" + " ".join(self._literal(v) for v in value.items) + ")"
            case list() | tuple():
                return "(" + " ".join(self._literal(v) for v in value) + ")"
            case dict():
                pairs = [f"{self._literal(k)} {self._literal(v)}" for k, v in value.items()]
                return "{" + " ".join(pairs) + "}"
            case _:
                return str(value)


CLOJURE = ClojureDialect()


def build(body: str, bindings: Optional[Mapping[str, Any]] = None, dialect: Dialect = CLOJURE) -> str:
    """Wrap `body` in a let form binding `bindings` in their given order."""
    text = (body or "").strip()
    items = list((bindings or {}).items())
    if not items:
        return text
    context = {
        "bindings": [
            {"name": str(name), "value": dialect.render_value(value), "last": i == len(items) - 1}
            for i, (name, value) in enumerate(items)
        ],
        "body": text,
    }
    return dialect.render("let", context)


def build_wrapper(source: str, sink_path: str, dialect: Dialect = CLOJURE) -> str:
    """A standalone program that writes the printed value of `source` to `sink_path`."""
    context = {
        "body": source,
        "sink": dialect.quote_string(sink_path),
        "sink_path": sink_path,
    }
    return dialect.render("wrapper", context)


def build_session_request(source: str, markers: Markers, dialect: Dialect = CLOJURE) -> str:
    context = {
        "body": source,
        "body_literal": dialect.quote_string(source),
        "start": dialect.quote_string(markers.start),
        "value": dialect.quote_string(markers.value),
        "done": dialect.quote_string(markers.done),
    }
    text = dialect.render("request", context)
    if not text.endswith("\n"):
        text += "\n"
    return text


def build_ready_probe(marker: str, dialect: Dialect = CLOJURE) -> str:
    text = dialect.render("ready", {"marker": dialect.quote_string(marker)})
    if not text.endswith("\n"):
        text += "\n"
    return text


__all__ = [
    "Dialect",
    "ClojureDialect",
    "CLOJURE",
    "Markers",
    "build",
    "build_wrapper",
    "build_session_request",
    "build_ready_probe",
]
