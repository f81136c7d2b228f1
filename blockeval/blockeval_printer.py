"""
A printer that renders evaluation results as document text.
"""
from blockeval.blockeval_datatypes import List, Scalar


class Printer:
    """Formats results the way they are written back under a code block."""

    def __init__(self, separator=" | "):
        self._separator = separator
        self._handlers = self._create_handlers()

    def pformat(self, obj):
        """Public entry point to format an object."""
        handler = self._get_handler(obj)
        return handler(obj)

    def _get_handler(self, obj):
        obj_type = type(obj)
        if obj_type in self._handlers:
            return self._handlers[obj_type]
        if isinstance(obj, str):
            return self._pformat_str
        return lambda o: str(o)

    def _create_handlers(self):
        return {
            str: self._pformat_str,
            Scalar: self._pformat_scalar,
            List: self._pformat_list,
            type(None): lambda o: "",
        }

    def _pformat_str(self, obj):
        return obj

    def _pformat_scalar(self, obj):
        return obj.text

    def _pformat_cell(self, obj):
        # Nested collections collapse into a single cell
        if isinstance(obj, List):
            return "(" + " ".join(self._pformat_cell(x) for x in obj.items) + ")"
        return self.pformat(obj)

    def _pformat_row(self, items):
        cells = [self._pformat_cell(x) for x in items]
        if not cells:
            return "||"
        return "| " + self._separator.join(cells) + " |"

    def _pformat_list(self, obj):
        # A list of lists is a table, anything else a single row
        if obj.items and all(isinstance(x, List) for x in obj.items):
            return "\n".join(self._pformat_row(row.items) for row in obj.items)
        return self._pformat_row(obj.items)
